from setuptools import setup, find_packages

setup(
    name="coba-benchmark",
    version="0.1.0",
    description="Scalable COBA (Vogels & Abbott) spiking network benchmark harness",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["run_benchmark", "run_parallel"],
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "scipy",
        "matplotlib",
    ],
    extras_require={
        "tests": [
            "pytest",
        ],
    },
)
