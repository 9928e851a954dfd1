"""COBA benchmark harness.

Scaled two-population (excitatory/inhibitory) network, optional
precomputed connectivity, timed run and rank-aware reporting.
"""

from benchmark.config import BenchmarkConfig, resolve_config
from benchmark.errors import (
    BenchmarkError, ConfigurationError, ConnectivityLoadError,
    ConnectivityMismatchError, NetworkConstructionError, OutputWriteError,
    SimulationRunError,
)
from benchmark.runner import BenchmarkRunner, RunResult, State
