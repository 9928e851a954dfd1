"""Exceptions raised by the benchmark harness."""


class BenchmarkError(Exception):
    """Base class for all harness errors."""


class ConfigurationError(BenchmarkError, ValueError):
    """Invalid or out-of-range option."""


class NetworkConstructionError(BenchmarkError):
    """A population or connection could not be constructed."""


class ConnectivityMismatchError(BenchmarkError):
    """Connectivity file requested at a network scale it does not fit."""


class ConnectivityLoadError(BenchmarkError, OSError):
    """Connectivity file missing, unreadable or malformed."""


class OutputWriteError(BenchmarkError, OSError):
    """A snapshot or timing file could not be written."""


class SimulationRunError(BenchmarkError):
    """The simulation engine reported a failed run."""
