"""
Benchmark configuration: defaults, validation and derived parameters.

The network scale multiplies both population sizes and divides the
connection probability, so the expected number of inputs per neuron stays
constant (80 excitatory + 20 inhibitory on average):

  n_exc      = 3200 * networkscale
  n_inh      =  800 * networkscale
  sparseness = 0.02 / networkscale
"""

import math
import tempfile
from dataclasses import dataclass, fields
from typing import Optional

from benchmark.errors import ConfigurationError
from engine.system import DEFAULT_DT

# =============================================================================
# Network constants (Vogels & Abbott 2005, Brette et al. 2007 benchmark 1)
# =============================================================================

BASE_N_EXC = 3200
BASE_N_INH = 800
BASE_SPARSENESS = 0.02

W_EXC = 0.4                  # [g_leak] excitatory weight
W_INH = 5.1                  # [g_leak] inhibitory weight

REFRACTORY_PERIOD = 5.0e-3   # s, minimal ISI ~5.1 ms
BG_CURRENT = 2e-2            # 20 mV drive, i.e. 200 pA for C=200 pF, tau=20 ms

# =============================================================================
# Run defaults
# =============================================================================

DEFAULT_SIMTIME = 20.0       # s
DEFAULT_NETWORKSCALE = 1
DEFAULT_DELAY_STEPS = 1
DEFAULT_SEED = 42
DEFAULT_TIMEFILE = "timefile.dat"

CONNECTIVITY_OPTIONS = ("fee", "fei", "fie", "fii")


@dataclass(frozen=True)
class BenchmarkConfig:
    """Resolved run parameters. Build with :func:`resolve_config`."""

    simtime: float = DEFAULT_SIMTIME
    networkscale: int = DEFAULT_NETWORKSCALE
    num_timesteps_delay: int = DEFAULT_DELAY_STEPS
    fast: bool = False
    dir: str = tempfile.gettempdir()
    save: Optional[str] = None
    fee: Optional[str] = None
    fei: Optional[str] = None
    fie: Optional[str] = None
    fii: Optional[str] = None
    seed: int = DEFAULT_SEED
    timefile: str = DEFAULT_TIMEFILE
    plot: bool = False

    @property
    def sparseness(self) -> float:
        return BASE_SPARSENESS / self.networkscale

    @property
    def n_exc(self) -> int:
        return BASE_N_EXC * self.networkscale

    @property
    def n_inh(self) -> int:
        return BASE_N_INH * self.networkscale

    @property
    def connectivity_files(self):
        """Block name -> path for every connectivity file given."""
        return {name[1:]: getattr(self, name) for name in CONNECTIVITY_OPTIONS
                if getattr(self, name)}

    @property
    def record_spikes(self) -> bool:
        return not self.fast


_OPTION_NAMES = {f.name for f in fields(BenchmarkConfig)}


def _optional_path(value):
    if value is None:
        return None
    value = str(value)
    return value or None


def resolve_config(**options) -> BenchmarkConfig:
    """Validate raw option values and build a :class:`BenchmarkConfig`.

    Every option is optional; ``None`` means "use the default". Empty path
    strings disable the corresponding feature.

    Raises
    ------
    ConfigurationError
        Unknown option, or a value out of range.
    """
    unknown = set(options) - _OPTION_NAMES
    if unknown:
        raise ConfigurationError(f"Unknown option(s): {', '.join(sorted(unknown))}")

    values = {k: v for k, v in options.items() if v is not None}

    simtime = values.get("simtime", DEFAULT_SIMTIME)
    try:
        simtime = float(simtime)
    except (TypeError, ValueError):
        raise ConfigurationError(f"simtime must be a number, got {simtime!r}")
    if not math.isfinite(simtime) or simtime <= 0:
        raise ConfigurationError(f"simtime must be positive, got {simtime}")
    if simtime < DEFAULT_DT:
        raise ConfigurationError(
            f"simtime {simtime} s is shorter than one timestep ({DEFAULT_DT} s)")

    scale = values.get("networkscale", DEFAULT_NETWORKSCALE)
    if isinstance(scale, bool) or not isinstance(scale, int):
        if isinstance(scale, float) and scale.is_integer():
            scale = int(scale)
        else:
            raise ConfigurationError(f"networkscale must be an integer, got {scale!r}")
    if scale <= 0:
        raise ConfigurationError(f"networkscale must be positive, got {scale}")

    sparseness = BASE_SPARSENESS / scale
    if not 0.0 < sparseness <= 1.0:
        raise ConfigurationError(
            f"sparseness {sparseness} for networkscale {scale} is outside (0, 1]")

    delay = values.get("num_timesteps_delay", DEFAULT_DELAY_STEPS)
    if isinstance(delay, bool) or not isinstance(delay, int):
        raise ConfigurationError(f"num_timesteps_delay must be an integer, got {delay!r}")
    if delay < 0:
        raise ConfigurationError(f"num_timesteps_delay must be non-negative, got {delay}")

    seed = values.get("seed", DEFAULT_SEED)
    if isinstance(seed, bool) or not isinstance(seed, int):
        raise ConfigurationError(f"seed must be an integer, got {seed!r}")

    out_dir = values.get("dir") or tempfile.gettempdir()
    timefile = values.get("timefile") or DEFAULT_TIMEFILE

    return BenchmarkConfig(
        simtime=simtime,
        networkscale=scale,
        num_timesteps_delay=delay,
        fast=bool(values.get("fast", False)),
        dir=str(out_dir),
        save=_optional_path(values.get("save")),
        fee=_optional_path(values.get("fee")),
        fei=_optional_path(values.get("fei")),
        fie=_optional_path(values.get("fie")),
        fii=_optional_path(values.get("fii")),
        seed=seed,
        timefile=str(timefile),
        plot=bool(values.get("plot", False)),
    )
