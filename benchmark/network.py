"""
Network topology builder for the two-population COBA benchmark.

Builds the population and connection descriptions from a resolved
configuration and instantiates them in the simulation engine.

Connectivity rules:
  E -> E: GLUT, w = 0.4 g_leak, p = 0.02 / networkscale
  E -> I: GLUT, w = 0.4 g_leak, p = 0.02 / networkscale
  I -> E: GABA, w = 5.1 g_leak, p = 0.02 / networkscale
  I -> I: GABA, w = 5.1 g_leak, p = 0.02 / networkscale

Connections are always constructed in the order above; connectivity files
and saved snapshots index the blocks by this order.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Tuple

from benchmark.config import (
    BG_CURRENT, REFRACTORY_PERIOD, W_EXC, W_INH, BenchmarkConfig,
)
from benchmark.errors import NetworkConstructionError

logger = logging.getLogger(__name__)

EXCITATORY = 'e'
INHIBITORY = 'i'

TRANSMITTER_BY_SOURCE = {EXCITATORY: 'GLUT', INHIBITORY: 'GABA'}
WEIGHT_BY_SOURCE = {EXCITATORY: W_EXC, INHIBITORY: W_INH}

CONNECTION_ORDER = (
    (EXCITATORY, EXCITATORY),
    (EXCITATORY, INHIBITORY),
    (INHIBITORY, EXCITATORY),
    (INHIBITORY, INHIBITORY),
)


@dataclass(frozen=True)
class PopulationSpec:
    name: str
    size: int
    refractory_period: float
    bg_current: float
    delay_steps: int
    record: bool


@dataclass(frozen=True)
class ConnectionSpec:
    source: str
    target: str
    weight: float
    transmitter: str
    sparseness: float

    @property
    def name(self):
        return self.source + self.target


@dataclass(frozen=True)
class NetworkSpec:
    populations: Tuple[PopulationSpec, ...]
    connections: Tuple[ConnectionSpec, ...]

    def population(self, name):
        for pop in self.populations:
            if pop.name == name:
                return pop
        raise KeyError(name)


@dataclass
class Network:
    """Engine handles of a constructed network, keyed by name."""

    spec: NetworkSpec
    populations: Dict[str, object]
    connections: Dict[str, object]

    def connection_counts(self):
        return {name: con.synapse_count for name, con in self.connections.items()}


def build_specs(config: BenchmarkConfig) -> NetworkSpec:
    """Derive the two population and four connection descriptions.

    Raises
    ------
    NetworkConstructionError
        If a population would have no neurons.
    """
    sizes = {EXCITATORY: config.n_exc, INHIBITORY: config.n_inh}
    populations = []
    for name in (EXCITATORY, INHIBITORY):
        if sizes[name] <= 0:
            raise NetworkConstructionError(
                f"Population '{name}' needs a positive size, got {sizes[name]}")
        populations.append(PopulationSpec(
            name=name,
            size=sizes[name],
            refractory_period=REFRACTORY_PERIOD,
            bg_current=BG_CURRENT,
            delay_steps=config.num_timesteps_delay,
            record=config.record_spikes,
        ))

    connections = tuple(
        ConnectionSpec(
            source=src,
            target=dst,
            weight=WEIGHT_BY_SOURCE[src],
            transmitter=TRANSMITTER_BY_SOURCE[src],
            sparseness=config.sparseness,
        )
        for src, dst in CONNECTION_ORDER
    )
    return NetworkSpec(populations=tuple(populations), connections=connections)


def instantiate(spec: NetworkSpec, simulation, seed=42) -> Network:
    """Create the engine objects for ``spec`` in ``simulation``.

    Every block gets its own seed (``seed + 100 * k`` for block ``k``) so
    all ranks draw identical connectivity.
    """
    populations = {}
    logger.info("Setting up neuron groups ...")
    for k, ps in enumerate(spec.populations):
        try:
            pop = simulation.create_group(ps.size, ps.name, seed=seed + 10 * k)
        except ValueError as exc:
            raise NetworkConstructionError(str(exc)) from exc
        pop.set_delay(ps.delay_steps)
        pop.set_refractory_period(ps.refractory_period)
        pop.set_state('bg_current', ps.bg_current)
        populations[ps.name] = pop

    if any(ps.delay_steps == 0 for ps in spec.populations):
        logger.debug("Delay of 0 steps runs with the minimum latency of 1 step")

    connections = {}
    logger.info("Setting up connections ...")
    for k, cs in enumerate(spec.connections):
        try:
            con = simulation.create_connection(
                populations[cs.source], populations[cs.target],
                cs.weight, cs.sparseness, cs.transmitter,
                seed=seed + 100 * (k + 1), name=cs.name)
        except ValueError as exc:
            raise NetworkConstructionError(
                f"Connection {cs.name}: {exc}") from exc
        logger.debug("Connection %s: %d synapses", cs.name, con.synapse_count)
        connections[cs.name] = con

    return Network(spec=spec, populations=populations, connections=connections)


def connectivity_stats(network: Network):
    """Log connectivity statistics for debugging."""
    for name, con in network.connections.items():
        n_pre, n_post = con.shape
        n_syn = con.synapse_count
        logger.info(f"{name}: {n_syn} connections, "
                    f"p_eff={n_syn / (n_pre * n_post):.4f}, "
                    f"mean convergence={n_syn / n_post:.1f}")
