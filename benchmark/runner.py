"""
Benchmark orchestration.

State machine:
  CONFIGURING -> BUILDING -> [LOADING_CONNECTIVITY] -> [SAVING]
    -> [INSTRUMENTING] -> RUNNING -> FINALIZING -> DONE

FAILED is reachable from every step. A failed simulation run is not an
exception: finalization still writes the timing files and the failure is
reported through ``RunResult.success``. Engine resources are released
exactly once on every path.
"""

import enum
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from benchmark import connectivity
from benchmark.config import BenchmarkConfig, resolve_config
from benchmark.errors import OutputWriteError, SimulationRunError
from benchmark.instrumentation import (
    WallClockTimer, attach_recorders, rank_qualified, write_elapsed,
    write_timefile,
)
from benchmark.network import build_specs, connectivity_stats, instantiate
from engine.system import Simulation

logger = logging.getLogger(__name__)

RASTER_FILENAME = "coba.raster.png"


class State(enum.Enum):
    CONFIGURING = "configuring"
    BUILDING = "building"
    LOADING_CONNECTIVITY = "loading_connectivity"
    SAVING = "saving"
    INSTRUMENTING = "instrumenting"
    RUNNING = "running"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunResult:
    """Outcome of one benchmark run on one process."""

    rank: int
    success: bool
    wall_clock_s: float
    simulated_s: Optional[float] = None
    spike_counts: Dict[str, int] = field(default_factory=dict)
    files: List[str] = field(default_factory=list)

    @property
    def exit_code(self):
        return 0 if self.success else 1

    def raise_for_status(self):
        if not self.success:
            raise SimulationRunError(f"Simulation run failed on rank {self.rank}")


class BenchmarkRunner:
    """Run the COBA benchmark once on this process.

    Parameters
    ----------
    options : dict, optional
        Raw option values for :func:`resolve_config`.
    config : BenchmarkConfig, optional
        Already resolved configuration; takes precedence over ``options``.
    group : ProcessGroup, optional
        Distributed runtime; a single process if omitted.
    """

    def __init__(self, options=None, config=None, group=None):
        self.options = dict(options or {})
        self.config = config
        self.group = group
        self.state = None
        self.states = []

    def _enter(self, state):
        self.state = state
        self.states.append(state)
        logger.debug("-> %s", state.value)

    def run(self) -> RunResult:
        simulation = None
        try:
            self._enter(State.CONFIGURING)
            config = self.config or resolve_config(**self.options)
            self.config = config
            if config.networkscale != 1:
                logger.info("Multiplying the network size (and dividing "
                            "connectivity) by %d", config.networkscale)
            logger.info("Network connections are %f sparse.", config.sparseness)

            self._enter(State.BUILDING)
            specs = build_specs(config)
            simulation = Simulation(config.dir, group=self.group)
            network = instantiate(specs, simulation, seed=config.seed)

            if config.connectivity_files:
                self._enter(State.LOADING_CONNECTIVITY)
                connectivity.load_all(network, config)
            connectivity_stats(network)

            if config.save:
                self._enter(State.SAVING)
                connectivity.save(network, config.save, config.networkscale,
                                  rank=simulation.rank)

            files = []
            if not config.fast:
                self._enter(State.INSTRUMENTING)
                files.extend(attach_recorders(network, config, simulation.rank))

            self._enter(State.RUNNING)
            logger.info("Simulating ...")
            timer = WallClockTimer()
            timer.start()
            ok = simulation.run(config.simtime, report_progress=not config.fast)
            wall = timer.stop()
            if not ok:
                logger.error("Simulation run failed on rank %d", simulation.rank)

            self._enter(State.FINALIZING)
            result = self._finalize(config, simulation, network, ok, wall, files)

            self._enter(State.DONE)
            return result
        except Exception:
            self._enter(State.FAILED)
            if self.group is not None:
                # other ranks would otherwise wait for us at the next barrier
                self.group.abort()
            raise
        finally:
            if simulation is not None:
                logger.info("Freeing ...")
                simulation.free()

    def _finalize(self, config: BenchmarkConfig, simulation, network, ok,
                  wall, files):
        rank = simulation.rank
        result = RunResult(rank=rank, success=ok, wall_clock_s=wall,
                           files=list(files))

        if config.fast:
            path = rank_qualified(config.timefile, rank, simulation.size)
            result.files.append(write_timefile(path, wall))

        if rank == 0:
            logger.info("Saving elapsed time ...")
            result.simulated_s = simulation.last_elapsed_time
            result.files.append(write_elapsed(config.dir, result.simulated_s))

        for name, pop in network.populations.items():
            result.spike_counts[name] = pop.spike_count
            if pop.n_local and simulation.last_elapsed_time > 0:
                rate = pop.spike_count / pop.n_local / simulation.last_elapsed_time
                logger.info("Rank %d: population %s fired at %.2f Hz",
                            rank, name, rate)

        if config.plot and files and rank == 0:
            result.files.append(self._plot(config, network, files))

        logger.info("Wall-clock time: %.3f s for %.3f s simulated",
                    wall, simulation.last_elapsed_time)
        return result

    @staticmethod
    def _plot(config, network, files):
        from analysis.plotting import plot_raster, use_headless_backend
        from analysis.spike_analysis import summarize_ras

        use_headless_backend()
        ras_files = dict(zip(
            [ps.name for ps in network.spec.populations if ps.record], files))
        for name, ras in ras_files.items():
            pop = network.populations[name]
            summary = summarize_ras(ras, pop.n_local, config.simtime)
            logger.info("Population %s: %d spikes, %.2f Hz, CV ISI %.2f, "
                        "%.0f%% active", name, summary['n_spikes'],
                        summary['rate_hz'], summary['cv_isi'],
                        100 * summary['participation'])
        path = os.path.join(config.dir, RASTER_FILENAME)
        try:
            return plot_raster(ras_files, path, title=f"COBA benchmark, "
                               f"networkscale {config.networkscale}")
        except OSError as exc:
            raise OutputWriteError(f"Cannot write raster plot {path}: {exc}") from exc
