"""
Simulation kernel: owns neuron groups and connections, runs the clock.

Per timestep, in order:
  1. deliver spikes emitted ``delay`` steps ago through every connection
  2. integrate every neuron group
  3. write local spikes to the attached monitors
  4. exchange spike flags with the other ranks (one barrier)

``run`` is collective: every rank of the process group must call it with
the same duration.
"""

import logging
import os
import threading

import numpy as np

from engine.comm import ProcessGroup
from engine.sparse_connection import SparseConnection
from engine.tif_group import TIFGroup

logger = logging.getLogger(__name__)

DEFAULT_DT = 1e-4  # s
_FINITE_CHECK_EVERY = 100


class Simulation:
    """Container and clock for one network.

    Parameters
    ----------
    outdir : str
        Working/output directory, created if missing.
    group : ProcessGroup, optional
        Distributed runtime. Defaults to a single process.
    dt : float
        Integration timestep (s).
    """

    def __init__(self, outdir, group=None, dt=DEFAULT_DT):
        os.makedirs(outdir, exist_ok=True)
        self.outdir = outdir
        self.group = group if group is not None else ProcessGroup()
        self.dt = dt
        self.populations = []
        self.connections = []
        self.clock = 0
        self.last_elapsed_time = 0.0
        self.freed = False
        logger.debug("Simulation initialised (rank %d of %d, dt=%g s)",
                     self.rank, self.size, dt)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.free()
        return False

    @property
    def rank(self):
        return self.group.rank

    @property
    def size(self):
        return self.group.size

    @property
    def time(self):
        return self.clock * self.dt

    def create_group(self, n, name, seed=42, params=None):
        pop = TIFGroup(n, name, rank=self.rank, size=self.size, dt=self.dt,
                       seed=seed, params=params)
        self.populations.append(pop)
        return pop

    def create_connection(self, source, target, weight, sparseness,
                          transmitter, seed=42, name=None):
        con = SparseConnection(source, target, weight, sparseness,
                               transmitter, seed=seed, name=name)
        self.connections.append(con)
        return con

    def run(self, duration, report_progress=False):
        """Advance the network by ``duration`` seconds.

        Returns
        -------
        ok : bool
            False if any rank failed (non-finite state or broken barrier).
        """
        n_steps = int(round(duration / self.dt))
        offsets = np.cumsum([0] + [p.size for p in self.populations])
        self.group.reserve(int(offsets[-1]))

        ring_len = max([p.delay for p in self.populations] + [1]) + 1
        history = [[np.array([], dtype=np.int64)] * ring_len
                   for _ in self.populations]
        index = {id(p): i for i, p in enumerate(self.populations)}
        report_every = max(n_steps // 10, 1)

        ok = True
        done = 0
        try:
            self.group.barrier()
            for k in range(n_steps):
                for con in self.connections:
                    src = index[id(con.source)]
                    if k >= con.source.delay:
                        ids = history[src][(k - con.source.delay) % ring_len]
                        con.propagate(ids)

                for pop in self.populations:
                    pop.step()

                t = (self.clock + k) * self.dt
                for pop in self.populations:
                    if pop.monitors:
                        local_ids = pop.local_spike_ids()
                        for mon in pop.monitors:
                            mon.record(t, local_ids)

                for i, pop in enumerate(self.populations):
                    self.group.publish(k, offsets[i] + pop.lo, pop.spiked)
                self.group.barrier()
                for i, pop in enumerate(self.populations):
                    flags = self.group.collect(k, offsets[i], pop.size)
                    history[i][k % ring_len] = np.flatnonzero(flags)

                done = k + 1
                if done % _FINITE_CHECK_EVERY == 0 and not self._state_finite():
                    logger.error("Non-finite membrane state at t=%.4f s",
                                 t)
                    ok = False
                    self.group.abort()
                    break

                if report_progress and self.rank == 0 and done % report_every == 0:
                    logger.info("Simulated %.3f / %.3f s (%d%%)",
                                done * self.dt, duration,
                                100 * done // n_steps)
        except threading.BrokenBarrierError:
            logger.error("Another rank aborted the run at step %d", done)
            ok = False

        if ok and not self._state_finite():
            ok = False
        self.clock += done
        self.last_elapsed_time = done * self.dt
        for pop in self.populations:
            for mon in pop.monitors:
                mon.flush()
        return self.group.all_ok(ok)

    def _state_finite(self):
        return all(pop.is_finite() for pop in self.populations)

    def free(self):
        """Close monitors and drop all network objects. Safe to repeat."""
        if self.freed:
            return
        for pop in self.populations:
            for mon in pop.monitors:
                mon.close()
            pop.monitors = []
        self.connections = []
        self.populations = []
        self.freed = True
        logger.debug("Simulation resources released (rank %d)", self.rank)
