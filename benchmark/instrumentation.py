"""
Spike recorders, wall-clock timing and timing artifacts.

Spike files go to ``<dir>/coba.<rank>.<population>.ras`` so concurrently
running processes never share a path. In fast mode no recorders are
attached at all.
"""

import logging
import os
import time

from benchmark.errors import OutputWriteError
from engine.spike_monitor import SpikeMonitor

logger = logging.getLogger(__name__)

ELAPSED_FILENAME = "elapsed.dat"


def output_prefix(out_dir, rank):
    return os.path.join(out_dir, f"coba.{rank}.")


def spike_file(out_dir, rank, population):
    return f"{output_prefix(out_dir, rank)}{population}.ras"


def attach_recorders(network, config, rank):
    """Attach one spike monitor per population unless in fast mode.

    Returns
    -------
    paths : list of str
        Spike file paths, empty in fast mode.
    """
    if config.fast:
        return []

    logger.warning("Use --fast option to turn off IO for benchmarking!")
    logger.info("Setting up monitors ...")
    os.makedirs(config.dir, exist_ok=True)
    paths = []
    for ps in network.spec.populations:
        if not ps.record:
            continue
        path = spike_file(config.dir, rank, ps.name)
        SpikeMonitor(network.populations[ps.name], path)
        paths.append(path)
    return paths


def rank_qualified(path, rank, size):
    """Insert the rank before the suffix when more than one process runs."""
    if size <= 1:
        return path
    stem, ext = os.path.splitext(path)
    return f"{stem}.{rank}{ext}"


def write_timefile(path, seconds):
    try:
        with open(path, 'w') as fh:
            fh.write(f"{seconds:.10g}")
    except OSError as exc:
        raise OutputWriteError(f"Cannot write timing file {path}: {exc}") from exc
    return path


def write_elapsed(out_dir, simulated_seconds):
    path = os.path.join(out_dir, ELAPSED_FILENAME)
    try:
        os.makedirs(out_dir, exist_ok=True)
        with open(path, 'w') as fh:
            fh.write(f"{simulated_seconds}\n")
    except OSError as exc:
        raise OutputWriteError(f"Cannot write {path}: {exc}") from exc
    return path


class WallClockTimer:
    """Wall-clock stopwatch."""

    def __init__(self):
        self._start = None
        self.elapsed = None

    def start(self):
        self._start = time.perf_counter()
        self.elapsed = None

    def stop(self):
        if self._start is None:
            raise RuntimeError("Timer was never started")
        self.elapsed = time.perf_counter() - self._start
        return self.elapsed
