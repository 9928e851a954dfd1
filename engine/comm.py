"""
Process groups for running one benchmark across cooperating processes.

Every rank runs the same program. Neurons of each population are split into
contiguous per-rank slices; after each integration step every rank publishes
the spike flags of its own slice into a shared buffer and reads back the
flags of the whole population.

The spike buffer is double-buffered by step parity so a single barrier per
step is enough: a rank can only overwrite slot ``step % 2`` again at
``step + 2``, which requires every other rank to have passed the barrier of
``step + 1`` and therefore to have finished reading ``step``.
"""

import ctypes
import threading

import numpy as np


def partition(n, rank, size):
    """Contiguous slice [lo, hi) of ``n`` items owned by ``rank``."""
    base, extra = divmod(n, size)
    lo = rank * base + min(rank, extra)
    hi = lo + base + (1 if rank < extra else 0)
    return lo, hi


class ProcessGroup:
    """Single-process group: rank 0 of 1.

    Parameters
    ----------
    n_slots : int
        Number of neuron flags exchanged per step (all populations).
    """

    def __init__(self, n_slots=0):
        self.rank = 0
        self.size = 1
        self._flags = np.zeros((2, n_slots), dtype=bool)

    @property
    def is_coordinator(self):
        return self.rank == 0

    def reserve(self, n_slots):
        """Make sure the spike buffer holds at least ``n_slots`` flags."""
        if n_slots > self._flags.shape[1]:
            self._flags = np.zeros((2, n_slots), dtype=bool)

    def publish(self, step, offset, flags):
        self._flags[step % 2, offset:offset + len(flags)] = flags

    def collect(self, step, offset, n):
        return self._flags[step % 2, offset:offset + n]

    def barrier(self):
        pass

    def abort(self):
        pass

    def all_ok(self, ok):
        return ok


class SharedMemoryGroup(ProcessGroup):
    """Group of ``size`` OS processes sharing a spike buffer and a barrier.

    Created in the parent with :meth:`allocate`; each child then calls
    :meth:`for_rank` with the same shared objects.
    """

    def __init__(self, rank, size, barrier, shared_flags, shared_status):
        self.rank = rank
        self.size = size
        self._barrier = barrier
        self._status = shared_status
        raw = np.frombuffer(shared_flags, dtype=np.bool_)
        self._flags = raw.reshape(2, -1)

    @staticmethod
    def allocate(ctx, size, n_slots):
        """Create the shared objects for a group of ``size`` ranks."""
        barrier = ctx.Barrier(size)
        flags = ctx.RawArray(ctypes.c_bool, 2 * n_slots)
        status = ctx.RawArray(ctypes.c_int, size)
        return barrier, flags, status

    @classmethod
    def for_rank(cls, rank, size, shared):
        barrier, flags, status = shared
        return cls(rank, size, barrier, flags, status)

    def reserve(self, n_slots):
        if n_slots > self._flags.shape[1]:
            raise ValueError(
                f"Shared spike buffer holds {self._flags.shape[1]} flags, "
                f"{n_slots} requested")

    def barrier(self):
        """Wait for all ranks. Raises ``threading.BrokenBarrierError``
        if any rank called :meth:`abort`."""
        self._barrier.wait()

    def abort(self):
        self._barrier.abort()

    def all_ok(self, ok):
        """Collective AND of a per-rank success flag."""
        self._status[self.rank] = 1 if ok else 0
        try:
            self._barrier.wait()
            result = all(self._status[r] == 1 for r in range(self.size))
            # second wait keeps a fast rank from overwriting its status
            # before the others have read it
            self._barrier.wait()
        except threading.BrokenBarrierError:
            return False
        return result
