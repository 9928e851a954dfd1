"""
Spike recorder writing ``.ras`` files.

One line per spike: ``<time in s> <global neuron index>``.
"""

import numpy as np


class SpikeMonitor:
    """Record the local spikes of ``group`` to ``path``."""

    def __init__(self, group, path):
        self.group = group
        self.path = path
        self._fh = open(path, 'w')
        self.n_written = 0
        group.monitors.append(self)

    def record(self, t, spike_ids):
        if len(spike_ids) == 0:
            return
        rows = np.column_stack([np.full(len(spike_ids), t), spike_ids])
        np.savetxt(self._fh, rows, fmt=['%.4f', '%d'])
        self.n_written += len(spike_ids)

    def flush(self):
        if self._fh is not None:
            self._fh.flush()

    def close(self):
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    @property
    def closed(self):
        return self._fh is None
