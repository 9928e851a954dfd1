"""Reference simulation engine for the COBA benchmark.

Conductance-based integrate-and-fire groups, sparse random connections with
axonal delays, spike monitors and process groups for multi-process runs.
"""

from engine.comm import ProcessGroup, SharedMemoryGroup, partition
from engine.sparse_connection import SparseConnection, TRANSMITTERS
from engine.spike_monitor import SpikeMonitor
from engine.system import Simulation
from engine.tif_group import TIFGroup
