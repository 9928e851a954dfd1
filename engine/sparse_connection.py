"""
Sparse random connections between two neuron groups.

Connectivity is a CSR matrix of shape (n_pre, n_post) holding the
conductance increment (units of leak conductance) each presynaptic spike
adds to the postsynaptic AMPA or GABA conductance. The whole matrix is
built on every rank from the same seed; each rank keeps a column slice for
the targets it integrates.

Files use the Matrix Market coordinate format (``.wmat``), 1-based indices.
"""

import numpy as np
from scipy import io as spio
from scipy import sparse

TRANSMITTERS = ('GLUT', 'GABA')

_ROW_CHUNK = 1024


def random_sparse_matrix(n_pre, n_post, sparseness, weight, rng):
    """Bernoulli(sparseness) connectivity with a uniform weight.

    Parameters
    ----------
    n_pre, n_post : int
        Matrix shape.
    sparseness : float
        Connection probability per (pre, post) pair.
    weight : float
        Value stored for every synapse.
    rng : np.random.Generator

    Returns
    -------
    matrix : scipy.sparse.csr_matrix (n_pre, n_post)
    """
    rows = []
    cols = []
    # chunked so the dense draw stays small at large network scales
    for start in range(0, n_pre, _ROW_CHUNK):
        stop = min(start + _ROW_CHUNK, n_pre)
        mask = rng.random((stop - start, n_post)) < sparseness
        r, c = np.nonzero(mask)
        rows.append(r + start)
        cols.append(c)
    rows = np.concatenate(rows) if rows else np.array([], dtype=np.int64)
    cols = np.concatenate(cols) if cols else np.array([], dtype=np.int64)
    data = np.full(len(rows), weight, dtype=np.float64)
    return sparse.csr_matrix((data, (rows, cols)), shape=(n_pre, n_post))


class SparseConnection:
    """Randomly wired synapses from ``source`` onto ``target``.

    Parameters
    ----------
    source, target : TIFGroup
    weight : float
        Conductance increment per spike, must be non-negative; the sign of
        the effect comes from the transmitter.
    sparseness : float
        Connection probability in (0, 1].
    transmitter : str
        'GLUT' (AMPA conductance) or 'GABA'.
    seed : int
        Seed for the connectivity draw.
    name : str, optional
    """

    def __init__(self, source, target, weight, sparseness, transmitter,
                 seed=42, name=None):
        if transmitter not in TRANSMITTERS:
            raise ValueError(f"Unknown transmitter: {transmitter}")
        if weight < 0:
            raise ValueError(f"Weights are sign-constrained, got {weight}")
        if not 0.0 < sparseness <= 1.0:
            raise ValueError(f"Sparseness must be in (0, 1], got {sparseness}")

        self.source = source
        self.target = target
        self.weight = weight
        self.sparseness = sparseness
        self.transmitter = transmitter
        self.name = name or f"{source.name}{target.name}"

        rng = np.random.default_rng(seed)
        self.set_matrix(random_sparse_matrix(
            source.size, target.size, sparseness, weight, rng))

    def __repr__(self):
        return (f"SparseConnection(name={self.name!r}, "
                f"{self.source.name}->{self.target.name}, "
                f"{self.transmitter}, synapses={self.synapse_count})")

    @property
    def shape(self):
        return (self.source.size, self.target.size)

    @property
    def synapse_count(self):
        return int(self.matrix.nnz)

    def set_matrix(self, matrix):
        matrix = sparse.csr_matrix(matrix, dtype=np.float64)
        matrix.sum_duplicates()
        self.matrix = matrix
        self._local = matrix[:, self.target.lo:self.target.hi].tocsr()

    def propagate(self, spike_ids):
        """Deliver spikes of presynaptic neurons ``spike_ids`` (global)."""
        if len(spike_ids) == 0:
            return
        rows = self._local[spike_ids]
        increments = np.bincount(rows.indices, weights=rows.data,
                                 minlength=self.target.n_local)
        self.target.receive(self.transmitter, increments)

    def load_from_complete_file(self, path):
        """Replace the synapses with the full matrix stored in ``path``.

        Raises ``OSError`` if the file cannot be read and ``ValueError``
        if its content does not describe this connection.
        """
        with open(path, 'rb') as fh:
            loaded = spio.mmread(fh)
        entries = sparse.coo_matrix(loaded, dtype=np.float64)
        matrix = entries.tocsr()
        matrix.sum_duplicates()
        if matrix.nnz != entries.nnz:
            raise ValueError(
                f"{path}: {entries.nnz - matrix.nnz} duplicate synapses")
        if matrix.shape != self.shape:
            raise ValueError(
                f"{path}: matrix shape {matrix.shape} does not match "
                f"connection {self.name} {self.shape}")
        if matrix.nnz and not np.all(np.isfinite(matrix.data)):
            raise ValueError(f"{path}: non-finite weights")
        if matrix.nnz and matrix.data.min() < 0:
            raise ValueError(f"{path}: negative weights in sign-constrained "
                             f"connection {self.name}")
        self.set_matrix(matrix)

    def write_to_file(self, path, comment=''):
        """Write the full matrix to ``path`` in Matrix Market format."""
        with open(path, 'wb') as fh:
            spio.mmwrite(fh, self.matrix.tocoo(), comment=comment,
                         field='real', symmetry='general')
