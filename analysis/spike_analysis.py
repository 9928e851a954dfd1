"""
Spike file reading and firing statistics.

Works on the ``.ras`` files written by the spike monitors: one
``<time> <neuron index>`` pair per line.
"""

import numpy as np
from scipy import stats


def read_ras(path):
    """Load a spike file.

    Returns
    -------
    times : np.ndarray
        Spike times (s).
    ids : np.ndarray of int
        Global neuron indices.
    """
    data = np.loadtxt(path, ndmin=2)
    if data.size == 0:
        return np.array([]), np.array([], dtype=np.int64)
    return data[:, 0], data[:, 1].astype(np.int64)


def mean_firing_rate(n_spikes, n_neurons, duration_s):
    """Population-averaged firing rate in Hz."""
    if n_neurons <= 0 or duration_s <= 0:
        return 0.0
    return n_spikes / n_neurons / duration_s


def spike_trains(times, ids):
    """Split flat spike arrays into per-neuron sorted spike trains.

    Returns
    -------
    trains : dict
        neuron index -> np.ndarray of spike times.
    """
    order = np.lexsort((times, ids))
    times = times[order]
    ids = ids[order]
    neurons, starts = np.unique(ids, return_index=True)
    return {int(n): t for n, t in zip(neurons, np.split(times, starts[1:]))}


def isi_cv(times, ids, min_spikes=3):
    """Mean coefficient of variation of inter-spike intervals.

    Neurons with fewer than ``min_spikes`` spikes are ignored. Returns NaN
    if no neuron qualifies.
    """
    cvs = []
    for train in spike_trains(times, ids).values():
        if len(train) < min_spikes:
            continue
        isis = np.diff(train)
        if isis.mean() > 0:
            cvs.append(stats.variation(isis))
    if len(cvs) == 0:
        return float('nan')
    return float(np.mean(cvs))


def participation_fraction(ids, n_neurons):
    """Fraction of neurons that fired at least once."""
    if n_neurons <= 0:
        return 0.0
    return len(np.unique(ids)) / n_neurons


def summarize_ras(path, n_neurons, duration_s):
    """Rate, ISI CV and participation for one spike file."""
    times, ids = read_ras(path)
    return {
        'n_spikes': int(len(times)),
        'rate_hz': float(mean_firing_rate(len(times), n_neurons, duration_s)),
        'cv_isi': isi_cv(times, ids),
        'participation': float(participation_fraction(ids, n_neurons)),
    }
