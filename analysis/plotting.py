"""
Plotting utilities for benchmark spike output.
"""

import matplotlib
import matplotlib.pyplot as plt

from analysis.spike_analysis import read_ras

POPULATION_COLORS = {'e': 'firebrick', 'i': 'navy'}


def plot_raster(ras_files, save_path, t_max=None, max_neurons=500, title=''):
    """Raster plot of one or more populations.

    Parameters
    ----------
    ras_files : dict
        Population name -> ``.ras`` path.
    save_path : str
        Output image path.
    t_max : float, optional
        Only plot spikes before this time (s).
    max_neurons : int
        Only plot neurons with index below this, per population.
    """
    fig, axes = plt.subplots(len(ras_files), 1, figsize=(10, 2.5 * len(ras_files)),
                             sharex=True, squeeze=False)

    for ax, (name, path) in zip(axes[:, 0], ras_files.items()):
        times, ids = read_ras(path)
        mask = ids < max_neurons
        if t_max is not None:
            mask &= times <= t_max
        ax.plot(times[mask], ids[mask], '.', markersize=1,
                color=POPULATION_COLORS.get(name, 'k'))
        ax.set_ylabel(f'{name} neuron')
        ax.set_ylim([-0.5, max_neurons - 0.5])

    axes[0, 0].set_title(title if title else 'COBA benchmark raster')
    axes[-1, 0].set_xlabel('Time (s)')

    plt.tight_layout()
    plt.savefig(save_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return save_path


def use_headless_backend():
    """Switch matplotlib to a non-interactive backend (batch runs)."""
    matplotlib.use('Agg')
