"""
Vectorized conductance-based integrate-and-fire neuron group.

Leaky integrate-and-fire neurons with exponentially decaying AMPA and GABA
conductances, as used in the Vogels & Abbott (2005) network and the COBA
benchmark of Brette et al. (2007):

  dV/dt = (E_rest - V + g_ampa (E_ampa - V) + g_gaba (E_gaba - V) + I_bg) / tau_mem

Conductances are dimensionless (units of the leak conductance); the
background current is expressed in volts of steady-state depolarisation.
After a spike the membrane is clamped at E_rest for the refractory period.

Each process only integrates its own contiguous slice of the group.
"""

import numpy as np

from engine.comm import partition


TIF_DEFAULTS = {
    'tau_mem': 20e-3,      # s
    'tau_ampa': 5e-3,      # s
    'tau_gaba': 10e-3,     # s
    'e_rest': -60e-3,      # V
    'e_thr': -50e-3,       # V
    'e_rev_ampa': 0.0,     # V
    'e_rev_gaba': -80e-3,  # V
    'refractory': 5e-3,    # s
}


class TIFGroup:
    """Conductance-based LIF population, local slice of ``n`` neurons.

    Parameters
    ----------
    n : int
        Total number of neurons in the group (all ranks).
    name : str
        Short identifier, used in spike files and logs.
    rank, size : int
        Position of this process in the group.
    dt : float
        Integration timestep (s).
    seed : int
        Seed for the random initial membrane potentials.
    params : dict, optional
        Overrides for ``TIF_DEFAULTS``.
    """

    def __init__(self, n, name, rank=0, size=1, dt=1e-4, seed=42,
                 params=None):
        if n <= 0:
            raise ValueError(f"Neuron group '{name}' needs a positive size, got {n}")
        p = dict(TIF_DEFAULTS)
        p.update(params or {})

        self.name = name
        self.size = n
        self.dt = dt
        self.lo, self.hi = partition(n, rank, size)
        self.n_local = self.hi - self.lo

        self.e_rest = p['e_rest']
        self.e_thr = p['e_thr']
        self.e_rev_ampa = p['e_rev_ampa']
        self.e_rev_gaba = p['e_rev_gaba']
        self.tau_mem = p['tau_mem']
        self.scale_mem = dt / p['tau_mem']
        self.scale_ampa = np.exp(-dt / p['tau_ampa'])
        self.scale_gaba = np.exp(-dt / p['tau_gaba'])

        self.delay = 1
        self.refractory_steps = 0
        self.set_refractory_period(p['refractory'])

        # drawn for the whole group so every partition sees the same state
        rng = np.random.default_rng(seed)
        mem0 = rng.uniform(self.e_rest, self.e_thr, size=n)
        self.mem = mem0[self.lo:self.hi].copy()
        self.g_ampa = np.zeros(self.n_local)
        self.g_gaba = np.zeros(self.n_local)
        self.bg_current = np.zeros(self.n_local)
        self.ref = np.zeros(self.n_local, dtype=np.int64)
        self.spiked = np.zeros(self.n_local, dtype=bool)

        self.monitors = []
        self.spike_count = 0

    def __repr__(self):
        return (f"TIFGroup(name={self.name!r}, size={self.size}, "
                f"local=[{self.lo}, {self.hi}))")

    def set_delay(self, steps):
        """Axonal delay of outgoing spikes in timesteps (minimum 1)."""
        if steps < 0:
            raise ValueError(f"Delay must be non-negative, got {steps}")
        self.delay = max(int(steps), 1)

    def set_refractory_period(self, seconds):
        self.refractory_steps = int(round(seconds / self.dt))

    def set_state(self, name, value):
        """Set a state vector (e.g. ``'bg_current'``) to a constant."""
        if name == 'bg_current':
            self.bg_current[:] = value
        elif name == 'mem':
            self.mem[:] = value
        elif name == 'g_ampa':
            self.g_ampa[:] = value
        elif name == 'g_gaba':
            self.g_gaba[:] = value
        else:
            raise KeyError(f"Unknown state variable: {name}")

    def receive(self, transmitter, increments):
        """Add conductance increments (local target indices)."""
        if transmitter == 'GLUT':
            self.g_ampa += increments
        else:
            self.g_gaba += increments

    def step(self):
        """Advance all local neurons by one timestep."""
        t_leak = self.e_rest - self.mem
        t_exc = self.g_ampa * (self.e_rev_ampa - self.mem)
        t_inh = self.g_gaba * (self.e_rev_gaba - self.mem)
        self.mem += (t_leak + t_exc + t_inh + self.bg_current) * self.scale_mem

        refractory = self.ref > 0
        self.spiked = (~refractory) & (self.mem > self.e_thr)
        self.mem[self.spiked | refractory] = self.e_rest
        self.ref[refractory] -= 1
        self.ref[self.spiked] = self.refractory_steps
        self.spike_count += int(self.spiked.sum())

        self.g_ampa *= self.scale_ampa
        self.g_gaba *= self.scale_gaba

    def is_finite(self):
        return bool(np.all(np.isfinite(self.mem)))

    def local_spike_ids(self):
        """Global neuron indices that spiked in the last step."""
        return np.flatnonzero(self.spiked) + self.lo
