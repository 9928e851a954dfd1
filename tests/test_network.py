"""
Tests for population/connection descriptions and their instantiation.
"""
import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from benchmark.config import BenchmarkConfig, resolve_config
from benchmark.errors import NetworkConstructionError
from benchmark.network import (
    CONNECTION_ORDER, build_specs, instantiate,
)
from engine.system import Simulation


class TestSpecs:

    def test_two_populations_four_connections(self):
        spec = build_specs(resolve_config())
        assert [p.name for p in spec.populations] == ['e', 'i']
        assert [c.name for c in spec.connections] == ['ee', 'ei', 'ie', 'ii']
        assert [(c.source, c.target) for c in spec.connections] == list(CONNECTION_ORDER)

    @pytest.mark.parametrize("scale", [1, 2, 5, 16])
    def test_scaled_sizes(self, scale):
        spec = build_specs(resolve_config(networkscale=scale))
        assert spec.population('e').size == 3200 * scale
        assert spec.population('i').size == 800 * scale
        for con in spec.connections:
            assert con.sparseness == pytest.approx(0.02 / scale)
            assert con.sparseness * scale == pytest.approx(0.02)

    def test_weights_and_transmitters(self):
        spec = build_specs(resolve_config())
        by_name = {c.name: c for c in spec.connections}
        for name in ('ee', 'ei'):
            assert by_name[name].weight == 0.4
            assert by_name[name].transmitter == 'GLUT'
        for name in ('ie', 'ii'):
            assert by_name[name].weight == 5.1
            assert by_name[name].transmitter == 'GABA'
        assert all(c.weight > 0 for c in spec.connections)

    def test_population_settings_identical_except_size(self):
        spec = build_specs(resolve_config(num_timesteps_delay=3, fast=True))
        e, i = spec.populations
        for attr in ('refractory_period', 'bg_current', 'delay_steps', 'record'):
            assert getattr(e, attr) == getattr(i, attr)
        assert e.delay_steps == 3
        assert e.refractory_period == pytest.approx(5e-3)
        assert e.record is False

    def test_unknown_population(self):
        spec = build_specs(resolve_config())
        with pytest.raises(KeyError):
            spec.population('x')

    def test_non_positive_population_rejected(self):
        # bypasses resolve_config validation on purpose
        cfg = BenchmarkConfig(networkscale=0)
        with pytest.raises(NetworkConstructionError):
            build_specs(cfg)


class TestInstantiate:

    def test_engine_objects_match_specs(self, tmp_path):
        cfg = resolve_config(dir=str(tmp_path), num_timesteps_delay=2)
        spec = build_specs(cfg)
        with Simulation(str(tmp_path)) as sim:
            net = instantiate(spec, sim, seed=cfg.seed)
            assert net.populations['e'].size == 3200
            assert net.populations['i'].size == 800
            assert net.populations['e'].delay == 2
            assert net.populations['i'].refractory_steps == 50
            assert np.allclose(net.populations['e'].bg_current, 2e-2)
            assert [c.name for c in sim.connections] == ['ee', 'ei', 'ie', 'ii']
            ee = net.connections['ee']
            assert ee.source is net.populations['e']
            assert ee.target is net.populations['e']
            assert net.connections['ie'].transmitter == 'GABA'

    def test_expected_synapse_counts(self, tmp_path):
        cfg = resolve_config(dir=str(tmp_path))
        with Simulation(str(tmp_path)) as sim:
            net = instantiate(build_specs(cfg), sim, seed=cfg.seed)
            counts = net.connection_counts()
        expected = {'ee': 3200 * 3200, 'ei': 3200 * 800,
                    'ie': 800 * 3200, 'ii': 800 * 800}
        for name, pairs in expected.items():
            mean = 0.02 * pairs
            std = np.sqrt(pairs * 0.02 * 0.98)
            assert abs(counts[name] - mean) < 6 * std

    def test_same_seed_same_connectivity(self, tmp_path):
        cfg = resolve_config(dir=str(tmp_path))
        with Simulation(str(tmp_path)) as a, Simulation(str(tmp_path)) as b:
            net_a = instantiate(build_specs(cfg), a, seed=7)
            net_b = instantiate(build_specs(cfg), b, seed=7)
            diff = net_a.connections['ei'].matrix - net_b.connections['ei'].matrix
            assert net_a.connections['ei'].synapse_count > 0
            assert abs(diff).max() == 0

    def test_scale_two_mean_convergence_unchanged(self, tmp_path):
        cfg = resolve_config(dir=str(tmp_path), networkscale=2)
        with Simulation(str(tmp_path)) as sim:
            net = instantiate(build_specs(cfg), sim, seed=cfg.seed)
            ee = net.connections['ee']
            # 0.02 * 3200 = 64 inputs per target at any scale
            assert ee.synapse_count / ee.shape[1] == pytest.approx(64, rel=0.05)
