"""
Tests for multi-process runs over shared memory.
"""
import numpy as np
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from analysis.spike_analysis import read_ras
from benchmark.config import resolve_config
from benchmark.runner import BenchmarkRunner
from run_parallel import launch, main

SIMTIME = 0.02


def _spikes(out_dir, ranks, population):
    pairs = []
    for rank in ranks:
        times, ids = read_ras(os.path.join(out_dir, f"coba.{rank}.{population}.ras"))
        pairs.extend(zip(np.round(times, 4), ids))
    return sorted(pairs)


class TestLaunch:

    def test_two_ranks_fast(self, tmp_path):
        cfg = resolve_config(simtime=SIMTIME, fast=True, dir=str(tmp_path),
                             timefile=str(tmp_path / "timefile.dat"))
        assert launch(cfg, 2) == [0, 0]
        assert os.path.exists(tmp_path / "timefile.0.dat")
        assert os.path.exists(tmp_path / "timefile.1.dat")
        assert not os.path.exists(tmp_path / "timefile.dat")
        elapsed = [f for f in os.listdir(str(tmp_path)) if f.startswith("elapsed")]
        assert elapsed == ["elapsed.dat"]

    def test_partitioned_run_matches_single_process(self, tmp_path):
        single_dir = tmp_path / "single"
        multi_dir = tmp_path / "multi"
        BenchmarkRunner({'simtime': SIMTIME, 'dir': str(single_dir)}).run()
        cfg = resolve_config(simtime=SIMTIME, dir=str(multi_dir))
        assert launch(cfg, 2) == [0, 0]
        for pop in ('e', 'i'):
            assert os.path.exists(multi_dir / f"coba.1.{pop}.ras")
            assert _spikes(str(multi_dir), [0, 1], pop) == _spikes(str(single_dir), [0], pop)

    def test_failure_on_every_rank(self, tmp_path):
        cfg = resolve_config(simtime=SIMTIME, fast=True, dir=str(tmp_path),
                             networkscale=2, fee=str(tmp_path / "ee.wmat"))
        assert launch(cfg, 2) == [1, 1]


class TestMain:

    def test_invalid_rank_count(self, tmp_path):
        assert main(['--ranks', '-1', '--fast', '--dir', str(tmp_path)]) == 1

    def test_invalid_configuration(self, tmp_path):
        assert main(['--ranks', '2', '--networkscale', '0']) == 1

    def test_help(self):
        assert main(['--help']) == 1
