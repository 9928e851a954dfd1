"""
Tests for connectivity file loading and network snapshots.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from benchmark import connectivity
from benchmark.config import resolve_config
from benchmark.errors import (
    ConnectivityLoadError, ConnectivityMismatchError, OutputWriteError,
)
from benchmark.network import build_specs, instantiate
from engine.sparse_connection import SparseConnection
from engine.system import Simulation
from engine.tif_group import TIFGroup


@pytest.fixture(scope="module")
def saved_network(tmp_path_factory):
    """Unscaled network built with seed 42 and saved once."""
    out = tmp_path_factory.mktemp("saved")
    cfg = resolve_config(dir=str(out))
    sim = Simulation(str(out))
    net = instantiate(build_specs(cfg), sim, seed=cfg.seed)
    manifest = connectivity.save(net, str(out / "net.txt"), 1)
    yield net, manifest
    sim.free()


def _small_connection(n_pre=20, n_post=30, seed=1):
    return SparseConnection(TIFGroup(n_pre, 'e'), TIFGroup(n_post, 'i'),
                            0.4, 0.1, 'GLUT', seed=seed, name='ei')


class TestSave:

    def test_manifest_and_block_files(self, saved_network):
        net, manifest = saved_network
        base = os.path.dirname(manifest)
        for name in ('ee', 'ei', 'ie', 'ii'):
            assert os.path.exists(os.path.join(base, f"net.{name}.wmat"))
        with open(manifest) as fh:
            lines = fh.read().splitlines()
        assert lines[0] == connectivity.SNAPSHOT_HEADER
        assert lines[1] == "networkscale 1"
        assert "population e 3200" in lines
        assert "population i 800" in lines
        conn_lines = [ln for ln in lines if ln.startswith("connection")]
        assert [ln.split()[1] for ln in conn_lines] == ['ee', 'ei', 'ie', 'ii']

    def test_block_files_tagged_with_scale(self, saved_network):
        _, manifest = saved_network
        path = connectivity.block_file(manifest, 'ie')
        assert connectivity.read_scale_tag(path) == 1

    def test_read_snapshot_counts(self, saved_network):
        net, manifest = saved_network
        snap = connectivity.read_snapshot(manifest)
        assert snap.networkscale == 1
        assert snap.populations == {'e': 3200, 'i': 800}
        for name, count in net.connection_counts().items():
            assert snap.block_count(name) == count
            assert os.path.exists(snap.block_path(name))

    def test_only_rank_zero_writes(self, tmp_path, saved_network):
        net, _ = saved_network
        path = str(tmp_path / "other.txt")
        assert connectivity.save(net, path, 1, rank=1) is None
        assert os.listdir(str(tmp_path)) == []

    def test_unwritable_location(self, tmp_path, saved_network):
        net, _ = saved_network
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(OutputWriteError):
            connectivity.save(net, str(blocker / "net.txt"), 1)


class TestLoad:

    def test_reload_reproduces_counts(self, tmp_path, saved_network):
        net, manifest = saved_network
        snap = connectivity.read_snapshot(manifest)
        cfg = resolve_config(dir=str(tmp_path),
                             fee=snap.block_path('ee'), fei=snap.block_path('ei'),
                             fie=snap.block_path('ie'), fii=snap.block_path('ii'))
        with Simulation(str(tmp_path)) as sim:
            # different seed, so any match comes from the files
            fresh = instantiate(build_specs(cfg), sim, seed=1234)
            loaded = connectivity.load_all(fresh, cfg)
            assert loaded == ['ee', 'ei', 'ie', 'ii']
            assert fresh.connection_counts() == net.connection_counts()
            diff = fresh.connections['ii'].matrix - net.connections['ii'].matrix
            assert abs(diff).max() == 0

    def test_partial_files_keep_random_blocks(self, tmp_path, saved_network):
        net, manifest = saved_network
        snap = connectivity.read_snapshot(manifest)
        cfg = resolve_config(dir=str(tmp_path), fei=snap.block_path('ei'))
        with Simulation(str(tmp_path)) as sim:
            fresh = instantiate(build_specs(cfg), sim, seed=1234)
            ee_before = fresh.connections['ee'].synapse_count
            assert connectivity.load_all(fresh, cfg) == ['ei']
            assert fresh.connections['ei'].synapse_count == snap.block_count('ei')
            assert fresh.connections['ee'].synapse_count == ee_before

    def test_no_files_is_noop(self):
        assert connectivity.load_all(None, resolve_config()) == []

    def test_scaled_network_rejects_files_before_reading(self, tmp_path):
        cfg = resolve_config(networkscale=2, fee=str(tmp_path / "missing.wmat"))
        with pytest.raises(ConnectivityMismatchError):
            connectivity.load_all(None, cfg)

    def test_load_at_other_scale(self, tmp_path):
        con = _small_connection()
        path = str(tmp_path / "ei.wmat")
        con.write_to_file(path)
        with pytest.raises(ConnectivityMismatchError):
            connectivity.load(con, path, 3)

    def test_scale_tag_mismatch(self, tmp_path):
        con = _small_connection()
        path = str(tmp_path / "ei.wmat")
        con.write_to_file(path, comment="networkscale 2")
        with pytest.raises(ConnectivityMismatchError):
            connectivity.load(con, path, 1)

    def test_untagged_file_loads(self, tmp_path):
        src = _small_connection(seed=1)
        path = str(tmp_path / "ei.wmat")
        src.write_to_file(path)
        assert connectivity.read_scale_tag(path) is None
        dst = _small_connection(seed=2)
        connectivity.load(dst, path, 1)
        assert dst.synapse_count == src.synapse_count

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConnectivityLoadError):
            connectivity.load(_small_connection(), str(tmp_path / "nope.wmat"), 1)

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "bad.wmat"
        path.write_text("this is not a matrix\n1 2 3\n")
        with pytest.raises(ConnectivityLoadError):
            connectivity.load(_small_connection(), str(path), 1)

    def test_duplicate_synapses_rejected(self, tmp_path):
        path = tmp_path / "dup.wmat"
        path.write_text("%%MatrixMarket matrix coordinate real general\n"
                        "20 30 2\n1 1 0.4\n1 1 0.4\n")
        con = _small_connection()
        count_before = con.synapse_count
        with pytest.raises(ConnectivityLoadError):
            connectivity.load(con, str(path), 1)
        assert con.synapse_count == count_before

    def test_wrong_shape(self, tmp_path):
        path = str(tmp_path / "ei.wmat")
        _small_connection(n_pre=5, n_post=5).write_to_file(path)
        with pytest.raises(ConnectivityLoadError):
            connectivity.load(_small_connection(), path, 1)

    def test_load_error_is_os_error(self, tmp_path):
        with pytest.raises(OSError):
            connectivity.load(_small_connection(), str(tmp_path / "nope.wmat"), 1)


class TestReadSnapshot:

    def test_not_a_snapshot(self, tmp_path):
        path = tmp_path / "x.txt"
        path.write_text("hello\n")
        with pytest.raises(ConnectivityLoadError):
            connectivity.read_snapshot(str(path))

    def test_truncated_record(self, tmp_path):
        path = tmp_path / "x.txt"
        path.write_text(f"{connectivity.SNAPSHOT_HEADER}\nnetworkscale 1\nconnection ee\n")
        with pytest.raises(ConnectivityLoadError):
            connectivity.read_snapshot(str(path))

    def test_missing_snapshot(self, tmp_path):
        with pytest.raises(ConnectivityLoadError):
            connectivity.read_snapshot(str(tmp_path / "none.txt"))

    def test_block_file_naming(self):
        assert connectivity.block_file("/tmp/net.txt", "ee") == "/tmp/net.ee.wmat"
        assert connectivity.block_file("state", "ii") == "state.ii.wmat"
