"""
Connectivity files: loading precomputed blocks and saving network snapshots.

Block files use the Matrix Market coordinate format (``.wmat``). Files
written by :func:`save` carry a ``networkscale`` comment in their header.

A snapshot is a small text manifest plus one ``.wmat`` file per block,
written next to it as ``<stem>.<block>.wmat``:

  # coba network state
  networkscale 1
  population e 3200
  population i 800
  connection ee e e GLUT 0.4 204612 net.ee.wmat
  ...

Precomputed matrices correspond to the unscaled network, so loading is only
allowed at networkscale 1.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from benchmark.errors import (
    ConnectivityLoadError, ConnectivityMismatchError, OutputWriteError,
)
from benchmark.network import CONNECTION_ORDER

logger = logging.getLogger(__name__)

SNAPSHOT_HEADER = "# coba network state"
BLOCK_NAMES = tuple(src + dst for src, dst in CONNECTION_ORDER)

_SCALE_TAG = re.compile(r"networkscale\s+(\d+)")


@dataclass
class NetworkSnapshot:
    networkscale: int
    populations: Dict[str, int] = field(default_factory=dict)
    blocks: Dict[str, Tuple[str, int]] = field(default_factory=dict)

    def block_path(self, name):
        return self.blocks[name][0]

    def block_count(self, name):
        return self.blocks[name][1]


def read_scale_tag(path) -> Optional[int]:
    """Network scale recorded in a ``.wmat`` header, or None if untagged."""
    try:
        with open(path, 'r') as fh:
            for line in fh:
                if not line.startswith('%'):
                    break
                match = _SCALE_TAG.search(line)
                if match:
                    return int(match.group(1))
    except (OSError, UnicodeDecodeError) as exc:
        raise ConnectivityLoadError(
            f"Cannot read connectivity file {path}: {exc}") from exc
    return None


def load(connection, path, networkscale):
    """Replace the synapses of ``connection`` with the matrix in ``path``.

    Raises
    ------
    ConnectivityMismatchError
        If ``networkscale`` is not 1, or the file is tagged for another scale.
    ConnectivityLoadError
        If the file is missing, malformed or does not fit the connection.
    """
    if networkscale != 1:
        raise ConnectivityMismatchError(
            f"Cannot load {path} for connection {connection.name}: connectivity "
            f"files describe the unscaled network, networkscale is {networkscale}")

    tag = read_scale_tag(path)
    if tag is not None and tag != networkscale:
        raise ConnectivityMismatchError(
            f"{path} was saved at networkscale {tag}, not {networkscale}")

    try:
        connection.load_from_complete_file(path)
    except OSError as exc:
        raise ConnectivityLoadError(
            f"Cannot read connectivity file {path}: {exc}") from exc
    except (ValueError, IndexError) as exc:
        raise ConnectivityLoadError(
            f"Malformed connectivity file {path}: {exc}") from exc
    logger.info("Loaded %d synapses for %s from %s",
                connection.synapse_count, connection.name, path)


def load_all(network, config):
    """Apply every connectivity file given in ``config``, in block order.

    Returns the names of the replaced blocks.
    """
    files = config.connectivity_files
    if not files:
        return []
    if config.networkscale != 1:
        raise ConnectivityMismatchError(
            f"Connectivity files ({', '.join(sorted(files))}) can only be "
            f"loaded at networkscale 1, got {config.networkscale}")

    logger.info("Loading connectivity from file.")
    loaded = []
    for name in BLOCK_NAMES:
        if name in files:
            load(network.connections[name], files[name], config.networkscale)
            loaded.append(name)
    return loaded


def block_file(path, name):
    stem = os.path.splitext(path)[0]
    return f"{stem}.{name}.wmat"


def save(network, path, networkscale, rank=0):
    """Write a snapshot of ``network`` to ``path``.

    Only the coordinating process (rank 0) writes; every rank holds the
    complete connectivity. Returns the manifest path, or None on other ranks.

    Raises
    ------
    OutputWriteError
        If any file cannot be written.
    """
    if rank != 0:
        return None

    lines = [SNAPSHOT_HEADER, f"networkscale {networkscale}"]
    for ps in network.spec.populations:
        lines.append(f"population {ps.name} {ps.size}")

    try:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        for cs in network.spec.connections:
            con = network.connections[cs.name]
            wmat = block_file(path, cs.name)
            con.write_to_file(
                wmat, comment=f"networkscale {networkscale}\nconnection {cs.name}")
            lines.append(
                f"connection {cs.name} {cs.source} {cs.target} {cs.transmitter} "
                f"{cs.weight} {con.synapse_count} {os.path.basename(wmat)}")
        with open(path, 'w') as fh:
            fh.write("\n".join(lines) + "\n")
    except OSError as exc:
        raise OutputWriteError(f"Cannot save network state to {path}: {exc}") from exc

    logger.info("Saved network state to %s", path)
    return path


def read_snapshot(path) -> NetworkSnapshot:
    """Parse a snapshot manifest written by :func:`save`.

    Block paths in the result are absolute or relative to the current
    directory, ready to be passed as ``fee``/``fei``/``fie``/``fii``.
    """
    try:
        with open(path, 'r') as fh:
            lines = [ln.strip() for ln in fh if ln.strip()]
    except OSError as exc:
        raise ConnectivityLoadError(f"Cannot read snapshot {path}: {exc}") from exc

    if not lines or lines[0] != SNAPSHOT_HEADER:
        raise ConnectivityLoadError(f"{path} is not a network snapshot")

    base = os.path.dirname(path)
    snapshot = None
    try:
        for line in lines[1:]:
            parts = line.split()
            if parts[0] == 'networkscale':
                snapshot = NetworkSnapshot(networkscale=int(parts[1]))
            elif parts[0] == 'population':
                snapshot.populations[parts[1]] = int(parts[2])
            elif parts[0] == 'connection':
                snapshot.blocks[parts[1]] = (os.path.join(base, parts[7]),
                                             int(parts[6]))
            else:
                raise ValueError(f"unknown record '{parts[0]}'")
    except (AttributeError, IndexError, ValueError) as exc:
        raise ConnectivityLoadError(f"Malformed snapshot {path}: {exc}") from exc

    if snapshot is None:
        raise ConnectivityLoadError(f"{path} has no networkscale record")
    return snapshot
