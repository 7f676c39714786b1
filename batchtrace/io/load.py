# batchtrace/io/load.py
from __future__ import annotations

from typing import Iterable

from batchtrace.io.mdf_reader import AsammdfReader
from batchtrace.io.transport import InMemoryTransport


def load_mdf_transport(
    path: str,
    names: Iterable[str] | None = None,
    *,
    t0_ms: int = 0,
    deferred: bool = False,
) -> InMemoryTransport:
    """Serve the channels of an MDF measurement through an InMemoryTransport."""
    with AsammdfReader(path, t0_ms=t0_ms) as reader:
        if names is None:
            names = [info.name for info in reader.list_channels()]
        recordings = reader.read_channels(names)

    return InMemoryTransport(recordings, deferred=deferred)
