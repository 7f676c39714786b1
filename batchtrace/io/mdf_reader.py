from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Protocol

import logging

from asammdf import MDF
import numpy as np

from batchtrace.core.exceptions import ChannelNotFound
from batchtrace.io.transport import ChannelRecording

logger = logging.getLogger(__name__)


@dataclass
class RawChannelInfo:
    """
    Location of one named channel inside the MDF.

    A name may occur in several groups; the first non-master occurrence is
    the one exposed.
    """

    name: str
    unit: str | None
    group_index: int           # group id inside the MDF
    channel_index: int         # channel id inside the group


class ChannelReader(Protocol):
    """Protocol for recorded-channel sources feeding a transport."""

    def list_channels(self) -> List[RawChannelInfo]:
        ...

    def read_channels(
        self,
        channel_names: Iterable[str],
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> dict[str, ChannelRecording]:
        ...


def _seconds_to_millis(timestamps: np.ndarray, t0_ms: int) -> np.ndarray:
    return np.rint(np.asarray(timestamps, dtype=np.float64) * 1000.0).astype(np.int64) + t0_ms


def _decode_samples(samples: np.ndarray) -> np.ndarray:
    """Text channels come back as fixed-width bytes; turn them into str."""
    if samples.dtype.kind == "S":
        return np.char.decode(samples, "utf-8", errors="replace")
    return samples


class AsammdfReader:
    """Concrete ChannelReader using asammdf.MDF.

    MDF time bases are relative seconds; recordings are expressed in
    integer milliseconds, shifted by `t0_ms` (the absolute start of the
    measurement, if known).
    """

    def __init__(self, path: str, *, t0_ms: int = 0):
        self._mdf = MDF(path)
        self._t0_ms = int(t0_ms)
        # name -> RawChannelInfo
        self._index: dict[str, RawChannelInfo] = {}
        self._build_index()

    def __enter__(self) -> "AsammdfReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._mdf.close()

    # ------------------------------------------------------------------
    # Index construction
    # ------------------------------------------------------------------
    def _build_index(self) -> None:
        masters = self._mdf.masters_db

        for group_index, group in enumerate(self._mdf.groups):
            for channel_index, channel in enumerate(group.channels):
                # time base channels are not data
                if masters.get(group_index) == channel_index:
                    continue
                if channel.name in self._index:
                    continue
                self._index[channel.name] = RawChannelInfo(
                    name=channel.name,
                    unit=getattr(channel, "unit", None) or None,
                    group_index=group_index,
                    channel_index=channel_index,
                )

        logger.debug(f"Indexed {len(self._index)} channels")

    # ------------------------------------------------------------------
    # ChannelReader protocol implementation
    # ------------------------------------------------------------------
    def list_channels(self) -> List[RawChannelInfo]:
        return list(self._index.values())

    def read_channels(
        self,
        channel_names: Iterable[str],
        start_time: int | None = None,
        end_time: int | None = None,
    ) -> dict[str, ChannelRecording]:
        """Read channels by name, optionally limited to [start_time, end_time] (ms)."""
        result: dict[str, ChannelRecording] = {}

        for name in channel_names:
            info = self._index.get(name)
            if info is None:
                raise ChannelNotFound(f"Channel '{name}' not found in MDF")

            sig = self._mdf.get(group=info.group_index, index=info.channel_index)
            recording = ChannelRecording(
                selector=name,
                time=_seconds_to_millis(sig.timestamps, self._t0_ms),
                values=_decode_samples(np.asarray(sig.samples)),
                unit=info.unit,
            )

            if start_time is not None or end_time is not None:
                recording = recording.slice_time(start_time, end_time)

            result[name] = recording

        return result
