# batchtrace/core/frame.py
from __future__ import annotations

import logging
import math
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping

import numpy as np

logger = logging.getLogger(__name__)


def coerce_value(value: Any) -> Any:
    """
    Normalize a raw channel value; returns None when the value is absent
    or malformed (NaN).
    """
    if value is None:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def trigger_string(value: Any) -> str | None:
    """
    String form used for trigger comparison.

    Booleans render as "true"/"false" and integral floats as integers, so
    1, 1.0 and "1" all compare equal to a "1" trigger value. Floats follow
    JavaScript number formatting: exponent form from 1e21 up and below 1e-6.
    """
    value = coerce_value(value)
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        magnitude = abs(value)
        if magnitude >= 1e21 or 0 < magnitude < 1e-6:
            return np.format_float_scientific(value, unique=True, trim="-", exp_digits=1)
        if value.is_integer():
            return str(int(value))
        return np.format_float_positional(value, unique=True, trim="-")
    return str(value)


@dataclass(frozen=True, slots=True)
class Sample:
    """One raw (time, value) pair as returned by a channel query."""
    time: int
    value: Any = None
    selector: str | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Sample | None":
        """
        Parse the host wire shape
        {"time": ..., "value": ..., "queryRef": {"query": {"selector": ...}}}.

        Returns None when the time cannot be read.
        """
        try:
            time = int(raw["time"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Dropping sample without a usable time: {raw!r}")
            return None

        try:
            selector = raw["queryRef"]["query"]["selector"]
        except (KeyError, TypeError):
            selector = None

        return cls(time=time, value=coerce_value(raw.get("value")), selector=selector)


@dataclass(slots=True)
class Frame:
    """Aligned multi-channel sample; values[0] is the trigger channel."""
    time: int
    values: list[Any] = field(default_factory=list)

    @classmethod
    def empty(cls, time: int, n_channels: int) -> "Frame":
        return cls(time=time, values=[None] * n_channels)

    def merge_from(self, other: "Frame") -> None:
        """Copy every present value of `other` into this frame; None never overwrites."""
        for i, value in enumerate(other.values):
            if value is None:
                continue
            if i < len(self.values):
                self.values[i] = value
            else:
                self.values.extend([None] * (i - len(self.values)))
                self.values.append(value)

    @property
    def trigger(self) -> Any:
        return self.values[0] if self.values else None

    @property
    def columns(self) -> list[Any]:
        return self.values[1:]


def _neg_time(frame: Frame) -> int:
    return -frame.time


class FrameBuffer:
    """
    Frames ordered newest first, unique by time.

    Lookups are binary searches on time; callers keep the ordering by
    inserting at the index returned by find_index().
    """

    __slots__ = ("_frames",)

    def __init__(self, frames: Iterable[Frame] | None = None) -> None:
        self._frames: list[Frame] = list(frames) if frames is not None else []

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(self._frames)

    def __getitem__(self, index: int) -> Frame:
        return self._frames[index]

    def __repr__(self) -> str:
        return f"FrameBuffer(n={len(self)}, t_start={self.t_start}, t_end={self.t_end})"

    @property
    def t_start(self) -> int | None:
        return None if not self._frames else self._frames[-1].time

    @property
    def t_end(self) -> int | None:
        return None if not self._frames else self._frames[0].time

    def find_index(self, time: int) -> int | None:
        """First index whose frame time is <= `time`, or None."""
        index = bisect_left(self._frames, -time, key=_neg_time)
        return index if index < len(self._frames) else None

    def append(self, frame: Frame) -> int:
        self._frames.append(frame)
        return len(self._frames) - 1

    def insert(self, index: int, frame: Frame) -> None:
        self._frames.insert(index, frame)

    def truncate_from(self, index: int) -> None:
        """Drop the frame at `index` and every older one."""
        del self._frames[index:]

    def clear(self) -> None:
        self._frames.clear()

    def snapshot(self) -> list[Frame]:
        return list(self._frames)
