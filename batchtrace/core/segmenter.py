# batchtrace/core/segmenter.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import numpy as np

from .frame import Frame, coerce_value, trigger_string

# Labels logged up to this many ms before their trigger still belong to it.
LABEL_LOOKBACK_MS = 100


@dataclass(frozen=True, slots=True)
class Batch:
    """
    A closed interval between a start-trigger frame and the next end-trigger
    frame, annotated with the label values seen for it.
    """
    start_time: int
    end_time: int
    columns: tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))

    def to_dict(self) -> dict[str, Any]:
        return {
            "startTime": self.start_time,
            "endTime": self.end_time,
            "columns": list(self.columns),
        }


@dataclass(frozen=True, slots=True)
class _Point:
    time: int
    trigger: str | None
    columns: tuple[Any, ...]

    @property
    def has_complete_columns(self) -> bool:
        return bool(self.columns) and all(c is not None for c in self.columns)


def _normalize(frames: Iterable[Frame]) -> list[_Point]:
    return [
        _Point(
            time=frame.time,
            trigger=trigger_string(frame.values[0]) if frame.values else None,
            columns=tuple(coerce_value(v) for v in frame.values[1:]),
        )
        for frame in frames
    ]


def _match_indices(points: Sequence[_Point], value: str) -> np.ndarray:
    """Ascending indices of the points whose trigger equals `value`."""
    matches = np.fromiter((p.trigger == value for p in points), dtype=bool, count=len(points))
    return np.flatnonzero(matches)


def _first_at_or_after(indices: np.ndarray, position: int) -> int | None:
    k = int(np.searchsorted(indices, position, side="left"))
    return int(indices[k]) if k < indices.size else None


def determine_columns(
    points: Sequence[_Point],
    start: int,
    end: int,
    floor: int = 0,
) -> tuple[Any, ...]:
    """
    Label values for the batch points[start] .. points[end].

    The first complete label set in [start, end) wins. Otherwise a complete
    set logged at most LABEL_LOOKBACK_MS before the start frame is used, as
    long as that frame lies at or after `floor` (the scan position the batch
    search started from).
    """
    for point in points[start:end]:
        if point.has_complete_columns:
            return point.columns

    if start > floor:
        before = points[start - 1]
        close_enough = points[start].time - before.time <= LABEL_LOOKBACK_MS
        if close_enough and all(c is not None for c in before.columns):
            return before.columns

    return ()


def segment_batches(
    frames: Iterable[Frame],
    batch_start_value: str,
    batch_end_value: str,
) -> list[Batch]:
    """
    Derive batches from frames given newest first.

    The frames are walked in reverse input order. A batch opens at the first
    frame whose trigger equals `batch_start_value` and closes at the first
    later frame whose trigger equals `batch_end_value`; frames up to and
    including the opening one are never considered as its end. The closing
    frame may open the next batch, which allows back-to-back batches and
    start == end trigger schemes. A trailing start without an end is dropped.

    Returns batches newest first.
    """
    points = _normalize(frames)
    points.reverse()

    starts = _match_indices(points, batch_start_value)
    ends = _match_indices(points, batch_end_value)

    batches: list[Batch] = []
    cursor = 0
    while True:
        start = _first_at_or_after(starts, cursor)
        if start is None:
            break
        end = _first_at_or_after(ends, start + 1)
        if end is None:
            break

        batches.append(
            Batch(
                start_time=points[start].time,
                end_time=points[end].time,
                columns=determine_columns(points, start, end, floor=cursor),
            )
        )
        cursor = end

    batches.reverse()
    return batches
