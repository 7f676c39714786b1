# batchtrace/io/transport.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Mapping, Sequence

import numpy as np

from batchtrace.core.exceptions import InvalidRecording
from batchtrace.core.frame import Sample, coerce_value
from batchtrace.core.query import ChannelQuery

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChannelRecording:
    """Recorded samples of one selector: int64 ms time vector + values vector."""

    selector: str
    time: np.ndarray = field(repr=False)
    values: np.ndarray = field(repr=False)
    unit: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.selector, str) or not self.selector.strip():
            raise InvalidRecording("ChannelRecording.selector must be a non-empty string.")

        t = np.asarray(self.time)
        v = np.asarray(self.values)

        if t.ndim != 1:
            raise InvalidRecording(f"`time` must be 1D, got shape {t.shape}")
        if v.ndim != 1:
            raise InvalidRecording(f"`values` must be 1D, got shape {v.shape}")
        if t.size != v.size:
            raise InvalidRecording(
                f"`time` and `values` must have same length, got {t.size} vs {v.size}"
            )

        if t.size > 0:
            if not np.issubdtype(t.dtype, np.number):
                raise InvalidRecording("`time` must be numeric (ms timestamps).")
            if not np.isfinite(t).all():
                raise InvalidRecording("`time` contains non-finite values (NaN/Inf).")
            if np.any(np.diff(t) < 0):
                raise InvalidRecording("`time` must be monotonic non-decreasing.")

        object.__setattr__(self, "time", t.astype(np.int64, copy=False))
        object.__setattr__(self, "values", v)

    @property
    def n(self) -> int:
        return int(self.time.size)

    @property
    def t_start(self) -> int | None:
        return None if self.n == 0 else int(self.time[0])

    @property
    def t_end(self) -> int | None:
        return None if self.n == 0 else int(self.time[-1])

    def slice_time(
        self,
        t_min: int | None = None,
        t_max: int | None = None,
        *,
        closed: str = "both",
    ) -> "ChannelRecording":
        if closed not in {"both", "left", "right", "neither"}:
            raise ValueError("closed must be one of: both, left, right, neither")

        if self.n == 0:
            return self

        t = self.time
        mask = np.ones_like(t, dtype=bool)

        if t_min is not None:
            mask &= (t >= t_min) if closed in {"both", "left"} else (t > t_min)
        if t_max is not None:
            mask &= (t <= t_max) if closed in {"both", "right"} else (t < t_max)

        return ChannelRecording(
            selector=self.selector,
            time=t[mask],
            values=self.values[mask],
            unit=self.unit,
        )

    def newest_first(self, offset: int = 0, limit: int | None = None) -> list[Sample]:
        """Samples ordered newest first, skipping `offset` and keeping at most `limit`."""
        stop = None if limit is None else offset + limit
        times = self.time[::-1][offset:stop]
        values = self.values[::-1][offset:stop]
        return [
            Sample(time=int(t), value=coerce_value(v), selector=self.selector)
            for t, v in zip(times, values)
        ]


@dataclass
class _PendingCall:
    call_id: int
    callback: Callable[[Sequence[Sequence[Sample]] | None], None]
    results: list[list[Sample]]
    cancelled: bool = False
    delivered: bool = False


class InMemoryTransport:
    """
    Query transport answering from recorded channels.

    Page queries return the newest-first slice [offset : offset + limit];
    "last" queries return the newest sample in [start, end), stamped at
    `end`. Unknown selectors yield empty lists.

    With deferred=True answers are queued until flush(), so a caller can
    observe cancellation of in-flight calls.
    """

    def __init__(
        self,
        recordings: Mapping[str, ChannelRecording] | Iterable[ChannelRecording] = (),
        *,
        deferred: bool = False,
    ) -> None:
        if isinstance(recordings, Mapping):
            recordings = recordings.values()
        self._recordings: dict[str, ChannelRecording] = {}
        for recording in recordings:
            self.add(recording)

        self.deferred = deferred
        self.calls: list[list[ChannelQuery]] = []
        self.cancelled: list[int] = []
        self._queue: list[_PendingCall] = []

    @property
    def selectors(self) -> list[str]:
        return list(self._recordings)

    @property
    def pending(self) -> int:
        return sum(1 for call in self._queue if not call.cancelled)

    def add(self, recording: ChannelRecording, *, overwrite: bool = False) -> None:
        if not isinstance(recording, ChannelRecording):
            raise InvalidRecording("add() expects a ChannelRecording instance.")
        if recording.selector in self._recordings and not overwrite:
            raise InvalidRecording(f"Selector '{recording.selector}' already exists (overwrite=False).")
        self._recordings[recording.selector] = recording

    def query(
        self,
        queries: Sequence[ChannelQuery],
        callback: Callable[[Sequence[Sequence[Sample]] | None], None],
    ) -> Callable[[], None]:
        call_id = len(self.calls)
        self.calls.append(list(queries))
        results = [self._answer(q) for q in queries]

        call = _PendingCall(call_id=call_id, callback=callback, results=results)

        def cancel() -> None:
            if call.cancelled or call.delivered:
                return
            call.cancelled = True
            self.cancelled.append(call.call_id)

        if self.deferred:
            self._queue.append(call)
        else:
            call.delivered = True
            callback(results)
        return cancel

    def flush(self, *, include_cancelled: bool = False) -> int:
        """
        Deliver queued answers in issue order, including calls queued while
        flushing. Cancelled calls are skipped unless include_cancelled is set
        (a backend that cannot abort in time). Returns the number delivered.
        """
        delivered = 0
        while self._queue:
            call = self._queue.pop(0)
            if call.cancelled and not include_cancelled:
                continue
            call.delivered = True
            call.callback(call.results)
            delivered += 1
        return delivered

    def _answer(self, query: ChannelQuery) -> list[Sample]:
        recording = self._recordings.get(query.selector)
        if recording is None:
            logger.debug(f"No recording for selector {query.selector!r}")
            return []

        if query.is_snapshot:
            recording = recording.slice_time(query.start, query.end, closed="left")
            latest = recording.newest_first(0, 1)
            # the aggregate is reported at the end of its interval
            if query.end is not None:
                latest = [replace(s, time=query.end) for s in latest]
            return latest

        if query.start is not None or query.end is not None:
            recording = recording.slice_time(query.start, query.end)
        return recording.newest_first(query.offset or 0, query.limit)


def recording_from_pairs(
    selector: str,
    pairs: Iterable[tuple[int, Any]],
    unit: str | None = None,
) -> ChannelRecording:
    """Build a recording from (time_ms, value) pairs in any order."""
    ordered = sorted(pairs, key=lambda p: p[0])
    values = np.empty(len(ordered), dtype=object)
    values[:] = [v for _, v in ordered]
    return ChannelRecording(
        selector=selector,
        time=np.array([t for t, _ in ordered], dtype=np.int64),
        values=values,
        unit=unit,
    )
