# batchtrace/core/assembler.py
from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from .config import TimeWindow
from .frame import Frame, FrameBuffer, Sample, coerce_value
from .query import ChannelQuery

logger = logging.getLogger(__name__)

RawResults = Sequence[Sequence["Sample | Mapping[str, Any]"]]


class TimeSeriesAssembler:
    """
    Merges per-query result pages into one newest-first FrameBuffer.

    Frames older than the window start are only kept long enough to carry
    their values into a merge; they never stay in the buffer.
    """

    def __init__(self, window: TimeWindow) -> None:
        self._window = window
        self._buffer = FrameBuffer()

    @property
    def window(self) -> TimeWindow:
        return self._window

    @property
    def frames(self) -> FrameBuffer:
        return self._buffer

    def reset(self, window: TimeWindow | None = None) -> None:
        if window is not None:
            self._window = window
        self._buffer.clear()

    def ingest(self, raw_results: RawResults, queries: Sequence[ChannelQuery]) -> FrameBuffer:
        """Transpose one fetched page and merge every resulting frame."""
        for frame in self.transpose(raw_results, queries):
            self.merge(frame)
        return self._buffer

    # ------------------------------------------------------------------
    # Page transposition
    # ------------------------------------------------------------------
    def transpose(self, raw_results: RawResults, queries: Sequence[ChannelQuery]) -> list[Frame]:
        """
        Turn one list of samples per query into frames, newest first,
        one frame per distinct timestamp, each sized to len(queries).
        """
        n_channels = len(queries)
        page = FrameBuffer()

        for position, raw_list in enumerate(raw_results):
            samples = _parse_samples(raw_list)
            channel = _resolve_channel_index(position, samples, queries)
            if not 0 <= channel < n_channels:
                logger.warning(
                    f"Dropping result list {position}: channel index {channel} "
                    f"outside {n_channels} queries"
                )
                continue

            for sample in samples:
                index = page.find_index(sample.time)
                if index is None:
                    frame = Frame.empty(sample.time, n_channels)
                    page.append(frame)
                elif page[index].time < sample.time:
                    frame = Frame.empty(sample.time, n_channels)
                    page.insert(index, frame)
                else:
                    frame = page[index]
                frame.values[channel] = sample.value

        return page.snapshot()

    # ------------------------------------------------------------------
    # Merge into assembled state
    # ------------------------------------------------------------------
    def merge(self, frame: Frame) -> FrameBuffer:
        buffer = self._buffer
        index = buffer.find_index(frame.time)

        if index is None:
            index = buffer.append(frame)
        elif buffer[index].time == frame.time:
            buffer[index].merge_from(frame)
        else:
            buffer.insert(index, frame)

        # Only there to fill values for the windowed queries.
        if buffer[index].time < self._window.start:
            buffer.truncate_from(index)

        return buffer


def _parse_samples(raw_list: Sequence[Any]) -> list[Sample]:
    samples: list[Sample] = []
    for raw in raw_list or ():
        if isinstance(raw, Sample):
            samples.append(
                raw if raw.value is None else Sample(raw.time, coerce_value(raw.value), raw.selector)
            )
        elif isinstance(raw, Mapping):
            sample = Sample.from_mapping(raw)
            if sample is not None:
                samples.append(sample)
        else:
            logger.warning(f"Dropping unrecognized sample {raw!r}")
    return samples


def _resolve_channel_index(
    position: int,
    samples: Sequence[Sample],
    queries: Sequence[ChannelQuery],
) -> int:
    """
    Channel index of one result list, matched on the originating selector.

    The transport may reorder lists or drop empty ones, so the position is
    only trusted when it agrees with the selector or nothing better exists.
    """
    if not samples:
        return position

    selector = samples[0].selector
    if selector is None:
        return position

    if position < len(queries) and queries[position].selector == selector:
        return position

    for index, query in enumerate(queries):
        if query.selector == selector:
            return index

    logger.warning(
        f"Result list {position} has selector {selector!r} matching no query; "
        f"using positional index"
    )
    return position
