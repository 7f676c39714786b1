# batchtrace/core/query.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from .config import ChannelConfig, MetricInput, TimeWindow, to_iso
from .exceptions import InvalidQuery


@dataclass(frozen=True, slots=True)
class ChannelQuery:
    """
    One channel query as sent to the transport.

    Either a page (offset + limit, newest first) or a snapshot
    (post_aggr="last", limit=1, start/end bounds in ms).
    """
    selector: str
    post_aggr: str | None = None
    post_transform: str | None = None
    unit: str | None = None
    decimals: float | None = None
    factor: float | None = None
    offset: int | None = None
    limit: int | None = None
    start: int | None = None
    end: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.selector, str) or not self.selector.strip():
            raise InvalidQuery("ChannelQuery.selector must be a non-empty string.")
        if self.offset is not None and self.offset < 0:
            raise InvalidQuery("ChannelQuery.offset must be >= 0.")
        if self.limit is not None and self.limit <= 0:
            raise InvalidQuery("ChannelQuery.limit must be positive.")
        if self.start is not None and self.end is not None and self.end < self.start:
            raise InvalidQuery("ChannelQuery.end must not be before start.")

    @property
    def is_snapshot(self) -> bool:
        # page queries always carry an offset, even with a "last" aggregator
        return self.post_aggr == "last" and self.offset is None

    def to_dict(self) -> dict[str, Any]:
        """Wire payload; unset fields are omitted, bounds rendered as ISO strings."""
        payload: dict[str, Any] = {"selector": self.selector}
        optional = {
            "postAggr": self.post_aggr,
            "postTransform": self.post_transform,
            "unit": self.unit,
            "decimals": self.decimals,
            "factor": self.factor,
            "offset": self.offset,
            "limit": self.limit,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        if self.start is not None:
            payload["from"] = to_iso(self.start)
        if self.end is not None:
            payload["to"] = to_iso(self.end)
        return payload


def map_metric_input_to_query(metric: MetricInput) -> ChannelQuery:
    return ChannelQuery(
        selector=metric.selector,
        post_aggr=metric.aggregator,
        post_transform=metric.transform,
        unit=metric.unit,
        decimals=metric.decimals,
        factor=metric.factor,
    )


def build_page_queries(config: ChannelConfig, offset: int, limit: int) -> list[ChannelQuery]:
    """One paged query per channel, trigger first."""
    return [
        replace(map_metric_input_to_query(metric), offset=offset, limit=limit)
        for metric in config.channels
    ]


def build_boundary_queries(config: ChannelConfig, window: TimeWindow) -> list[ChannelQuery]:
    """Last value per channel over the window-wide span preceding window.start."""
    start, end = window.lookback()
    return [
        replace(map_metric_input_to_query(metric), post_aggr="last", limit=1, start=start, end=end)
        for metric in config.channels
    ]
