# batchtrace/core/config.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from numbers import Real
from typing import Any, Mapping

from .exceptions import InvalidConfig, InvalidWindow


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


@dataclass(frozen=True, slots=True)
class MetricInput:
    """
    Host-side description of one channel.

    - selector: data source selector understood by the transport
    - aggregator: optional post-aggregation ("last", "mean", ...)
    - transform: optional post-transform
    - unit / decimals / factor: optional presentation hints
    """
    selector: str
    aggregator: str | None = None
    transform: str | None = None
    unit: str | None = None
    decimals: float | None = None
    factor: float | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.selector, str) or not self.selector.strip():
            raise InvalidConfig("MetricInput.selector must be a non-empty string.")
        if self.decimals is not None and not _is_number(self.decimals):
            raise InvalidConfig("MetricInput.decimals must be a number.")
        if self.factor is not None and not _is_number(self.factor):
            raise InvalidConfig("MetricInput.factor must be a number.")

    @classmethod
    def from_mapping(cls, metric: Mapping[str, Any]) -> "MetricInput":
        """
        Build from a host mapping. Numeric decimals/factor pass through as
        given; non-numeric ones are ignored rather than rejected.
        """
        if not isinstance(metric, Mapping):
            raise InvalidConfig("Metric input must be a mapping.")
        decimals = metric.get("decimals")
        factor = metric.get("factor")
        return cls(
            selector=metric.get("selector"),  # type: ignore[arg-type]
            aggregator=metric.get("aggregator") or None,
            transform=metric.get("transform") or None,
            unit=metric.get("unit") or None,
            decimals=decimals if _is_number(decimals) else None,
            factor=factor if _is_number(factor) else None,
        )


@dataclass(frozen=True, slots=True)
class ChannelConfig:
    """Trigger channel (index 0) followed by the ordered label channels."""
    trigger: MetricInput
    labels: tuple[MetricInput, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.trigger, MetricInput):
            raise InvalidConfig("ChannelConfig.trigger must be a MetricInput.")
        labels = tuple(self.labels)
        for label in labels:
            if not isinstance(label, MetricInput):
                raise InvalidConfig("ChannelConfig.labels must contain MetricInput instances.")
        object.__setattr__(self, "labels", labels)

    @property
    def channels(self) -> tuple[MetricInput, ...]:
        return (self.trigger, *self.labels)

    @classmethod
    def from_inputs(cls, inputs: Mapping[str, Any]) -> "ChannelConfig":
        """
        Parse the host input shape:

            {"batchTrigger": {"metric": {...}},
             "metrics": [{"column": {"metric": {...}}}, ...]}
        """
        trigger = inputs.get("batchTrigger") if isinstance(inputs, Mapping) else None
        if not trigger or "metric" not in trigger:
            raise InvalidConfig("Inputs must define batchTrigger.metric.")

        labels = []
        for entry in inputs.get("metrics") or []:
            try:
                labels.append(MetricInput.from_mapping(entry["column"]["metric"]))
            except (KeyError, TypeError) as e:
                raise InvalidConfig(f"Invalid metrics entry: {entry!r}") from e

        return cls(trigger=MetricInput.from_mapping(trigger["metric"]), labels=tuple(labels))


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Visible time range in integer milliseconds, start <= end."""
    start: int
    end: int

    def __post_init__(self) -> None:
        for name in ("start", "end"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidWindow(f"TimeWindow.{name} must be an integer timestamp (ms).")
        if self.end < self.start:
            raise InvalidWindow(
                f"TimeWindow.end ({self.end}) must not be before start ({self.start})."
            )

    @property
    def width(self) -> int:
        return self.end - self.start

    def lookback(self) -> tuple[int, int]:
        """Window of equal width immediately preceding this one."""
        return self.start - self.width, self.start


@dataclass(frozen=True, slots=True)
class PagingConfig:
    page_size: int = 5000
    load_boundary: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.page_size, bool) or not isinstance(self.page_size, int):
            raise InvalidConfig("PagingConfig.page_size must be an integer.")
        if self.page_size <= 0:
            raise InvalidConfig("PagingConfig.page_size must be positive.")


def to_iso(millis: int) -> str:
    """Render a ms timestamp the way the host expects (ISO-8601, UTC, ms precision)."""
    moment = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
