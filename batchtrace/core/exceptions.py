# batchtrace/core/exceptions.py
from __future__ import annotations


class CoreError(Exception):
    """Base error for all core-domain exceptions."""


# ---- Validation / construction errors ----
class InvalidConfig(CoreError):
    """Raised when a MetricInput / ChannelConfig / PagingConfig is invalid."""


class InvalidWindow(CoreError):
    """Raised when a TimeWindow is constructed with invalid bounds."""


class InvalidQuery(CoreError):
    """Raised when a ChannelQuery is constructed with invalid inputs."""


class InvalidRecording(CoreError):
    """Raised when a ChannelRecording is constructed with invalid arrays."""


# ---- Lookup errors (also behave like KeyError for dict-like APIs) ----
class ChannelNotFound(CoreError, KeyError):
    """Raised when a requested channel name is not present."""
