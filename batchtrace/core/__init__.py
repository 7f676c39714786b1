# batchtrace/core/__init__.py
"""
Core domain objects for batchtrace.

This module turns paged multi-channel query results into batches:
- Frame / FrameBuffer: aligned multi-channel samples, newest first
- TimeSeriesAssembler: merges query pages into the frame buffer
- PaginationDriver: pages through a query transport, then seeds window-start state
- segment_batches: frames -> start/end-trigger batches with label columns
- BatchSession: driver + segmentation for a host

The core layer is independent from I/O and transports.
"""

from .config import MetricInput, ChannelConfig, TimeWindow, PagingConfig
from .query import (
    ChannelQuery,
    map_metric_input_to_query,
    build_page_queries,
    build_boundary_queries,
)
from .frame import Sample, Frame, FrameBuffer, coerce_value, trigger_string
from .assembler import TimeSeriesAssembler
from .segmenter import Batch, segment_batches, LABEL_LOOKBACK_MS
from .driver import PaginationDriver, DriverState, QueryTransport
from .session import BatchSession
from .exceptions import (
    CoreError,
    InvalidConfig,
    InvalidWindow,
    InvalidQuery,
    InvalidRecording,
    ChannelNotFound,
)


__all__ = [
    # configuration
    "MetricInput",
    "ChannelConfig",
    "TimeWindow",
    "PagingConfig",

    # queries
    "ChannelQuery",
    "map_metric_input_to_query",
    "build_page_queries",
    "build_boundary_queries",

    # frames
    "Sample",
    "Frame",
    "FrameBuffer",
    "coerce_value",
    "trigger_string",

    # processing
    "TimeSeriesAssembler",
    "Batch",
    "segment_batches",
    "LABEL_LOOKBACK_MS",
    "PaginationDriver",
    "DriverState",
    "QueryTransport",
    "BatchSession",

    # exceptions
    "CoreError",
    "InvalidConfig",
    "InvalidWindow",
    "InvalidQuery",
    "InvalidRecording",
    "ChannelNotFound",
]
