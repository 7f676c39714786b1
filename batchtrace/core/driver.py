# batchtrace/core/driver.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Protocol, Sequence, runtime_checkable

from .assembler import TimeSeriesAssembler
from .config import ChannelConfig, PagingConfig, TimeWindow
from .frame import Frame, FrameBuffer
from .query import ChannelQuery, build_boundary_queries, build_page_queries

logger = logging.getLogger(__name__)

CancelHandle = Callable[[], None]
ResultCallback = Callable[[Sequence[Sequence[Any]] | None], None]
UpdateCallback = Callable[[list[Frame], bool], None]


@runtime_checkable
class QueryTransport(Protocol):
    """
    Structural interface of the query backend.

    `query` runs the queries (one result list per query, same order) and
    invokes `callback` with the lists, or with None when the call failed.
    The returned handle aborts a pending call and is safe to call after
    completion.
    """

    def query(self, queries: list[ChannelQuery], callback: ResultCallback) -> CancelHandle | None:
        ...


class DriverState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADING_LAST = "loading_last"
    DONE = "done"


class PaginationDriver:
    """
    Fetches the full history page by page, then seeds the state at the
    window start with one "last value" query per channel.

    Only the most recently issued query is live: issuing a new one cancels
    the previous handle, and callbacks of superseded queries are ignored.
    After every page and after the boundary query `on_update(frames,
    has_more)` receives the assembled frames, newest first.
    """

    def __init__(
        self,
        transport: QueryTransport,
        config: ChannelConfig,
        window: TimeWindow,
        on_update: UpdateCallback | None = None,
        paging: PagingConfig | None = None,
    ) -> None:
        self._transport = transport
        self._config = config
        self._paging = paging if paging is not None else PagingConfig()
        self._assembler = TimeSeriesAssembler(window)
        self._on_update = on_update

        self._state = DriverState.IDLE
        self._offset = 0
        self._has_next = True
        self._has_last = False

        self._generation = 0
        self._pending: int | None = None
        self._cancel: CancelHandle | None = None
        self._looping = False
        self._resume = False

    # ---- read-only views ----
    @property
    def state(self) -> DriverState:
        return self._state

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def has_next(self) -> bool:
        return self._has_next

    @property
    def has_last(self) -> bool:
        return self._has_last

    @property
    def loading(self) -> bool:
        return self._pending is not None

    @property
    def window(self) -> TimeWindow:
        return self._assembler.window

    @property
    def config(self) -> ChannelConfig:
        return self._config

    @property
    def frames(self) -> FrameBuffer:
        return self._assembler.frames

    def set_update_callback(self, on_update: UpdateCallback | None) -> None:
        self._on_update = on_update

    # ---- lifecycle ----
    def initialize_data(self) -> None:
        """Drop everything assembled so far and start again from page 0."""
        self._abandon()
        self._assembler.reset()
        self._offset = 0
        self._has_next = True
        self._has_last = True
        self._state = DriverState.LOADING
        self._load_next()

    def reset(self) -> None:
        self.initialize_data()

    def update_window(self, window: TimeWindow) -> None:
        self._assembler.reset(window)
        self.initialize_data()

    def destroy(self) -> None:
        self._abandon()
        self._state = DriverState.IDLE

    # ---- pagination ----
    def _load_next(self) -> None:
        """
        Request the next page, or the boundary values once paging is over.

        A synchronous transport answers inside query(), and its handler asks
        for the next page from there. Such requests are picked up by the
        loop already running instead of recursing.
        """
        if self._looping:
            self._resume = True
            return

        self._looping = True
        try:
            self._resume = True
            while self._resume:
                self._resume = False
                self._request_next()
        finally:
            self._looping = False

    def _request_next(self) -> None:
        if self._has_next:
            queries = build_page_queries(self._config, self._offset, self._paging.page_size)
            logger.debug(f"Requesting page at offset {self._offset} for {len(queries)} channels")
            self._offset += self._paging.page_size
            self._state = DriverState.LOADING
            self._issue(queries, self._on_page)
        elif self._has_last and self._paging.load_boundary:
            self._has_last = False
            self._state = DriverState.LOADING_LAST
            queries = build_boundary_queries(self._config, self._assembler.window)
            logger.debug(f"Requesting boundary values for {len(queries)} channels")
            self._issue(queries, self._on_boundary)
        else:
            self._state = DriverState.DONE

    def _issue(
        self,
        queries: list[ChannelQuery],
        handler: Callable[[list[ChannelQuery], Sequence[Sequence[Any]]], None],
    ) -> None:
        self._cancel_active()
        self._generation += 1
        generation = self._generation
        self._pending = generation

        def callback(results: Sequence[Sequence[Any]] | None) -> None:
            if self._pending != generation:
                logger.debug(f"Ignoring results of superseded query #{generation}")
                return
            self._pending = None
            self._cancel = None
            if results is None:
                logger.warning(f"Query #{generation} failed; treating it as an empty page")
                results = [[] for _ in queries]
            handler(queries, results)

        try:
            cancel = self._transport.query(queries, callback)
        except Exception:
            self._pending = None
            self._state = DriverState.IDLE
            raise

        # A synchronous transport may already have answered (and moved on).
        if self._pending == generation:
            self._cancel = cancel

    def _on_page(self, queries: list[ChannelQuery], results: Sequence[Sequence[Any]]) -> None:
        self._has_next = any(r for r in results)
        self._assembler.ingest(results, queries)
        if not self._has_next:
            logger.info(f"Pagination exhausted after offset {self._offset - self._paging.page_size}")
        generation = self._generation
        self._notify(self._has_next)
        # The update callback may have reset or destroyed the driver.
        if generation == self._generation:
            self._load_next()

    def _on_boundary(self, queries: list[ChannelQuery], results: Sequence[Sequence[Any]]) -> None:
        self._assembler.ingest(results, queries)
        self._state = DriverState.DONE
        logger.info(f"Boundary values loaded; {len(self._assembler.frames)} frames assembled")
        self._notify(False)

    def _notify(self, has_more: bool) -> None:
        if self._on_update is not None:
            self._on_update(self._assembler.frames.snapshot(), has_more)

    def _cancel_active(self) -> None:
        cancel, self._cancel = self._cancel, None
        if cancel is not None:
            cancel()

    def _abandon(self) -> None:
        self._cancel_active()
        self._generation += 1
        self._pending = None
