# batchtrace/core/session.py
from __future__ import annotations

import logging
from typing import Callable

from .config import ChannelConfig, PagingConfig, TimeWindow
from .driver import PaginationDriver, QueryTransport
from .frame import Frame
from .segmenter import Batch, segment_batches

logger = logging.getLogger(__name__)

BatchCallback = Callable[[list[Batch], bool], None]


class BatchSession:
    """
    Host-facing adapter: drives pagination and re-segments the assembled
    frames on every update, so `batches` always reflects what is loaded.
    """

    def __init__(
        self,
        transport: QueryTransport,
        config: ChannelConfig,
        window: TimeWindow,
        batch_start_value: str,
        batch_end_value: str,
        on_batches: BatchCallback | None = None,
        paging: PagingConfig | None = None,
    ) -> None:
        self.batch_start_value = str(batch_start_value)
        self.batch_end_value = str(batch_end_value)
        self._on_batches = on_batches
        self._batches: list[Batch] = []
        self._has_more = False
        self._driver = PaginationDriver(
            transport,
            config,
            window,
            on_update=self._handle_update,
            paging=paging,
        )

    @property
    def driver(self) -> PaginationDriver:
        return self._driver

    @property
    def batches(self) -> list[Batch]:
        return list(self._batches)

    @property
    def has_more(self) -> bool:
        return self._has_more

    def start(self) -> None:
        self._batches = []
        self._has_more = True
        self._driver.initialize_data()

    def reset(self) -> None:
        self.start()

    def update_window(self, window: TimeWindow) -> None:
        self._batches = []
        self._has_more = True
        self._driver.update_window(window)

    def destroy(self) -> None:
        self._driver.destroy()
        self._has_more = False

    def _handle_update(self, frames: list[Frame], has_more: bool) -> None:
        self._batches = segment_batches(frames, self.batch_start_value, self.batch_end_value)
        self._has_more = has_more
        logger.debug(f"{len(self._batches)} batches from {len(frames)} frames (has_more={has_more})")
        if self._on_batches is not None:
            self._on_batches(self.batches, has_more)
