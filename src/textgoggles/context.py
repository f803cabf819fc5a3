"""Pipeline context: the single owner of all mutable pipeline state."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import Counter
from typing import TYPE_CHECKING

from .config import DEFAULT_CONFIG, PipelineConfig
from .errors import ErrorLog, PipelineError, PipelineTornDown, emit_error
from .processor import TextCache

if TYPE_CHECKING:
    from collections.abc import Callable

    from .rules import PatternSource

logger = logging.getLogger(__name__)

_context_ids = itertools.count(1)


class PipelineContext:
    """Per-page state shared by every pipeline component.

    Holds the text cache, the write-stamp generator used to recognise the
    walker's own writes, the error log and the statistics counters. Nothing
    here is global: tearing the context down releases everything.
    """

    def __init__(
        self,
        source: PatternSource,
        config: PipelineConfig = DEFAULT_CONFIG,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.source = source
        self.config = config
        self.token = next(_context_ids)
        self.generation = 0
        self.cache = TextCache(config.cache_size)
        self.errors = ErrorLog(config.error_history_size)
        self.stats: Counter[str] = Counter()
        self.torn_down = False
        self._loop = loop
        self._wrapper_ids = itertools.count(1)
        self._teardown_callbacks: list[Callable[[], None]] = []

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    # -----------------
    # Write stamps
    # -----------------

    def next_stamp(self) -> tuple[int, int]:
        """Open a new write generation and return its stamp."""
        self.generation += 1
        return (self.token, self.generation)

    def is_own_write(self, node) -> bool:
        stamp = node.stamp
        return stamp is not None and stamp[0] == self.token

    def next_wrapper_id(self) -> str:
        return f"tg-{self.token}-{next(self._wrapper_ids)}"

    # -----------------
    # Errors
    # -----------------

    def record_error(self, error: PipelineError, *, log: bool = True) -> None:
        if log:
            logger.warning("%s", error)
        self.errors.record(error)
        emit_error(error.code, category=error.category, message=error.message, detail=error.detail)

    # -----------------
    # Lifecycle
    # -----------------

    def ensure_active(self) -> None:
        if self.torn_down:
            msg = "Pipeline context has been torn down"
            raise PipelineTornDown(msg)

    def on_teardown(self, callback: Callable[[], None]) -> None:
        self._teardown_callbacks.append(callback)

    def teardown(self) -> None:
        """Run teardown callbacks (last registered first) exactly once."""
        if self.torn_down:
            return
        self.torn_down = True
        callbacks, self._teardown_callbacks = self._teardown_callbacks, []
        for callback in reversed(callbacks):
            try:
                callback()
            except Exception:
                logger.exception("Teardown callback %r failed", callback)
        self.cache.clear()
        logger.debug("Pipeline context %d torn down", self.token)
