"""Change coordinator: feeds content added after startup back into the walker.

Mutation records arrive in batches from a ``MutationObserver``. Records
describing the walker's own writes are recognised by their write stamp and
dropped; everything else is collected into a deduplicated batch that is
flushed after a short quiet period (debounce), or at the latest once the
batch has waited ``max_wait_ms`` (throttle).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .classify import PROCESSED_ATTR
from .enums import StrEnum
from .errors import OBSERVER, PipelineError
from .observer import MutationObserver

if TYPE_CHECKING:
    import asyncio

    from .classify import Classifier
    from .context import PipelineContext
    from .node import Node
    from .observer import MutationRecord
    from .walker import TreeWalker, WalkPass

logger = logging.getLogger(__name__)


class CoordinatorState(StrEnum):
    IDLE = "idle"
    COLLECTING = "collecting"
    FLUSHING = "flushing"
    PAUSED = "paused"
    TORN_DOWN = "torn_down"


class ChangeCoordinator:
    """Observe a document and hand genuinely new nodes to the walker.

    States: ``idle`` until the first foreign addition, ``collecting`` while
    the coalescing window is open, ``flushing`` while a batch is handed over,
    then back to ``idle``. ``paused`` ignores deliveries; ``torn_down`` is
    terminal.
    """

    def __init__(self, context: PipelineContext, walker: TreeWalker, classifier: Classifier) -> None:
        self.context = context
        self.walker = walker
        self.classifier = classifier
        self.state = CoordinatorState.IDLE
        self.last_batch: tuple[Node, ...] = ()
        self.flush_count = 0
        self.dropped_count = 0
        self._document: Node | None = None
        self._observer: MutationObserver | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        # Insertion-ordered set keyed by node identity.
        self._batch: dict[Node, None] = {}
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._deadline_handle: asyncio.TimerHandle | None = None
        context.on_teardown(self.teardown)

    @property
    def pending_count(self) -> int:
        return len(self._batch)

    @property
    def observing(self) -> bool:
        return self._observer is not None

    @property
    def busy(self) -> bool:
        """True while observed changes still wait to be handed to the walker."""
        if self.state in (CoordinatorState.PAUSED, CoordinatorState.TORN_DOWN):
            return False
        return bool(self._batch) or self.undelivered > 0

    @property
    def undelivered(self) -> int:
        """Records queued by the observer but not yet delivered."""
        return self._observer.pending if self._observer is not None else 0

    # -----------------
    # Lifecycle
    # -----------------

    def start(self, document: Node) -> None:
        """Subscribe to changes under ``document``. Requires an event loop."""
        self.context.ensure_active()
        if self._observer is not None:
            return
        self._loop = self.context.loop
        self._document = document
        self._observer = MutationObserver(self._on_mutations, loop=self._loop)
        self._observer.observe(document, child_list=True, subtree=True, character_data=True)
        self.state = CoordinatorState.IDLE
        logger.debug("Change coordinator observing %r", document)

    def stop(self) -> None:
        """Unsubscribe and drop any pending batch."""
        if self._observer is not None:
            self._observer.disconnect()
            self._observer = None
        self._cancel_timers()
        self._batch.clear()
        if self.state is not CoordinatorState.TORN_DOWN:
            self.state = CoordinatorState.IDLE

    def teardown(self) -> None:
        if self.state is CoordinatorState.TORN_DOWN:
            return
        self.stop()
        self.state = CoordinatorState.TORN_DOWN
        self._document = None
        logger.debug("Change coordinator torn down after %d flush(es)", self.flush_count)

    def pause(self) -> None:
        """Ignore deliveries until ``resume()``; the pending batch is kept."""
        if self.state is CoordinatorState.TORN_DOWN:
            return
        self._cancel_timers()
        self.state = CoordinatorState.PAUSED

    def resume(self) -> None:
        if self.state is not CoordinatorState.PAUSED:
            return
        self.state = CoordinatorState.IDLE
        if self._batch:
            self._arm_timers()

    # -----------------
    # Delivery
    # -----------------

    def _on_mutations(self, records: list[MutationRecord], observer: MutationObserver) -> None:
        if self.state in (CoordinatorState.PAUSED, CoordinatorState.TORN_DOWN):
            return
        try:
            self._collect(records)
        except Exception as exc:
            # The subscription stays in place; the next delivery starts fresh.
            logger.exception("Failed to handle %d mutation record(s)", len(records))
            self.context.record_error(
                PipelineError("observer-callback-failed", OBSERVER, f"{type(exc).__name__}: {exc}"),
                log=False,
            )

    def _collect(self, records: list[MutationRecord]) -> None:
        added = 0
        for record in records:
            if record.kind == "characterData":
                added += self._text_changed(record.target)
                continue
            if record.kind != "childList":
                continue
            for node in record.added_nodes:
                if self._accept(node):
                    self._batch[node] = None
                    added += 1
                else:
                    self.dropped_count += 1

        if not added:
            return
        logger.debug("Collected %d node(s); batch size %d", added, len(self._batch))
        if len(self._batch) >= self.context.config.max_batch_size:
            self.flush()
        else:
            self._arm_timers()

    def _accept(self, node: Node) -> bool:
        if self.context.is_own_write(node):
            return False
        if node.name == "#text":
            return not node.processed
        if not node.is_element:
            return False
        return PROCESSED_ATTR not in node.attrs

    def _text_changed(self, node: Node) -> int:
        # The page rewrote a text node; its earlier verdict no longer holds.
        if node.parent is None:
            return 0
        node.processed = False
        node.stamp = None
        self._batch[node] = None
        return 1

    # -----------------
    # Timers
    # -----------------

    def _arm_timers(self) -> None:
        loop = self._loop
        if loop is None:
            return
        config = self.context.config
        if self.state is CoordinatorState.IDLE:
            self.state = CoordinatorState.COLLECTING
            self._deadline_handle = loop.call_later(config.max_wait_ms / 1000.0, self._on_timer)
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = loop.call_later(config.debounce_ms / 1000.0, self._on_timer)

    def _cancel_timers(self) -> None:
        for handle in (self._debounce_handle, self._deadline_handle):
            if handle is not None:
                handle.cancel()
        self._debounce_handle = None
        self._deadline_handle = None

    def _on_timer(self) -> None:
        try:
            self.flush()
        except Exception as exc:
            logger.exception("Flush failed")
            self.context.record_error(
                PipelineError("flush-failed", OBSERVER, f"{type(exc).__name__}: {exc}"),
                log=False,
            )

    # -----------------
    # Flushing
    # -----------------

    def flush(self) -> WalkPass | None:
        """Hand the current batch to the walker now.

        Returns the started pass, or None when nothing needed processing.
        """
        self._cancel_timers()
        if self.state in (CoordinatorState.PAUSED, CoordinatorState.TORN_DOWN):
            return None
        if not self._batch:
            self.state = CoordinatorState.IDLE
            return None

        self.state = CoordinatorState.FLUSHING
        nodes = list(self._batch)
        self._batch.clear()
        roots = self._select_roots(nodes)
        self.last_batch = tuple(roots)
        self.flush_count += 1
        self.context.stats["batches_flushed"] += 1
        walk = self.walker.start(roots) if roots else None
        logger.debug("Flushed batch of %d node(s) as %d root(s)", len(nodes), len(roots))
        self.state = CoordinatorState.IDLE
        return walk

    def _select_roots(self, nodes: list[Node]) -> list[Node]:
        """Connected nodes without an ancestor that is also in the batch."""
        document = self._document
        members = set(map(id, nodes))
        roots = []
        for node in nodes:
            if document is not None and node.root is not document:
                continue
            parent = node.parent
            covered = False
            while parent is not None:
                if id(parent) in members:
                    covered = True
                    break
                parent = parent.parent
            if not covered:
                roots.append(node)
        return roots
