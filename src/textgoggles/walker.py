"""Chunked, resumable tree walker.

A pass keeps an explicit cursor (a stack of pending nodes) instead of
recursing, so it can stop after a bounded amount of work, hand control back
to the event loop, and pick up where it left off on the next turn.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .classify import (
    ORIGINAL_TEXT_ATTR,
    PROCESSED_ATTR,
    WRAPPER_CLASS,
    WRAPPER_ID_ATTR,
    NodeKind,
)
from .enums import StrEnum
from .errors import TRAVERSAL, PipelineError
from .node import ElementNode, Node, TextNode
from .processor import preview

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Iterable

    from .classify import Classifier
    from .context import PipelineContext
    from .processor import ProcessResult, TextProcessor

logger = logging.getLogger(__name__)


class PassState(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class WalkStats:
    visited: int = 0
    converted: int = 0
    wrappers: int = 0
    chunks: int = 0
    max_slice: int = 0
    skipped: int = 0


def build_wrapper(context: PipelineContext, original: str, converted: str, stamp: tuple[int, int]) -> Node:
    """Create a detached conversion wrapper.

    The original text is stored as an attribute value (plain data, escaped
    on serialization); the converted text is the wrapper's only child.
    """
    wrapper = ElementNode(
        "span",
        {
            "class": WRAPPER_CLASS,
            ORIGINAL_TEXT_ATTR: original,
            "tabindex": "0",
            PROCESSED_ATTR: "true",
            WRAPPER_ID_ATTR: context.next_wrapper_id(),
        },
    )
    label = TextNode(converted)
    label.processed = True
    label.stamp = stamp
    wrapper.append_child(label)
    wrapper.stamp = stamp
    return wrapper


class WalkPass:
    """One traversal over one or more subtree roots.

    ``step()`` performs a single bounded chunk synchronously; ``TreeWalker``
    drives it from the event loop. Every node is either left untouched or
    fully converted within one step, so abandoning a pass between steps is
    always safe.
    """

    __slots__ = ("_future", "_handle", "_stack", "_walker", "roots", "state", "stats")

    def __init__(self, walker: TreeWalker, roots: Iterable[Node]) -> None:
        self._walker = walker
        self.roots = tuple(roots)
        # Cursor entries: (node, parent when queued, is_root)
        self._stack: list[tuple[Node, Node | None, bool]] = [(r, r.parent, True) for r in reversed(self.roots)]
        self.state = PassState.PENDING
        self.stats = WalkStats()
        self._handle: asyncio.Handle | None = None
        self._future: asyncio.Future[WalkStats] | None = None

    @property
    def done(self) -> bool:
        return self.state in (PassState.DONE, PassState.CANCELLED)

    @property
    def pending(self) -> int:
        return len(self._stack)

    def step(self) -> bool:
        """Run one chunk. Returns True once the pass is finished."""
        if self.done:
            return True
        walker = self._walker
        context = walker.context
        if context.torn_down:
            self.cancel()
            return True

        self.state = PassState.RUNNING
        config = context.config
        budget = config.chunk_size
        deadline = time.perf_counter() + config.time_slice_ms / 1000.0 if config.time_slice_ms else None
        stamp = context.next_stamp()
        stack = self._stack
        visited = 0
        while stack and visited < budget:
            node, parent, is_root = stack.pop()
            visited += 1
            try:
                self._visit(node, parent, is_root, stamp)
            except Exception as exc:  # noqa: BLE001
                self.stats.skipped += 1
                logger.warning("Skipping %r after traversal error: %s", node, exc)
                context.record_error(
                    PipelineError("traversal-failed", TRAVERSAL, f"{type(exc).__name__}: {exc}", detail=repr(node)),
                    log=False,
                )
            if deadline is not None and time.perf_counter() >= deadline:
                break

        stats = self.stats
        stats.visited += visited
        stats.chunks += 1
        stats.max_slice = max(stats.max_slice, visited)
        context.stats["nodes_visited"] += visited
        if not stack:
            self._finish(PassState.DONE)
            return True
        return False

    def _visit(self, node: Node, parent: Node | None, is_root: bool, stamp: tuple[int, int]) -> None:
        walker = self._walker
        if not is_root and node.parent is not parent:
            # Removed or moved since it was queued; a move is reported as a
            # new addition and handled there.
            self.stats.skipped += 1
            walker.context.record_error(
                PipelineError("detached-node", TRAVERSAL, "Node left its parent before it was visited", repr(node)),
                log=False,
            )
            return

        classifier = walker.classifier
        kind = classifier.classify(node)
        if is_root and kind in (NodeKind.TEXT, NodeKind.ELEMENT) and not classifier.ancestors_allow(node):
            return

        if kind is NodeKind.TEXT:
            walker.convert_text_node(node, stamp, self.stats)
        elif kind is NodeKind.ELEMENT:
            children = node.children
            if children:
                self._stack.extend((child, node, False) for child in reversed(children))

    def cancel(self) -> None:
        if self.done:
            return
        self._stack.clear()
        self._finish(PassState.CANCELLED)

    def _finish(self, state: PassState) -> None:
        self.state = state
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._walker._passes.discard(self)
        if self._future is not None and not self._future.done():
            self._future.set_result(self.stats)
        logger.debug(
            "Walk pass %s: visited=%d converted=%d chunks=%d",
            state.value,
            self.stats.visited,
            self.stats.converted,
            self.stats.chunks,
        )

    def _schedule(self, loop: asyncio.AbstractEventLoop) -> None:
        self._future = loop.create_future()
        self._handle = loop.call_soon(self._run_chunk, loop)

    def _run_chunk(self, loop: asyncio.AbstractEventLoop) -> None:
        self._handle = None
        if not self.step():
            self._handle = loop.call_soon(self._run_chunk, loop)

    async def wait(self) -> WalkStats:
        if self._future is None:
            return self.stats
        return await self._future

    def __repr__(self):
        return f"WalkPass(state={self.state.value}, pending={len(self._stack)}, visited={self.stats.visited})"


class TreeWalker:
    """Convert matching text under given roots, one chunk per loop turn."""

    def __init__(self, context: PipelineContext, classifier: Classifier, processor: TextProcessor) -> None:
        self.context = context
        self.classifier = classifier
        self.processor = processor
        self._passes: set[WalkPass] = set()
        context.on_teardown(self.cancel_all)

    @property
    def active_passes(self) -> tuple[WalkPass, ...]:
        return tuple(self._passes)

    @property
    def busy(self) -> bool:
        return bool(self._passes)

    def start(self, roots: Node | Iterable[Node]) -> WalkPass:
        """Schedule a pass on the running event loop and return it."""
        self.context.ensure_active()
        walk = WalkPass(self, [roots] if isinstance(roots, Node) else roots)
        self._passes.add(walk)
        walk._schedule(self.context.loop)
        return walk

    def run_sync(self, roots: Node | Iterable[Node]) -> WalkPass:
        """Drive a pass to completion without an event loop."""
        self.context.ensure_active()
        walk = WalkPass(self, [roots] if isinstance(roots, Node) else roots)
        self._passes.add(walk)
        while not walk.step():
            pass
        return walk

    def cancel_all(self) -> None:
        for walk in list(self._passes):
            walk.cancel()

    def convert_text_node(self, node: Node, stamp: tuple[int, int], stats: WalkStats | None = None) -> bool:
        """Replace ``node`` with converted pieces if any rule matches.

        All replacement nodes are built first and swapped in with a single
        tree write.
        """
        data = node.data or ""
        result = self.processor.process(data)
        node.processed = True
        if not result.changed:
            return False
        parent = node.parent
        if parent is None:
            return False

        pieces = self._build_pieces(data, result, stamp)
        parent.replace_with_nodes(node, pieces)

        self.context.stats["text_nodes_converted"] += 1
        self.context.stats["wrappers_created"] += len(result.segments)
        if stats is not None:
            stats.converted += 1
            stats.wrappers += len(result.segments)
        logger.debug("Converted %s into %d wrapper(s)", preview(data), len(result.segments))
        return True

    def _build_pieces(self, data: str, result: ProcessResult, stamp: tuple[int, int]) -> list[Node]:
        pieces: list[Node] = []
        cursor = 0
        for seg in result.segments:
            if seg.start > cursor:
                pieces.append(self._plain_text(data[cursor : seg.start], stamp))
            pieces.append(build_wrapper(self.context, seg.original, seg.replacement, stamp))
            cursor = seg.end
        if cursor < len(data):
            pieces.append(self._plain_text(data[cursor:], stamp))
        return pieces

    @staticmethod
    def _plain_text(text: str, stamp: tuple[int, int]) -> Node:
        node = TextNode(text)
        node.processed = True
        node.stamp = stamp
        return node
