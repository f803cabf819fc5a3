"""Tooltip controller: reveals the original text behind a conversion wrapper.

Listeners are delegated: one set on a common ancestor (the body by default)
and a few on the document. The tooltip element is created lazily, shared by
every wrapper, and only ever filled through ``Node.set_text`` so page text
is never interpreted as markup.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .capabilities import Capabilities
from .classify import ORIGINAL_TEXT_ATTR, PROCESSED_ATTR, UI_ATTR, is_wrapper
from .enums import StrEnum
from .errors import TOOLTIP, PipelineError
from .node import ElementNode
from .observer import running_loop
from .processor import preview

if TYPE_CHECKING:
    import asyncio

    from .context import PipelineContext
    from .events import Event
    from .node import Node

logger = logging.getLogger(__name__)

TOOLTIP_ID = "tg-tooltip"
DESCRIBEDBY_ATTR = "aria-describedby"


class TooltipPhase(StrEnum):
    IDLE = "idle"
    PENDING = "pending"
    VISIBLE = "visible"


@dataclass(frozen=True, slots=True)
class TooltipState:
    phase: TooltipPhase
    anchor: Node | None = None
    original_text: str | None = None


IDLE_STATE = TooltipState(TooltipPhase.IDLE)


def _guarded(handler):
    @functools.wraps(handler)
    def wrapper(self, event):
        try:
            handler(self, event)
        except Exception as exc:
            logger.exception("Tooltip %s handler failed", event.type)
            self._record_error(exc)

    return wrapper


class TooltipController:
    """State machine ``idle -> pending -> visible -> idle``.

    Hover enters ``pending`` and shows after ``delay_ms``; keyboard focus
    shows immediately. Leaving, blurring, a dismiss key, a press outside the
    anchor or a scroll return to ``idle``. There is at most one pending
    timer and one tooltip element at any time.
    """

    def __init__(
        self,
        document: Node,
        capabilities: Capabilities | None = None,
        *,
        delay_ms: float | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        root: Node | None = None,
        context: PipelineContext | None = None,
    ) -> None:
        self.document = document
        self.capabilities = capabilities or Capabilities()
        self.delay_ms = self.capabilities.show_delay_ms if delay_ms is None else delay_ms
        self.state = IDLE_STATE
        self.element: Node | None = None
        self.show_count = 0
        self._root = root
        self._loop = loop
        self._context = context
        self._timer: asyncio.TimerHandle | None = None
        self._listeners: list[tuple[Node, str, object]] = []

    @property
    def attached(self) -> bool:
        return bool(self._listeners)

    @property
    def phase(self) -> TooltipPhase:
        return self.state.phase

    # -----------------
    # Lifecycle
    # -----------------

    def attach(self) -> None:
        if self._listeners:
            return
        caps = self.capabilities
        root = self._root or getattr(self.document, "body", None) or self.document
        self._listen(root, caps.hover_in, self._on_hover_in)
        self._listen(root, caps.hover_out, self._on_hover_out)
        self._listen(root, caps.focus_in, self._on_focus_in)
        self._listen(root, caps.focus_out, self._on_focus_out)
        self._listen(self.document, "keydown", self._on_keydown)
        self._listen(self.document, caps.outside_press, self._on_outside_press)
        self._listen(self.document, "scroll", self._on_scroll)
        logger.debug("Tooltip listeners attached to %r", root)

    def detach(self) -> None:
        for node, event_type, handler in self._listeners:
            node.remove_event_listener(event_type, handler)
        self._listeners = []
        self.hide()
        element, self.element = self.element, None
        if element is not None and element.parent is not None:
            element.parent.remove_child(element)

    def _listen(self, node: Node, event_type: str, handler) -> None:
        node.add_event_listener(event_type, handler)
        self._listeners.append((node, event_type, handler))

    # -----------------
    # Event handlers
    # -----------------

    @_guarded
    def _on_hover_in(self, event: Event) -> None:
        anchor = self._anchor_for(event.target)
        if anchor is None:
            return
        state = self.state
        if anchor is state.anchor and state.phase is not TooltipPhase.IDLE:
            return
        if state.phase is TooltipPhase.VISIBLE:
            self.show(anchor)
        else:
            self._begin_pending(anchor)

    @_guarded
    def _on_hover_out(self, event: Event) -> None:
        anchor = self._anchor_for(event.target)
        if anchor is None or anchor is not self.state.anchor:
            return
        related = event.related_target
        if related is not None and anchor.contains(related):
            return
        self.hide()

    @_guarded
    def _on_focus_in(self, event: Event) -> None:
        anchor = self._anchor_for(event.target)
        if anchor is not None:
            self.show(anchor)

    @_guarded
    def _on_focus_out(self, event: Event) -> None:
        anchor = self._anchor_for(event.target)
        if anchor is not None and anchor is self.state.anchor:
            self.hide()

    @_guarded
    def _on_keydown(self, event: Event) -> None:
        if event.key in self.capabilities.dismiss_keys and self.state.phase is not TooltipPhase.IDLE:
            self.hide()
            logger.debug("Tooltip dismissed with %s", event.key)

    @_guarded
    def _on_outside_press(self, event: Event) -> None:
        state = self.state
        if state.phase is TooltipPhase.IDLE:
            return
        target = event.target
        if target is not None and state.anchor is not None and state.anchor.contains(target):
            return
        if target is not None and self.element is not None and self.element.contains(target):
            return
        self.hide()

    @_guarded
    def _on_scroll(self, event: Event) -> None:
        if self.state.phase is not TooltipPhase.IDLE:
            self.hide()

    # -----------------
    # Transitions
    # -----------------

    def _begin_pending(self, anchor: Node) -> None:
        self._cancel_timer()
        self.state = TooltipState(TooltipPhase.PENDING, anchor, anchor.get_attribute(ORIGINAL_TEXT_ATTR))
        loop = self._loop or running_loop()
        if self.delay_ms <= 0 or loop is None:
            self.show(anchor)
            return
        self._timer = loop.call_later(self.delay_ms / 1000.0, self._on_delay_elapsed, anchor)

    def _on_delay_elapsed(self, anchor: Node) -> None:
        self._timer = None
        state = self.state
        if state.phase is not TooltipPhase.PENDING or state.anchor is not anchor:
            return
        try:
            if anchor.is_connected:
                self.show(anchor)
            else:
                self.hide()
        except Exception as exc:
            logger.exception("Showing tooltip failed")
            self._record_error(exc)

    def show(self, anchor: Node) -> None:
        """Make the tooltip visible for ``anchor`` right away."""
        self._cancel_timer()
        original = anchor.get_attribute(ORIGINAL_TEXT_ATTR)
        if original is None:
            self.hide()
            return

        previous = self.state.anchor
        if previous is not None and previous is not anchor:
            previous.remove_attribute(DESCRIBEDBY_ATTR)

        tooltip = self._ensure_element(anchor)
        tooltip.set_text(original)
        for child in tooltip.children:
            child.processed = True
        tooltip.remove_attribute("hidden")
        tooltip.set_attribute("aria-hidden", "false")
        anchor.set_attribute(DESCRIBEDBY_ATTR, TOOLTIP_ID)

        self.state = TooltipState(TooltipPhase.VISIBLE, anchor, original)
        self.show_count += 1
        logger.debug("Showing tooltip for %s", preview(original))

    def hide(self) -> None:
        self._cancel_timer()
        state = self.state
        if state.anchor is not None:
            state.anchor.remove_attribute(DESCRIBEDBY_ATTR)
        if state.phase is TooltipPhase.VISIBLE and self.element is not None:
            self.element.set_attribute("aria-hidden", "true")
            self.element.set_attribute("hidden", "")
        self.state = IDLE_STATE

    # -----------------
    # Helpers
    # -----------------

    def _anchor_for(self, target: Node | None) -> Node | None:
        if target is None:
            return None
        return target.find_ancestor(is_wrapper)

    def _ensure_element(self, anchor: Node) -> Node:
        element = self.element
        if element is not None and element.is_connected:
            return element
        element = ElementNode(
            "div",
            {
                "id": TOOLTIP_ID,
                "role": "tooltip",
                "aria-hidden": "true",
                "hidden": "",
                UI_ATTR: "",
                PROCESSED_ATTR: "true",
            },
        )
        host = getattr(self.document, "body", None) or anchor.root
        host.append_child(element)
        self.element = element
        return element

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _record_error(self, exc: Exception) -> None:
        if self._context is None:
            return
        self._context.record_error(
            PipelineError("tooltip-failed", TOOLTIP, f"{type(exc).__name__}: {exc}"),
            log=False,
        )
