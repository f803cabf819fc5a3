"""Minimal event dispatch for the live tree (bubbling only, no capture phase)."""

from __future__ import annotations


class Event:
    __slots__ = ("_stopped", "current_target", "default_prevented", "key", "related_target", "target", "type")

    def __init__(self, type, *, related_target=None, key=None):  # noqa: A002
        self.type = type
        self.target = None
        self.current_target = None
        self.related_target = related_target
        self.key = key
        self.default_prevented = False
        self._stopped = False

    def stop_propagation(self):
        self._stopped = True

    def prevent_default(self):
        self.default_prevented = True

    def __repr__(self):
        return f"Event({self.type!r}, target={self.target!r})"


def dispatch(target, event):
    """Dispatch ``event`` at ``target`` and bubble it up to the root.

    The propagation path is computed before any handler runs, so handlers
    that detach nodes do not change who receives the event.
    """
    event.target = target
    path = []
    current = target
    while current is not None:
        path.append(current)
        current = current.parent

    for node in path:
        handlers = node.listeners_for(event.type)
        if not handlers:
            continue
        event.current_target = node
        for handler in handlers:
            handler(event)
        if event._stopped:
            break
    event.current_target = None
    return not event.default_prevented
