"""Change notifications for the live tree.

Mirrors the browser's MutationObserver: records are queued synchronously as
the tree changes and delivered to the callback in one batch on a later turn
of the asyncio event loop.
"""

from __future__ import annotations

import asyncio


class MutationRecord:
    __slots__ = (
        "added_nodes",
        "attribute_name",
        "kind",
        "next_sibling",
        "old_value",
        "previous_sibling",
        "removed_nodes",
        "target",
    )

    def __init__(
        self,
        kind,
        target,
        *,
        added_nodes=(),
        removed_nodes=(),
        previous_sibling=None,
        next_sibling=None,
        attribute_name=None,
        old_value=None,
    ):
        self.kind = kind
        self.target = target
        self.added_nodes = tuple(added_nodes)
        self.removed_nodes = tuple(removed_nodes)
        self.previous_sibling = previous_sibling
        self.next_sibling = next_sibling
        self.attribute_name = attribute_name
        self.old_value = old_value

    def __repr__(self):
        return (
            f"MutationRecord({self.kind!r}, target={self.target!r}, "
            f"added={len(self.added_nodes)}, removed={len(self.removed_nodes)})"
        )


def running_loop():
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class MutationObserver:
    """Observe a subtree of a Document.

    Without a running event loop records are only buffered; call
    ``take_records()`` to drain them synchronously.
    """

    __slots__ = ("_callback", "_handle", "_loop", "_records", "_targets")

    def __init__(self, callback, *, loop=None):
        self._callback = callback
        self._loop = loop
        self._records = []
        self._handle = None
        self._targets = []

    def observe(self, target, *, child_list=True, subtree=True, character_data=False, attributes=False):
        doc = target.owner_document
        if doc is None:
            msg = "MutationObserver can only observe nodes attached to a Document"
            raise ValueError(msg)
        options = {
            "child_list": bool(child_list),
            "subtree": bool(subtree),
            "character_data": bool(character_data),
            "attributes": bool(attributes),
        }
        doc._register(self, target, options)
        if (doc, target) not in self._targets:
            self._targets.append((doc, target))

    def disconnect(self):
        for doc, _target in self._targets:
            doc._unregister(self)
        self._targets = []
        self._records = []
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def take_records(self):
        records, self._records = self._records, []
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        return records

    @property
    def pending(self):
        return len(self._records)

    def _enqueue(self, record):
        self._records.append(record)
        if self._handle is not None:
            return
        loop = self._loop or running_loop()
        if loop is None:
            return
        self._handle = loop.call_soon(self._deliver)

    def _deliver(self):
        self._handle = None
        records = self.take_records()
        if not records:
            return
        try:
            self._callback(records, self)
        except Exception as exc:
            # Reported like any other failing loop callback; the observer stays registered.
            loop = self._loop or running_loop()
            if loop is None:
                raise
            loop.call_exception_handler(
                {
                    "message": "Unhandled exception in MutationObserver callback",
                    "exception": exc,
                }
            )
