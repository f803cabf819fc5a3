"""Live document tree.

The pipeline works on an in-process tree that behaves like a browser DOM:
nodes can be moved, replaced and inspected while the tree is observed, and
every structural or text change is reported to registered
``MutationObserver`` instances.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .events import Event, dispatch
from .observer import MutationRecord

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from .observer import MutationObserver


class Node:
    """Represents a DOM-like node.

    - name: e.g. 'div', 'p'. Use '#text' for text nodes, '#comment' for comments.
    - attrs: dict of element attributes
    - children: list of child Nodes
    - parent: reference to parent Node (or None for a detached root)
    - next_sibling/previous_sibling: references to adjacent nodes in the tree.
    """

    __slots__ = (
        "_data",
        "_listeners",
        "attrs",
        "children",
        "name",
        "namespace",
        "next_sibling",
        "parent",
        "previous_sibling",
        # ProcessingMark for nodes without attributes (text nodes).
        "processed",
        # Write stamp applied by the tree walker, None for foreign nodes.
        "stamp",
    )

    def __init__(self, name, attrs=None, data=None, namespace=None):
        # Empty names should never be constructed; fail loudly with context.
        if name is None or name == "":
            msg = "Empty name passed to Node constructor"
            raise ValueError(msg)

        self.name = name
        self.namespace = namespace
        if attrs:
            # Lowercase attribute names deterministically; keep first occurrence
            lowered = {}
            for k, v in attrs.items():
                lk = k.lower()
                if lk not in lowered:
                    lowered[lk] = v
            self.attrs = lowered
        else:
            self.attrs = {}
        self.children = []
        self.parent = None
        self._data = data
        self._listeners = None
        self.next_sibling = None
        self.previous_sibling = None
        self.processed = False
        self.stamp = None

    # -----------------
    # Introspection
    # -----------------

    @property
    def is_element(self):
        return not self.name.startswith("#") and self.name != "!doctype"

    @property
    def data(self):
        return self._data

    @data.setter
    def data(self, value):
        old = self._data
        self._data = value
        if old != value:
            self._notify(MutationRecord("characterData", self, old_value=old))

    @property
    def text(self):
        """Concatenated text content of this node and its descendants."""
        if self.name == "#text":
            return self._data or ""
        if self.name == "#comment":
            return ""
        return "".join(n._data or "" for n in self.iter_descendants() if n.name == "#text")

    @property
    def root(self):
        current = self
        while current.parent is not None:
            current = current.parent
        return current

    @property
    def owner_document(self):
        root = self.root
        return root if isinstance(root, Document) else None

    @property
    def is_connected(self):
        """True when the node is attached to a Document."""
        return self.owner_document is not None

    def contains(self, other):
        """Inclusive descendant check."""
        current = other
        while current is not None:
            if current is self:
                return True
            current = current.parent
        return False

    def get_attribute(self, name, default=None):
        return self.attrs.get(name, default)

    def set_attribute(self, name, value):
        name = name.lower()
        old = self.attrs.get(name)
        self.attrs[name] = value
        if old != value:
            self._notify(MutationRecord("attributes", self, attribute_name=name, old_value=old))

    def remove_attribute(self, name):
        name = name.lower()
        if name not in self.attrs:
            return
        old = self.attrs.pop(name)
        self._notify(MutationRecord("attributes", self, attribute_name=name, old_value=old))

    def iter_descendants(self) -> Iterator[Node]:
        """Pre-order, document-order iteration over descendants (excluding self)."""
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))

    def find_ancestor(self, name_or_predicate, stop_at=None):
        """Find the nearest ancestor matching a tag name or predicate.

        Includes the current node in the search. Stops (exclusive) at
        ``stop_at`` when given.
        """
        is_callable = callable(name_or_predicate)
        current = self
        while current is not None and current is not stop_at:
            if is_callable:
                if name_or_predicate(current):
                    return current
            elif current.name == name_or_predicate:
                return current
            current = current.parent
        return None

    closest = find_ancestor

    def has_ancestor_matching(self, predicate):
        """Check if any ancestor (excluding self) matches the given predicate."""
        current = self.parent
        while current is not None:
            if predicate(current):
                return True
            current = current.parent
        return False

    # -----------------
    # Mutation
    # -----------------

    def append_child(self, child):
        if self._would_create_circular_reference(child):
            msg = f"Adding {child.name} as child of {self.name} would create circular reference"
            raise ValueError(msg)

        if child.parent is not None:
            child.parent.remove_child(child)

        # Update sibling links in new location
        if self.children:
            self.children[-1].next_sibling = child
            child.previous_sibling = self.children[-1]
        else:
            child.previous_sibling = None

        child.parent = self
        child.next_sibling = None
        self.children.append(child)
        self._notify(
            MutationRecord(
                "childList",
                self,
                added_nodes=(child,),
                previous_sibling=child.previous_sibling,
            )
        )

    def _would_create_circular_reference(self, child):
        """Check if adding child would create a circular reference."""
        if child is self:
            return True
        # Fast path: a childless node can't be our ancestor
        if not child.children:
            return False
        return child.contains(self)

    def insert_before(self, new_node, reference_node):
        if reference_node is None:
            self.append_child(new_node)
            return
        if reference_node.parent is not self:
            msg = f"Reference node is not a child of {self.name}"
            raise ValueError(msg)
        if self._would_create_circular_reference(new_node):
            msg = f"Adding {new_node.name} as child of {self.name} would create circular reference"
            raise ValueError(msg)

        if new_node.parent is not None:
            new_node.parent.remove_child(new_node)

        idx = self.children.index(reference_node)
        new_node.parent = self
        self.children.insert(idx, new_node)

        # Update sibling pointers
        new_node.next_sibling = reference_node
        new_node.previous_sibling = reference_node.previous_sibling
        reference_node.previous_sibling = new_node
        if new_node.previous_sibling is not None:
            new_node.previous_sibling.next_sibling = new_node
        self._notify(
            MutationRecord(
                "childList",
                self,
                added_nodes=(new_node,),
                previous_sibling=new_node.previous_sibling,
                next_sibling=reference_node,
            )
        )

    def remove_child(self, child):
        """Remove a child node, updating all sibling links."""
        if child.parent is not self:
            msg = f"Node is not a child of {self.name}"
            raise ValueError(msg)

        previous, following = child.previous_sibling, child.next_sibling
        self._unlink(child)
        self._notify(
            MutationRecord(
                "childList",
                self,
                removed_nodes=(child,),
                previous_sibling=previous,
                next_sibling=following,
            )
        )

    def replace_child(self, new_node, old_node):
        self.replace_with_nodes(old_node, [new_node])

    def replace_with_nodes(self, old_node, new_nodes):
        """Swap ``old_node`` for ``new_nodes`` in a single write.

        Observers receive one childList record carrying both the removed and
        the added nodes, so a replacement is never seen half-applied.
        """
        if old_node.parent is not self:
            msg = f"Node is not a child of {self.name}"
            raise ValueError(msg)
        new_nodes = list(new_nodes)
        for node in new_nodes:
            if node.parent is not None or self._would_create_circular_reference(node):
                msg = f"Replacement {node.name} must be a detached node"
                raise ValueError(msg)

        previous, following = old_node.previous_sibling, old_node.next_sibling
        idx = self.children.index(old_node)
        self._unlink(old_node)
        self.children[idx:idx] = new_nodes

        prev = previous
        for node in new_nodes:
            node.parent = self
            node.previous_sibling = prev
            if prev is not None:
                prev.next_sibling = node
            prev = node
        if prev is not None:
            prev.next_sibling = following
        if following is not None:
            following.previous_sibling = prev

        self._notify(
            MutationRecord(
                "childList",
                self,
                added_nodes=tuple(new_nodes),
                removed_nodes=(old_node,),
                previous_sibling=previous,
                next_sibling=following,
            )
        )

    def set_text(self, text):
        """Replace all children with a single text node.

        This is the text-only insertion path: ``text`` is stored verbatim as
        character data and is never interpreted as markup.
        """
        removed = tuple(self.children)
        for child in removed:
            child.parent = None
            child.previous_sibling = None
            child.next_sibling = None
        self.children = []
        added = ()
        if text:
            node = TextNode(str(text))
            node.parent = self
            self.children.append(node)
            added = (node,)
        if removed or added:
            self._notify(MutationRecord("childList", self, added_nodes=added, removed_nodes=removed))

    def _unlink(self, child):
        if child.previous_sibling is not None:
            child.previous_sibling.next_sibling = child.next_sibling
        if child.next_sibling is not None:
            child.next_sibling.previous_sibling = child.previous_sibling
        self.children.remove(child)
        child.parent = None
        child.next_sibling = None
        child.previous_sibling = None

    def _notify(self, record):
        doc = self.owner_document
        if doc is not None and doc._registrations:
            doc._queue_record(record)

    # -----------------
    # Events
    # -----------------

    def add_event_listener(self, event_type, handler):
        if self._listeners is None:
            self._listeners = {}
        handlers = self._listeners.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def remove_event_listener(self, event_type, handler):
        if not self._listeners:
            return
        handlers = self._listeners.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def listeners_for(self, event_type):
        if not self._listeners:
            return ()
        return tuple(self._listeners.get(event_type, ()))

    def dispatch_event(self, event_or_type, **kwargs):
        event = event_or_type if isinstance(event_or_type, Event) else Event(event_or_type, **kwargs)
        return dispatch(self, event)

    # -----------------
    # Debugging
    # -----------------

    def __repr__(self):
        if self.name == "#text":
            return f"TextNode({(self._data or '')[:30]!r})"
        if self.name == "#comment":
            return f"CommentNode({(self._data or '')[:30]!r})"
        return f"Node(<{self.name}>, children={len(self.children)})"

    def to_test_format(self, indent=0):
        if self.name in {"#document", "#document-fragment"}:
            return "\n".join(child.to_test_format(0) for child in self.children)
        if self.name == "#text":
            return f'| {" " * indent}"{self._data}"'
        if self.name == "#comment":
            return f"| {' ' * indent}<!-- {self._data} -->"
        if self.name == "!doctype":
            return "| <!DOCTYPE html>"

        result = f"| {' ' * indent}<{self.name}>"
        # Attributes on their own line, sorted for deterministic output
        for key, value in sorted(self.attrs.items()):
            result += f'\n| {" " * (indent + 2)}{key}="{value}"'

        if self.children:
            parts = [result]
            parts.extend(child.to_test_format(indent + 2) for child in self.children)
            return "\n".join(parts)
        return result


class ElementNode(Node):
    __slots__ = ()

    def __init__(self, name, attrs=None, namespace=None):
        super().__init__(name.lower() if namespace in (None, "html") else name, attrs, None, namespace)


class TextNode(Node):
    __slots__ = ()

    def __init__(self, data):
        super().__init__("#text", data=data)


class CommentNode(Node):
    __slots__ = ()

    def __init__(self, data):
        super().__init__("#comment", data=data)


class Document(Node):
    """Root of a live tree; owns mutation observer registrations."""

    __slots__ = ("_registrations",)

    def __init__(self):
        super().__init__("#document")
        self._registrations: list[tuple[MutationObserver, Node, dict[str, bool]]] = []

    @property
    def body(self):
        html = next((c for c in self.children if c.name == "html"), None)
        if html is None:
            return None
        return next((c for c in html.children if c.name == "body"), None)

    @property
    def head(self):
        html = next((c for c in self.children if c.name == "html"), None)
        if html is None:
            return None
        return next((c for c in html.children if c.name == "head"), None)

    def get_element_by_id(self, element_id):
        for node in self.iter_descendants():
            if node.attrs.get("id") == element_id:
                return node
        return None

    def query_all(self, predicate: Callable[[Node], bool]) -> list[Node]:
        return [n for n in self.iter_descendants() if predicate(n)]

    # -----------------
    # Mutation observers
    # -----------------

    def _register(self, observer, target, options):
        self._unregister(observer, target)
        self._registrations.append((observer, target, options))

    def _unregister(self, observer, target=None):
        self._registrations = [
            reg for reg in self._registrations if not (reg[0] is observer and (target is None or reg[1] is target))
        ]

    def _queue_record(self, record):
        if record.kind == "characterData" or record.kind == "attributes":
            option = "character_data" if record.kind == "characterData" else "attributes"
        else:
            option = "child_list"

        # Inclusive ancestors of the record target, computed once per record.
        ancestors = set()
        current = record.target
        while current is not None:
            ancestors.add(id(current))
            current = current.parent

        delivered: set[int] = set()
        for observer, target, options in self._registrations:
            if id(observer) in delivered or not options.get(option):
                continue
            if target is record.target or (options.get("subtree") and id(target) in ancestors):
                observer._enqueue(record)
                delivered.add(id(observer))

