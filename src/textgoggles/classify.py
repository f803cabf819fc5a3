"""Node classifier: decides which parts of the tree may be converted.

The classifier is conservative. Anything that is not plainly
visible, non-editable text (form controls, editable regions, scripts and
styles, hidden content, our own wrappers and UI) is skipped together with
its whole subtree.
"""

from __future__ import annotations

from enum import Enum

from .config import DEFAULT_CONFIG, PipelineConfig

PROCESSED_ATTR = "data-tg-processed"
WRAPPER_CLASS = "tg-converted-text"
ORIGINAL_TEXT_ATTR = "data-original-text"
WRAPPER_ID_ATTR = "data-tg-id"
UI_ATTR = "data-tg-ui"

_EDITABLE_VALUES = frozenset({"", "true", "plaintext-only"})
_CONTAINER_NAMES = frozenset({"#document", "#document-fragment"})


class NodeKind(Enum):
    TEXT = "text"  # convertible text node
    ELEMENT = "element"  # container to descend into
    SKIP = "skip"  # excluded, together with its subtree
    WRAPPED = "wrapped"  # an existing conversion wrapper
    OTHER = "other"  # comments, doctype


def is_wrapper(node) -> bool:
    if node.name != "span" or ORIGINAL_TEXT_ATTR not in node.attrs:
        return False
    classes = node.attrs.get("class") or ""
    return WRAPPER_CLASS in classes.split()


def _is_display_none(style: str) -> bool:
    compact = "".join(style.split()).lower()
    return "display:none" in compact


class Classifier:
    """Classify nodes with local, constant-time checks.

    ``classify`` looks only at the node itself. Ancestor checks are done
    once per pass root by ``is_eligible_subtree``; the walker never descends
    into a skipped element, so nodes below the root inherit its verdict.
    """

    __slots__ = ("kill_switch_id", "skip_tags")

    def __init__(self, config: PipelineConfig = DEFAULT_CONFIG) -> None:
        self.skip_tags = config.skip_tags
        self.kill_switch_id = config.kill_switch_id

    def classify(self, node) -> NodeKind:
        name = node.name
        if name == "#text":
            data = node.data
            if node.processed or not data or data.isspace():
                return NodeKind.SKIP
            return NodeKind.TEXT
        if name in _CONTAINER_NAMES:
            return NodeKind.ELEMENT
        if name.startswith("#") or name == "!doctype":
            return NodeKind.OTHER

        attrs = node.attrs
        if is_wrapper(node):
            return NodeKind.WRAPPED
        if (
            name in self.skip_tags
            or PROCESSED_ATTR in attrs
            or UI_ATTR in attrs
            or "hidden" in attrs
            or (node.namespace is not None and node.namespace != "html")
        ):
            return NodeKind.SKIP
        if "contenteditable" in attrs:
            value = attrs["contenteditable"]
            if value is None or value.strip().lower() in _EDITABLE_VALUES:
                return NodeKind.SKIP
        style = attrs.get("style")
        if style and _is_display_none(style):
            return NodeKind.SKIP
        if self.kill_switch_id is not None and attrs.get("id") == self.kill_switch_id:
            return NodeKind.SKIP
        return NodeKind.ELEMENT

    def ancestors_allow(self, node) -> bool:
        """True when no ancestor of ``node`` excludes its subtree."""
        current = node.parent
        while current is not None:
            if self.classify(current) is not NodeKind.ELEMENT:
                return False
            current = current.parent
        return True

    def is_eligible_subtree(self, node, *, check_ancestors: bool = True) -> bool:
        """Whether the walker may enter ``node``."""
        if self.classify(node) not in (NodeKind.ELEMENT, NodeKind.TEXT):
            return False
        return not check_ancestors or self.ancestors_allow(node)

    def is_eligible(self, node, *, check_ancestors: bool = True) -> bool:
        """Whether ``node`` is a text node that should be converted now."""
        if self.classify(node) is not NodeKind.TEXT:
            return False
        return not check_ancestors or self.ancestors_allow(node)
