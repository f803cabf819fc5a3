"""Build live trees from HTML source.

Parsing itself is delegated to the JustHTML HTML5 parser; its output tree is
copied into the live node classes so the pipeline can observe and mutate it.
"""

from __future__ import annotations

from justhtml import JustHTML

from .node import CommentNode, Document, ElementNode, Node, TextNode


def _copy_node(src) -> Node | None:
    name = src.name
    if name == "#text":
        return TextNode(src.data or "")
    if name == "#comment":
        return CommentNode(src.data or "")
    if name == "!doctype":
        return Node("!doctype")
    namespace = getattr(src, "namespace", None)
    if namespace == "html":
        namespace = None
    return ElementNode(name, dict(src.attrs or {}), namespace)


def _source_children(src):
    children = list(src.children or ())
    # <template> keeps its parsed children in a separate content fragment.
    content = getattr(src, "template_content", None)
    if content is not None:
        children.extend(content.children or ())
    return children


def _copy_children(src, dest: Node) -> None:
    # Explicit stack so deeply nested documents cannot exhaust the call stack.
    stack = [(src, dest)]
    while stack:
        src_parent, dest_parent = stack.pop()
        for child in _source_children(src_parent):
            if child.name in {"#document", "#document-fragment"}:
                stack.append((child, dest_parent))
                continue
            node = _copy_node(child)
            dest_parent.append_child(node)
            if child.name not in {"#text", "#comment", "!doctype"}:
                stack.append((child, node))


def parse(html: str) -> Document:
    """Parse a full HTML document into a live ``Document``."""
    doc = Document()
    _copy_children(JustHTML(html or "").root, doc)
    return doc


def parse_fragment(html: str) -> list[Node]:
    """Parse an HTML snippet into detached live nodes.

    The snippet is parsed as body content; the returned nodes have no parent
    and can be inserted anywhere in a live document.
    """
    body = parse(html).body
    if body is None:
        return []
    nodes = list(body.children)
    for node in nodes:
        body.remove_child(node)
    return nodes
