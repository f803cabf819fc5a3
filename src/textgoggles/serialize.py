"""HTML serialization for live document nodes."""

# ruff: noqa: PERF401

from __future__ import annotations

from typing import Any

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

# Text inside these is emitted verbatim.
RAW_TEXT_ELEMENTS = frozenset({"script", "style", "xmp", "iframe", "noembed", "noframes", "plaintext"})


def _escape_text(text: str | None) -> str:
    if not text:
        return ""
    return str(text).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _choose_attr_quote(value: str | None) -> str:
    if value is None:
        return '"'
    value = str(value)
    if '"' in value and "'" not in value:
        return "'"
    return '"'


def _escape_attr_value(value: str | None, quote_char: str) -> str:
    if value is None:
        return ""
    value = str(value).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    if quote_char == '"':
        return value.replace('"', "&quot;")
    return value.replace("'", "&#39;")


def serialize_start_tag(name: str, attrs: dict[str, str | None] | None) -> str:
    parts: list[str] = ["<", name]
    for key, value in (attrs or {}).items():
        if value is None or value == "":
            parts.extend([" ", key])
            continue
        value_str = str(value)
        quote = _choose_attr_quote(value_str)
        parts.extend([" ", key, "=", quote, _escape_attr_value(value_str, quote), quote])
    parts.append(">")
    return "".join(parts)


def serialize_end_tag(name: str) -> str:
    return f"</{name}>"


def to_html(node: Any) -> str:
    """Serialize ``node`` (and its subtree) to an HTML string.

    Output is compact: no indentation is added, so text content round-trips
    exactly through a parser.
    """
    parts: list[str] = []
    # (node, closing) pairs; closing entries emit end tags after children.
    stack: list[tuple[Any, bool]] = [(node, False)]
    while stack:
        current, closing = stack.pop()
        name = current.name
        if closing:
            parts.append(serialize_end_tag(name))
            continue
        if name in {"#document", "#document-fragment"}:
            stack.extend((child, False) for child in reversed(current.children))
            continue
        if name == "#text":
            parent = current.parent
            if parent is not None and parent.name in RAW_TEXT_ELEMENTS:
                parts.append(current.data or "")
            else:
                parts.append(_escape_text(current.data))
            continue
        if name == "#comment":
            parts.append(f"<!--{current.data or ''}-->")
            continue
        if name == "!doctype":
            parts.append("<!DOCTYPE html>")
            continue

        parts.append(serialize_start_tag(name, current.attrs))
        if name in VOID_ELEMENTS:
            continue
        stack.append((current, True))
        stack.extend((child, False) for child in reversed(current.children))
    return "".join(parts)
