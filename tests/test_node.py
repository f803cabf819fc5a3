from __future__ import annotations

import asyncio
import unittest

from textgoggles.events import Event
from textgoggles.node import CommentNode, Document, ElementNode, TextNode
from textgoggles.observer import MutationObserver
from textgoggles.parser import parse, parse_fragment
from textgoggles.serialize import to_html


def build_doc():
    doc = Document()
    html = ElementNode("html")
    body = ElementNode("body")
    doc.append_child(html)
    html.append_child(body)
    return doc, body


class TestNode(unittest.TestCase):
    def test_sibling_links_follow_mutations(self) -> None:
        parent = ElementNode("div")
        a, b, c = TextNode("a"), TextNode("b"), TextNode("c")
        parent.append_child(a)
        parent.append_child(c)
        parent.insert_before(b, c)
        assert parent.children == [a, b, c]
        assert a.next_sibling is b and b.next_sibling is c
        assert c.previous_sibling is b
        parent.remove_child(b)
        assert a.next_sibling is c and c.previous_sibling is a
        assert b.parent is None

    def test_circular_insertions_are_rejected(self) -> None:
        outer = ElementNode("div")
        inner = ElementNode("span")
        outer.append_child(inner)
        with self.assertRaises(ValueError):
            inner.append_child(outer)
        with self.assertRaises(ValueError):
            outer.append_child(outer)

    def test_remove_or_replace_non_child_raises(self) -> None:
        parent = ElementNode("div")
        with self.assertRaises(ValueError):
            parent.remove_child(TextNode("x"))
        with self.assertRaises(ValueError):
            parent.replace_with_nodes(TextNode("x"), [])
        with self.assertRaises(ValueError):
            parent.insert_before(TextNode("x"), TextNode("not a child"))

    def test_replace_with_nodes_splices_in_place(self) -> None:
        parent = ElementNode("p")
        before, old, after = TextNode("1"), TextNode("2"), TextNode("3")
        for node in (before, old, after):
            parent.append_child(node)
        x, y = TextNode("x"), ElementNode("span")
        parent.replace_with_nodes(old, [x, y])
        assert parent.children == [before, x, y, after]
        assert before.next_sibling is x
        assert y.next_sibling is after
        assert after.previous_sibling is y
        assert old.parent is None

    def test_replace_child_and_test_format(self) -> None:
        parent = ElementNode("p", {"class": "a", "id": "x"})
        old = TextNode("old")
        parent.append_child(old)
        bold = ElementNode("b")
        bold.append_child(TextNode("new"))
        parent.replace_child(bold, old)
        assert parent.children == [bold]
        assert parent.to_test_format() == '| <p>\n|   class="a"\n|   id="x"\n|   <b>\n|     "new"'

    def test_replacement_nodes_must_be_detached(self) -> None:
        parent = ElementNode("p")
        old = TextNode("old")
        parent.append_child(old)
        other = ElementNode("div")
        attached = TextNode("attached")
        other.append_child(attached)
        with self.assertRaises(ValueError):
            parent.replace_with_nodes(old, [attached])
        assert parent.children == [old]

    def test_set_text_never_parses_markup(self) -> None:
        node = ElementNode("div")
        node.append_child(ElementNode("b"))
        node.set_text("<img src=x onerror=alert(1)>")
        assert [c.name for c in node.children] == ["#text"]
        assert node.text == "<img src=x onerror=alert(1)>"
        assert to_html(node) == "<div>&lt;img src=x onerror=alert(1)&gt;</div>"

    def test_connectivity_and_lookup(self) -> None:
        doc, body = build_doc()
        div = ElementNode("div", {"ID": "main"})
        assert not div.is_connected
        body.append_child(div)
        assert div.is_connected
        assert div.owner_document is doc
        assert doc.get_element_by_id("main") is div
        assert doc.body is body
        assert div.find_ancestor("body") is body
        assert div.closest(lambda n: n.name == "html") is body.parent
        assert body.contains(div)
        assert div.has_ancestor_matching(lambda n: n is doc)

    def test_element_names_are_lowercased(self) -> None:
        assert ElementNode("DIV").name == "div"
        assert ElementNode("foreignObject", None, "svg").name == "foreignObject"


class TestEvents(unittest.TestCase):
    def test_events_bubble_to_ancestors(self) -> None:
        doc, body = build_doc()
        span = ElementNode("span")
        body.append_child(span)
        seen = []
        body.add_event_listener("click", lambda e: seen.append(("body", e.target, e.current_target)))
        doc.add_event_listener("click", lambda e: seen.append(("doc", e.target, e.current_target)))
        span.dispatch_event("click")
        assert seen == [("body", span, body), ("doc", span, doc)]

    def test_stop_propagation_and_prevent_default(self) -> None:
        doc, body = build_doc()
        seen = []

        def stop(event):
            event.stop_propagation()
            event.prevent_default()

        body.add_event_listener("keydown", stop)
        doc.add_event_listener("keydown", seen.append)
        assert body.dispatch_event(Event("keydown", key="Escape")) is False
        assert seen == []

    def test_listeners_can_be_removed(self) -> None:
        node = ElementNode("div")
        seen = []
        node.add_event_listener("focusin", seen.append)
        node.add_event_listener("focusin", seen.append)
        assert len(node.listeners_for("focusin")) == 1
        node.remove_event_listener("focusin", seen.append)
        node.dispatch_event("focusin")
        assert seen == []


class TestMutationObserver(unittest.TestCase):
    def test_records_are_buffered_without_loop(self) -> None:
        doc, body = build_doc()
        observer = MutationObserver(lambda records, obs: None)
        observer.observe(doc, character_data=True, attributes=True)
        p = ElementNode("p")
        body.append_child(p)
        text = TextNode("a")
        p.append_child(text)
        text.data = "b"
        p.set_attribute("class", "x")
        kinds = [r.kind for r in observer.take_records()]
        assert kinds == ["childList", "childList", "characterData", "attributes"]
        assert observer.pending == 0

    def test_replacement_is_one_record(self) -> None:
        doc, body = build_doc()
        old = TextNode("old")
        body.append_child(old)
        observer = MutationObserver(lambda records, obs: None)
        observer.observe(doc)
        new = [TextNode("a"), ElementNode("span")]
        body.replace_with_nodes(old, new)
        (record,) = observer.take_records()
        assert record.added_nodes == tuple(new)
        assert record.removed_nodes == (old,)

    def test_options_filter_records(self) -> None:
        doc, body = build_doc()
        p = ElementNode("p")
        body.append_child(p)
        observer = MutationObserver(lambda records, obs: None)
        observer.observe(p, subtree=False)
        body.append_child(ElementNode("div"))
        inner = ElementNode("b")
        p.append_child(inner)
        inner.append_child(TextNode("deep"))
        p.set_attribute("id", "x")
        records = observer.take_records()
        assert len(records) == 1
        assert records[0].added_nodes == (inner,)

    def test_detached_targets_cannot_be_observed(self) -> None:
        observer = MutationObserver(lambda records, obs: None)
        with self.assertRaises(ValueError):
            observer.observe(ElementNode("div"))

    def test_disconnect_stops_delivery(self) -> None:
        doc, body = build_doc()
        observer = MutationObserver(lambda records, obs: None)
        observer.observe(doc)
        observer.disconnect()
        body.append_child(ElementNode("p"))
        assert observer.take_records() == []
        assert doc._registrations == []


class TestMutationObserverAsync(unittest.IsolatedAsyncioTestCase):
    async def test_records_are_delivered_in_one_batch(self) -> None:
        doc, body = build_doc()
        batches = []
        observer = MutationObserver(lambda records, obs: batches.append(list(records)))
        observer.observe(doc)
        for _ in range(3):
            body.append_child(ElementNode("p"))
        assert batches == []
        await asyncio.sleep(0)
        assert len(batches) == 1
        assert len(batches[0]) == 3

    async def test_callback_errors_go_to_loop_handler(self) -> None:
        doc, body = build_doc()
        loop = asyncio.get_running_loop()
        reported = []
        loop.set_exception_handler(lambda lp, context: reported.append(context["exception"]))
        self.addCleanup(loop.set_exception_handler, None)

        def fail(records, obs):
            raise RuntimeError("callback failed")

        observer = MutationObserver(fail)
        observer.observe(doc)
        body.append_child(ElementNode("p"))
        await asyncio.sleep(0)
        assert len(reported) == 1
        body.append_child(ElementNode("p"))
        await asyncio.sleep(0)
        assert len(reported) == 2


class TestParseAndSerialize(unittest.TestCase):
    def test_parse_builds_live_document(self) -> None:
        doc = parse("<!DOCTYPE html><p class=a>Hello <b>world</b></p><!-- note -->")
        p = doc.body.children[0]
        assert p.attrs == {"class": "a"}
        assert p.text == "Hello world"
        assert p.is_connected
        assert to_html(doc.body) == "<body><p class=\"a\">Hello <b>world</b></p><!-- note --></body>"

    def test_attribute_values_are_escaped(self) -> None:
        span = ElementNode("span", {"data-original-text": '<script>alert("1")</script> & more'})
        html = to_html(span)
        assert html == "<span data-original-text='&lt;script&gt;alert(\"1\")&lt;/script&gt; &amp; more'></span>"
        reparsed = parse(html).body.children[0]
        assert reparsed.attrs["data-original-text"] == '<script>alert("1")</script> & more'

    def test_raw_text_and_void_elements(self) -> None:
        doc = parse("<p>a<br>b</p><script>if (a < b) {}</script>")
        assert to_html(doc.body.children[0]) == "<p>a<br>b</p>"
        script = doc.query_all(lambda n: n.name == "script")[0]
        assert to_html(script) == "<script>if (a < b) {}</script>"

    def test_parse_fragment_returns_detached_nodes(self) -> None:
        nodes = parse_fragment("<p>one</p>two")
        assert [n.name for n in nodes] == ["p", "#text"]
        assert all(n.parent is None for n in nodes)

    def test_comment_round_trip(self) -> None:
        node = ElementNode("div")
        node.append_child(CommentNode(" hi "))
        assert to_html(node) == "<div><!-- hi --></div>"


if __name__ == "__main__":
    unittest.main()
