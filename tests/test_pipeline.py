from __future__ import annotations

import asyncio
import io
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from textgoggles import Pipeline, PipelineConfig, convert_html, parse, to_html
from textgoggles.__main__ import main
from textgoggles.tooltip import TooltipPhase

ARTICLE = (
    "<html><head><title>Hillary Clinton</title></head><body>"
    "<h1>Hillary Clinton meets Kim Jong-un</h1>"
    "<p>Later, Ted Cruz had coffee.</p>"
    "<textarea>Hillary Clinton</textarea>"
    "</body></html>"
)


class TestConvertHtml(unittest.TestCase):
    def test_default_nicknames(self) -> None:
        html = convert_html(ARTICLE)
        doc = parse(html)
        h1, p, textarea = doc.body.children
        assert h1.children[0].text == "Crooked Hillary"
        assert h1.children[0].attrs["data-original-text"] == "Hillary Clinton"
        assert p.text == "Later, Lyin' Ted had covfefe."
        assert textarea.text == "Hillary Clinton"
        assert doc.head.children[0].text == "Hillary Clinton"

    def test_kill_switch_leaves_document_unchanged(self) -> None:
        html = '<p id="tg-kill-switch"></p><p>Hillary Clinton</p>'
        expected = to_html(parse(html))
        assert convert_html(html) == expected

    def test_kill_switch_can_be_disabled(self) -> None:
        html = '<p id="tg-kill-switch"></p><p>Hillary Clinton</p>'
        converted = convert_html(html, config=PipelineConfig(kill_switch_id=None))
        assert "Crooked Hillary" in converted

    def test_convert_is_idempotent(self) -> None:
        once = convert_html(ARTICLE)
        assert convert_html(once) == once


class TestPipeline(unittest.IsolatedAsyncioTestCase):
    def make_pipeline(self, **config):
        options = {"debounce_ms": 10.0, "max_wait_ms": 40.0, "tooltip_delay_ms": 0.0}
        options.update(config)
        pipeline = Pipeline(config=PipelineConfig(**options))
        self.addCleanup(pipeline.teardown)
        return pipeline

    async def test_start_converts_and_watches(self) -> None:
        pipeline = self.make_pipeline()
        doc = parse("<p>Hillary Clinton spoke.</p>")
        walk = pipeline.start(doc)
        assert walk is pipeline.initial_pass
        await pipeline.settle(timeout=5)
        p = doc.body.children[0]
        assert p.children[0].text == "Crooked Hillary"

        added = parse("<div><p>Then Marco Rubio replied.</p></div>").body.children[0]
        added.parent.remove_child(added)
        doc.body.append_child(added)
        await pipeline.settle(timeout=5)
        assert added.text == "Then Little Marco replied."
        assert pipeline.stats["batches_flushed"] == 1

    async def test_tooltip_is_wired(self) -> None:
        pipeline = self.make_pipeline()
        doc = parse("<p>Hillary Clinton spoke.</p>")
        pipeline.start(doc)
        await pipeline.settle(timeout=5)

        wrapper = doc.body.children[0].children[0]
        wrapper.dispatch_event("focusin")
        assert pipeline.tooltip.phase is TooltipPhase.VISIBLE
        assert pipeline.tooltip.element.text == "Hillary Clinton"

        # The tooltip itself is never converted.
        await pipeline.settle(timeout=5)
        assert pipeline.tooltip.element.text == "Hillary Clinton"
        assert pipeline.stats.get("batches_flushed", 0) == 0

    async def test_second_start_is_a_no_op(self) -> None:
        pipeline = self.make_pipeline()
        doc = parse("<p>Hillary Clinton spoke.</p>")
        first = pipeline.start(doc)
        tooltip = pipeline.tooltip
        assert pipeline.start(doc) is first
        assert pipeline.tooltip is tooltip
        assert len(pipeline.walker.active_passes) <= 1
        await pipeline.settle(timeout=5)

        wrapper = doc.body.children[0].children[0]
        wrapper.dispatch_event("focusin")
        tooltips = [n for n in doc.iter_descendants() if n.attrs.get("id") == "tg-tooltip"]
        assert len(tooltips) == 1
        assert len(doc.body.listeners_for("focusin")) == 1

        with self.assertRaises(ValueError):
            pipeline.start(parse("<p>other</p>"))

    async def test_kill_switch_prevents_start(self) -> None:
        pipeline = self.make_pipeline()
        doc = parse('<div id="tg-kill-switch"></div><p>Hillary Clinton</p>')
        assert pipeline.start(doc) is None
        assert not pipeline.coordinator.observing
        doc.body.append_child(parse("<p>Ted Cruz</p>").body.children[0])
        await asyncio.sleep(0.1)
        assert "tg-converted-text" not in to_html(doc)

    async def test_teardown_detaches_everything(self) -> None:
        pipeline = self.make_pipeline()
        doc = parse("<p>Hillary Clinton spoke.</p>")
        pipeline.start(doc)
        await pipeline.settle(timeout=5)
        wrapper = doc.body.children[0].children[0]
        wrapper.dispatch_event("focusin")

        pipeline.teardown()
        assert not pipeline.tooltip.attached
        assert doc.get_element_by_id("tg-tooltip") is None
        assert not pipeline.walker.busy
        await pipeline.settle(timeout=1)


class TestCommandLine(unittest.TestCase):
    def run_main(self, *argv):
        stdout, stderr = io.StringIO(), io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()

    def write_page(self, html):
        handle = tempfile.NamedTemporaryFile("w", suffix=".html", delete=False, encoding="utf-8")
        with handle:
            handle.write(html)
        path = Path(handle.name)
        self.addCleanup(path.unlink)
        return path

    def test_converts_file_and_prints_stats(self) -> None:
        path = self.write_page("<p>Hillary Clinton had coffee.</p>")
        code, out, err = self.run_main(str(path), "--stats", "--chunk-size", "5")
        assert code == 0
        assert "Crooked Hillary" in out
        assert "covfefe" in out
        assert "converted=1" in err
        assert "errors.rule=0" in err

    def test_invalid_option_returns_error(self) -> None:
        path = self.write_page("<p>x</p>")
        code, out, err = self.run_main(str(path), "--chunk-size", "0")
        assert code == 2
        assert out == ""
        assert "chunk_size" in err

    def test_unreadable_input_returns_error(self) -> None:
        code, out, err = self.run_main("/nonexistent/textgoggles/page.html")
        assert code == 2
        assert out == ""
        assert err.startswith("textgoggles: ")

        handle = tempfile.NamedTemporaryFile("wb", suffix=".html", delete=False)
        with handle:
            handle.write(b"<p>caf\xe9 \xff</p>")
        path = Path(handle.name)
        self.addCleanup(path.unlink)
        code, out, err = self.run_main(str(path))
        assert code == 2
        assert out == ""
        assert "utf-8" in err


if __name__ == "__main__":
    unittest.main()
