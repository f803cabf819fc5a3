"""Wire the components together for one document."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .capabilities import Capabilities, resolve_capabilities
from .classify import Classifier
from .config import DEFAULT_CONFIG, PipelineConfig
from .context import PipelineContext
from .coordinator import ChangeCoordinator
from .mappings import default_source
from .parser import parse
from .processor import TextProcessor
from .serialize import to_html
from .tooltip import TooltipController
from .walker import TreeWalker

if TYPE_CHECKING:
    from .node import Node
    from .rules import PatternSource
    from .walker import WalkPass

logger = logging.getLogger(__name__)


class Pipeline:
    """One text-conversion pipeline bound to one document.

    ``start()`` converts the document in chunks, then keeps watching it for
    new content and attaches the tooltip controller. ``teardown()`` cancels
    everything that is still scheduled; a torn-down pipeline cannot be
    restarted.
    """

    def __init__(
        self,
        source: PatternSource | None = None,
        config: PipelineConfig = DEFAULT_CONFIG,
        capabilities: Capabilities | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.source = source if source is not None else default_source()
        self.config = config
        self.capabilities = capabilities or resolve_capabilities()
        self.context = PipelineContext(self.source, config, loop=loop)
        self.classifier = Classifier(config)
        self.processor = TextProcessor(self.source, self.context)
        self.walker = TreeWalker(self.context, self.classifier, self.processor)
        self.coordinator = ChangeCoordinator(self.context, self.walker, self.classifier)
        self.tooltip: TooltipController | None = None
        self.document: Node | None = None
        self.initial_pass: WalkPass | None = None

    @property
    def errors(self):
        return self.context.errors

    @property
    def stats(self):
        return self.context.stats

    def start(self, document: Node) -> WalkPass | None:
        """Start converting ``document``. Must be called with a running loop.

        Returns the initial walker pass, or None when the page carries the
        kill switch. A started pipeline stays bound to its document: later
        calls return the initial pass without starting anything.
        """
        self.context.ensure_active()
        if self.document is not None:
            if document is not self.document:
                msg = "Pipeline is already started on another document"
                raise ValueError(msg)
            return self.initial_pass
        if self.kill_switch_active(document):
            logger.info("Kill switch #%s present; not starting", self.config.kill_switch_id)
            return None

        self.document = document
        self.initial_pass = self.walker.start(document)
        self.coordinator.start(document)
        self.tooltip = TooltipController(
            document,
            self.capabilities,
            delay_ms=self.config.tooltip_delay_ms,
            context=self.context,
        )
        self.tooltip.attach()
        self.context.on_teardown(self.tooltip.detach)
        logger.debug("Pipeline started with %r", self.source)
        return self.initial_pass

    async def settle(self, timeout: float | None = None) -> None:
        """Wait until no walker pass is running and no change is pending."""
        if timeout is not None:
            await asyncio.wait_for(self._settle(), timeout)
        else:
            await self._settle()

    async def _settle(self) -> None:
        debounce = self.config.debounce_ms / 1000.0
        while not self.context.torn_down:
            passes = self.walker.active_passes
            if passes:
                await asyncio.gather(*(walk.wait() for walk in passes))
                continue
            # Give the observer a turn to deliver records from the last writes.
            await asyncio.sleep(0)
            if self.coordinator.busy:
                await asyncio.sleep(debounce)
                continue
            if not self.walker.busy:
                return

    def teardown(self) -> None:
        self.context.teardown()

    def kill_switch_active(self, document: Node) -> bool:
        kill_switch = self.config.kill_switch_id
        return kill_switch is not None and document.get_element_by_id(kill_switch) is not None

    def convert(self, root: Node) -> WalkPass:
        """Convert ``root`` synchronously, without observing it."""
        return self.walker.run_sync(root)

    def convert_html(self, html: str) -> str:
        """Parse ``html``, convert it synchronously and serialize the result."""
        document = parse(html)
        if self.kill_switch_active(document):
            logger.info("Kill switch #%s present; leaving document unchanged", self.config.kill_switch_id)
        else:
            self.convert(document)
        return to_html(document)


def convert_html(html: str, source: PatternSource | None = None, config: PipelineConfig = DEFAULT_CONFIG) -> str:
    pipeline = Pipeline(source, config)
    try:
        return pipeline.convert_html(html)
    finally:
        pipeline.teardown()
