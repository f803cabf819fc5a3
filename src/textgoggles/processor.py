"""Text processor: applies the rule source to strings.

Matching is a single pass per rule over the original input. Rules run in
source order and each claims the non-overlapping spans it matches that no
earlier rule has claimed, so the earliest rule always wins a contested span
and replacement text is never matched again.
"""

from __future__ import annotations

import logging
from bisect import bisect_left, insort
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import CACHE, RULE, PipelineError

if TYPE_CHECKING:
    from .context import PipelineContext
    from .rules import PatternRule, PatternSource

logger = logging.getLogger(__name__)


def preview(text: str | None, limit: int = 30) -> str:
    """Short, quoted rendering of page text for log messages."""
    if text is None:
        return "None"
    if len(text) > limit:
        return repr(text[:limit]) + "..."
    return repr(text)


@dataclass(frozen=True, slots=True)
class Segment:
    """One converted span of the input string."""

    start: int
    end: int
    original: str
    replacement: str
    rule: str


@dataclass(frozen=True, slots=True)
class ProcessResult:
    text: str
    changed: bool
    segments: tuple[Segment, ...] = ()


class CacheEntry:
    __slots__ = ("result", "source")

    def __init__(self, source: str, result: ProcessResult) -> None:
        self.source = source
        self.result = result


class TextCache:
    """Bounded least-recently-used cache of processing results.

    Keys are ``(rule_source_version, text)`` so results never survive a
    rule-set change. The cache is an optimization only: anything missing or
    unusable is recomputed.
    """

    __slots__ = ("_data", "hits", "maxsize", "misses")

    def __init__(self, maxsize: int = 1000) -> None:
        if maxsize < 1:
            msg = "maxsize must be >= 1"
            raise ValueError(msg)
        self.maxsize = maxsize
        self._data: OrderedDict[tuple[str, str], object] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: tuple[str, str]) -> object | None:
        try:
            value = self._data[key]
        except KeyError:
            self.misses += 1
            return None
        self._data.move_to_end(key)
        self.hits += 1
        return value

    def put(self, key: tuple[str, str], value: object) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self.maxsize:
            self._data.popitem(last=False)

    def discard(self, key: tuple[str, str]) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data


def _overlaps(claimed: list[tuple[int, int]], start: int, end: int) -> bool:
    i = bisect_left(claimed, (start, end))
    if i > 0 and claimed[i - 1][1] > start:
        return True
    return i < len(claimed) and claimed[i][0] < end


class TextProcessor:
    """Convert strings according to a ``PatternSource``.

    ``process`` is pure with respect to the source: the same input always
    yields the same result. Results are memoized in the context's
    ``TextCache``; the hint pre-check skips matching for text that cannot
    contain any rule's match.
    """

    def __init__(
        self,
        source: PatternSource,
        context: PipelineContext | None = None,
        *,
        use_cache: bool | None = None,
        early_bailout: bool | None = None,
    ) -> None:
        if context is None:
            from .context import PipelineContext

            context = PipelineContext(source)
        self.source = source
        self.context = context
        config = context.config
        self.use_cache = config.use_cache if use_cache is None else use_cache
        self.early_bailout = config.early_bailout if early_bailout is None else early_bailout
        timeout_ms = config.rule_timeout_ms
        self._timeout = timeout_ms / 1000.0 if timeout_ms else None

    @property
    def cache(self) -> TextCache:
        return self.context.cache

    def is_likely_match(self, text: str) -> bool:
        return self.source.is_likely_match(text)

    def process(self, text: str) -> ProcessResult:
        if not text:
            return ProcessResult(text or "", False)

        key = (self.source.version, text)
        if self.use_cache:
            cached = self._cached(key, text)
            if cached is not None:
                return cached

        stats = self.context.stats
        failed = False
        if self.early_bailout and not self.source.is_likely_match(text):
            stats["bailouts"] += 1
            result = ProcessResult(text, False)
        else:
            stats["full_scans"] += 1
            result, failed = self._apply_rules(text)

        # Results degraded by a failed rule are never cached.
        if self.use_cache and not failed:
            self.cache.put(key, CacheEntry(text, result))
        return result

    def _cached(self, key: tuple[str, str], text: str) -> ProcessResult | None:
        entry = self.cache.get(key)
        if entry is None:
            return None
        if isinstance(entry, CacheEntry) and entry.source == text and isinstance(entry.result, ProcessResult):
            self.context.stats["cache_hits"] += 1
            return entry.result
        # Unusable entry: drop it and recompute.
        logger.debug("Discarding invalid cache entry for %s", preview(text))
        self.cache.discard(key)
        self.context.record_error(
            PipelineError("invalid-cache-entry", CACHE, f"Invalid cache entry of type {type(entry).__name__}"),
            log=False,
        )
        return None

    def _apply_rules(self, text: str) -> tuple[ProcessResult, bool]:
        """Run every rule; also report whether any rule failed."""
        claimed: list[tuple[int, int]] = []
        found: list[Segment] = []
        failed = False
        for rule in self.source:
            try:
                segments = self._match_rule(rule, text, claimed)
            except Exception as exc:  # noqa: BLE001
                self._rule_failed(rule, text, exc)
                failed = True
                continue
            for seg in segments:
                insort(claimed, (seg.start, seg.end))
                found.append(seg)

        if not found:
            return ProcessResult(text, False), failed

        found.sort(key=lambda s: s.start)
        parts: list[str] = []
        cursor = 0
        for seg in found:
            parts.append(text[cursor : seg.start])
            parts.append(seg.replacement)
            cursor = seg.end
        parts.append(text[cursor:])
        return ProcessResult("".join(parts), True, tuple(found)), failed

    def _match_rule(self, rule: PatternRule, text: str, claimed: list[tuple[int, int]]) -> list[Segment]:
        # Matches are committed by the caller only if the whole rule succeeds.
        out: list[Segment] = []
        pos = 0
        length = len(text)
        while pos <= length:
            m = rule.pattern.search(text, pos, timeout=self._timeout)
            if m is None:
                break
            start, end = m.span()
            if start == end or _overlaps(claimed, start, end):
                pos = start + 1
                continue
            out.append(Segment(start, end, m.group(0), rule.render(m), rule.name))
            pos = end
        return out

    def _rule_failed(self, rule: PatternRule, text: str, exc: Exception) -> None:
        code = "rule-timeout" if isinstance(exc, TimeoutError) else "rule-failed"
        logger.warning("Rule %r skipped for %s: %s", rule.name, preview(text), exc)
        self.context.record_error(
            PipelineError(code, RULE, f"{type(exc).__name__}: {exc}", detail=rule.name),
            log=False,
        )
