"""Pattern rules and the ordered, immutable rule source.

Rules are compiled once, when the source is built, so an invalid pattern is
reported at startup rather than while scanning a page.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

import regex

from .errors import RuleCompileError

IGNORECASE = regex.IGNORECASE

_COMPILED_TYPE = type(regex.compile(""))

Replacement = str | Callable[[Any], str]


def _word_bounded(literal: str) -> str:
    escaped = regex.escape(literal)
    if literal[:1].isalnum() or literal[:1] == "_":
        escaped = r"\b" + escaped
    if literal[-1:].isalnum() or literal[-1:] == "_":
        escaped = escaped + r"\b"
    return escaped


@dataclass(frozen=True, slots=True)
class PatternRule:
    """One lexical match/replacement pair.

    - ``pattern`` is a regular expression (string or compiled ``regex``
      pattern). With ``literal=True`` it is treated as plain text and matched
      on word boundaries.
    - ``replacement`` is inserted verbatim (it is not a substitution
      template), or called with the match object to produce the text.
    - ``hints`` are tokens of which at least one occurs in every match,
      compared case-insensitively. They power the cheap pre-check; a rule
      without hints is always run. Literal rules derive their own hint.
    """

    name: str
    pattern: Any
    replacement: Replacement
    hints: tuple[str, ...] | None
    enabled: bool

    def __init__(
        self,
        name: str,
        pattern: str | Any,
        replacement: Replacement,
        *,
        hints: Iterable[str] | None = None,
        flags: int = IGNORECASE,
        literal: bool = False,
        enabled: bool = True,
    ) -> None:
        if not isinstance(replacement, str) and not callable(replacement):
            raise RuleCompileError(name, "replacement must be a string or a callable")

        if isinstance(pattern, str):
            if not pattern:
                raise RuleCompileError(name, "empty pattern")
            source = _word_bounded(pattern) if literal else pattern
            try:
                compiled = regex.compile(source, flags)
            except regex.error as exc:
                raise RuleCompileError(name, str(exc)) from exc
            if literal and hints is None:
                hints = (pattern,)
        elif isinstance(pattern, _COMPILED_TYPE):
            compiled = pattern
        elif hasattr(pattern, "pattern") and hasattr(pattern, "flags"):
            # A stdlib re pattern; recompile so matching supports timeouts.
            try:
                compiled = regex.compile(pattern.pattern, pattern.flags)
            except regex.error as exc:
                raise RuleCompileError(name, str(exc)) from exc
        else:
            raise RuleCompileError(name, f"unsupported pattern type {type(pattern).__name__}")

        if hints is not None:
            hints = tuple(h.lower() for h in hints if h)
            if not hints:
                hints = None

        object.__setattr__(self, "name", str(name))
        object.__setattr__(self, "pattern", compiled)
        object.__setattr__(self, "replacement", replacement)
        object.__setattr__(self, "hints", hints)
        object.__setattr__(self, "enabled", bool(enabled))

    @classmethod
    def literal(cls, text: str, replacement: Replacement, *, name: str | None = None, **kwargs: Any) -> PatternRule:
        return cls(name or text, text, replacement, literal=True, **kwargs)

    def render(self, match: Any) -> str:
        if callable(self.replacement):
            return str(self.replacement(match))
        return self.replacement

    def fingerprint(self) -> str:
        replacement = self.replacement if isinstance(self.replacement, str) else _callable_name(self.replacement)
        return f"{self.name}\x00{self.pattern.pattern}\x00{self.pattern.flags}\x00{replacement}\x00{self.hints}"


def _callable_name(func: Callable[..., Any]) -> str:
    module = getattr(func, "__module__", "?")
    qualname = getattr(func, "__qualname__", repr(func))
    return f"{module}.{qualname}@{id(func):x}"


class PatternSource:
    """Ordered, read-only collection of rules.

    Order defines priority: when two rules match overlapping text, the
    earlier rule wins. ``version`` changes whenever any rule changes and is
    part of every cache key.
    """

    __slots__ = ("_prefilter", "_rules", "version")

    def __init__(self, rules: Iterable[PatternRule]) -> None:
        kept: list[PatternRule] = []
        for rule in rules:
            if not isinstance(rule, PatternRule):
                msg = f"Expected PatternRule, got {type(rule).__name__}"
                raise TypeError(msg)
            if rule.enabled:
                kept.append(rule)
        self._rules: tuple[PatternRule, ...] = tuple(kept)

        digest = hashlib.sha1(usedforsecurity=False)
        for rule in self._rules:
            digest.update(rule.fingerprint().encode("utf-8", "surrogatepass"))
            digest.update(b"\x01")
        self.version: str = digest.hexdigest()[:16]

        self._prefilter = self._compile_prefilter()

    def _compile_prefilter(self):
        tokens: set[str] = set()
        for rule in self._rules:
            if rule.hints is None:
                return None
            tokens.update(rule.hints)
        if not tokens:
            return None
        # Longest first so the alternation never stops at a shorter prefix.
        # Same case folding as the rules, so a match always contains a hit.
        ordered = sorted(tokens, key=lambda t: (-len(t), t))
        return regex.compile("|".join(regex.escape(t) for t in ordered), IGNORECASE)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, Replacement]] | Mapping[str, Replacement]) -> PatternSource:
        """Build a source of literal rules from ``(text, replacement)`` pairs."""
        items = pairs.items() if isinstance(pairs, Mapping) else pairs
        return cls(PatternRule.literal(text, replacement) for text, replacement in items)

    @property
    def rules(self) -> tuple[PatternRule, ...]:
        return self._rules

    @property
    def has_prefilter(self) -> bool:
        return self._prefilter is not None

    def is_likely_match(self, text: str) -> bool:
        """Cheap pre-check: False only when no rule can possibly match."""
        if not self._rules or not text:
            return False
        if self._prefilter is None:
            return True
        return self._prefilter.search(text) is not None

    def __iter__(self) -> Iterator[PatternRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __getitem__(self, index: int) -> PatternRule:
        return self._rules[index]

    def __repr__(self) -> str:
        return f"PatternSource({len(self._rules)} rules, version={self.version})"
