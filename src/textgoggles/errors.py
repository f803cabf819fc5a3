"""Error records and exceptions.

Failures inside the pipeline are recovered where they happen and recorded
as ``PipelineError`` entries; only construction-time mistakes are raised.
"""

from __future__ import annotations

from collections import Counter, deque
from contextvars import ContextVar

RULE = "rule"
TRAVERSAL = "traversal"
OBSERVER = "observer"
CACHE = "cache"
TOOLTIP = "tooltip"

CATEGORIES = (RULE, TRAVERSAL, OBSERVER, CACHE, TOOLTIP)


class TextGogglesError(Exception):
    """Base class for errors raised by textgoggles."""


class RuleCompileError(TextGogglesError):
    """A pattern rule could not be compiled."""

    def __init__(self, rule_name, reason):
        super().__init__(f"Rule {rule_name!r} failed to compile: {reason}")
        self.rule_name = rule_name
        self.reason = reason


class PipelineTornDown(TextGogglesError):
    """The pipeline was used after teardown."""


class PipelineError:
    """A recovered failure with enough context to debug it."""

    __slots__ = ("category", "code", "detail", "message")

    def __init__(self, code, category, message=None, detail=None):
        self.code = code
        self.category = category
        self.message = message or code
        self.detail = detail

    def __repr__(self):
        return f"PipelineError({self.code!r}, category={self.category!r})"

    def __str__(self):
        if self.message != self.code:
            return f"[{self.category}] {self.code} - {self.message}"
        return f"[{self.category}] {self.code}"

    def __eq__(self, other):
        if not isinstance(other, PipelineError):
            return NotImplemented
        return self.code == other.code and self.category == other.category and self.message == other.message

    __hash__ = None  # Unhashable since we define __eq__


class ErrorLog:
    """Bounded history of recovered errors plus per-category counts."""

    __slots__ = ("_counts", "_history")

    def __init__(self, max_history=50):
        self._history: deque[PipelineError] = deque(maxlen=max_history)
        self._counts: Counter[str] = Counter()

    def record(self, error: PipelineError) -> None:
        self._history.append(error)
        self._counts[error.category] += 1

    @property
    def history(self) -> list[PipelineError]:
        return list(self._history)

    def counts(self) -> dict[str, int]:
        return {category: self._counts.get(category, 0) for category in CATEGORIES}

    def total(self) -> int:
        return sum(self._counts.values())

    def clear(self) -> None:
        self._history.clear()
        self._counts.clear()

    def __len__(self):
        return len(self._history)


_ERROR_SINK: ContextVar[list[PipelineError] | None] = ContextVar("textgoggles_error_sink", default=None)


def emit_error(code: str, *, category: str, message: str | None = None, detail: object = None) -> None:
    """Append a PipelineError to the active sink.

    A sink is active while a caller collects errors (see ``collect_errors``).
    If no sink is active, this is a no-op.
    """

    sink = _ERROR_SINK.get()
    if sink is None:
        return
    sink.append(PipelineError(str(code), category, message, detail))


class collect_errors:  # noqa: N801
    """Context manager that captures errors emitted inside its block.

    >>> with collect_errors() as errors:
    ...     processor.process("text")
    """

    __slots__ = ("_token", "errors")

    def __init__(self):
        self.errors: list[PipelineError] = []
        self._token = None

    def __enter__(self):
        self._token = _ERROR_SINK.set(self.errors)
        return self.errors

    def __exit__(self, *exc_info):
        _ERROR_SINK.reset(self._token)
        return False
