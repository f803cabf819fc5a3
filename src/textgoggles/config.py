"""Pipeline configuration."""

from __future__ import annotations

import os
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field, fields, replace

DEFAULT_SKIP_TAGS = frozenset(
    {
        # Non-visible / structural
        "script",
        "style",
        "noscript",
        "template",
        "head",
        "title",
        "meta",
        "link",
        # Embedded / foreign content
        "iframe",
        "object",
        "embed",
        "svg",
        "math",
        "canvas",
        # Form controls
        "input",
        "textarea",
        "select",
        "option",
        "button",
        # Preformatted / code
        "pre",
        "code",
    }
)

ENV_PREFIX = "TEXTGOGGLES_"


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Tunables for one pipeline instance.

    Durations are in milliseconds. All fields are validated on construction.
    """

    # Tree walker: nodes visited per synchronous slice, and an optional
    # wall-clock cap on a slice (None disables the time check).
    chunk_size: int = 50
    time_slice_ms: float | None = 15.0

    # Text processor
    cache_size: int = 1000
    use_cache: bool = True
    early_bailout: bool = True
    rule_timeout_ms: float | None = 50.0

    # Change coordinator: debounce window, cap on how long a batch may wait,
    # and batch size that forces an immediate flush.
    debounce_ms: float = 50.0
    max_wait_ms: float = 100.0
    max_batch_size: int = 100

    # Classifier
    skip_tags: Collection[str] = field(default_factory=lambda: DEFAULT_SKIP_TAGS)
    kill_switch_id: str | None = "tg-kill-switch"

    tooltip_delay_ms: float = 300.0
    error_history_size: int = 50

    def __post_init__(self) -> None:
        if not isinstance(self.skip_tags, frozenset):
            object.__setattr__(self, "skip_tags", frozenset(str(t).lower() for t in self.skip_tags))
        for name in ("chunk_size", "cache_size", "max_batch_size", "error_history_size"):
            if int(getattr(self, name)) < 1:
                msg = f"{name} must be >= 1"
                raise ValueError(msg)
        for name in ("debounce_ms", "max_wait_ms", "tooltip_delay_ms"):
            if float(getattr(self, name)) < 0:
                msg = f"{name} must be >= 0"
                raise ValueError(msg)
        for name in ("time_slice_ms", "rule_timeout_ms"):
            value = getattr(self, name)
            if value is not None and float(value) <= 0:
                msg = f"{name} must be > 0 or None"
                raise ValueError(msg)
        if self.max_wait_ms < self.debounce_ms:
            msg = "max_wait_ms must be >= debounce_ms"
            raise ValueError(msg)

    def with_options(self, **changes) -> PipelineConfig:
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, base: PipelineConfig | None = None) -> PipelineConfig:
        """Overlay ``TEXTGOGGLES_<FIELD>`` environment variables on ``base``.

        Example: ``TEXTGOGGLES_CHUNK_SIZE=200``, ``TEXTGOGGLES_USE_CACHE=0``,
        ``TEXTGOGGLES_SKIP_TAGS=script,style``.
        """
        environ = os.environ if environ is None else environ
        base = base or DEFAULT_CONFIG
        changes: dict[str, object] = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            changes[f.name] = _coerce(f.name, getattr(base, f.name), raw)
        return replace(base, **changes) if changes else base


def _coerce(name: str, current: object, raw: str) -> object:
    raw = raw.strip()
    if isinstance(current, bool):
        if raw.lower() in {"1", "true", "yes", "on"}:
            return True
        if raw.lower() in {"0", "false", "no", "off"}:
            return False
        msg = f"Invalid boolean for {name}: {raw!r}"
        raise ValueError(msg)
    if name == "skip_tags":
        return frozenset(t.strip().lower() for t in raw.split(",") if t.strip())
    if raw.lower() in {"", "none"} and name in {"time_slice_ms", "rule_timeout_ms", "kill_switch_id"}:
        return None
    if name == "kill_switch_id":
        return raw
    try:
        if isinstance(current, int):
            return int(raw)
        return float(raw)
    except ValueError:
        msg = f"Invalid number for {name}: {raw!r}"
        raise ValueError(msg) from None


DEFAULT_CONFIG: PipelineConfig = PipelineConfig()
