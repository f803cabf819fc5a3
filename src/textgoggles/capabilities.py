"""Host capabilities, resolved once and injected where needed."""

from __future__ import annotations

import re
from dataclasses import dataclass

CHROME = "chrome"
FIREFOX = "firefox"
EDGE = "edge"
SAFARI = "safari"
OPERA = "opera"
UNKNOWN = "unknown"

_VERSION_PATTERNS = {
    CHROME: re.compile(r"Chrome/(\d+)"),
    FIREFOX: re.compile(r"Firefox/(\d+)"),
    EDGE: re.compile(r"Edg/(\d+)"),
    SAFARI: re.compile(r"Version/(\d+)"),
    OPERA: re.compile(r"OPR/(\d+)"),
}


@dataclass(frozen=True, slots=True)
class Capabilities:
    """Environment-specific behaviour for the tooltip controller."""

    browser: str = UNKNOWN
    version: int | None = None
    hover_in: str = "mouseover"
    hover_out: str = "mouseout"
    focus_in: str = "focusin"
    focus_out: str = "focusout"
    outside_press: str = "mousedown"
    dismiss_keys: frozenset[str] = frozenset({"Escape", "Esc"})
    max_z_index: int = 2147483647
    show_delay_ms: float = 300.0
    supports_pointer_events: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.dismiss_keys, frozenset):
            object.__setattr__(self, "dismiss_keys", frozenset(self.dismiss_keys))


def detect_browser(user_agent: str) -> str:
    if "Firefox" in user_agent:
        return FIREFOX
    if "Edg" in user_agent:
        return EDGE
    if "Chrome" in user_agent:
        return OPERA if "OPR" in user_agent else CHROME
    if "Safari" in user_agent:
        return SAFARI
    return UNKNOWN


def detect_version(browser: str, user_agent: str) -> int | None:
    pattern = _VERSION_PATTERNS.get(browser)
    if pattern is None:
        return None
    match = pattern.search(user_agent)
    return int(match.group(1)) if match else None


def resolve_capabilities(user_agent: str | None = None) -> Capabilities:
    """Build the ``Capabilities`` value for a user agent string.

    Without a user agent the generic defaults are returned.
    """
    if not user_agent:
        return Capabilities()
    browser = detect_browser(user_agent)
    version = detect_version(browser, user_agent)
    if browser == SAFARI:
        # Taps on mobile Safari do not produce mousedown.
        return Capabilities(
            browser=browser,
            version=version,
            outside_press="touchstart" if "Mobile" in user_agent else "mousedown",
            supports_pointer_events=version is None or version >= 13,
        )
    if browser == FIREFOX:
        return Capabilities(browser=browser, version=version, dismiss_keys=frozenset({"Escape"}))
    return Capabilities(browser=browser, version=version)
