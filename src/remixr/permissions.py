"""Permission names and host-pattern helpers shared by the engine."""

from __future__ import annotations

from collections.abc import Iterable

ACTIVE_TAB = "activeTab"
ALL_URLS = "<all_urls>"
TABS = "tabs"
STORAGE = "storage"
UNLIMITED_STORAGE = "unlimitedStorage"
HISTORY = "history"
COOKIES = "cookies"
SIDE_PANEL = "sidePanel"

# Patterns that on their own match every origin.
BROAD_HOST_PATTERNS = frozenset({ALL_URLS, "*://*/*", "*://*"})

# Pair that together amounts to the same reach as <all_urls>.
BROAD_SCHEME_PAIR = frozenset({"http://*/*", "https://*/*"})


def is_host_pattern(value: str) -> bool:
    """Check whether a permission string is a host match pattern."""
    return value == ALL_URLS or "://" in value


def broad_host_patterns(patterns: Iterable[str]) -> list[str]:
    """Return the patterns responsible for broad host access, if any."""
    entries = [p for p in patterns if isinstance(p, str)]
    broad = [p for p in entries if p in BROAD_HOST_PATTERNS]
    if BROAD_SCHEME_PAIR.issubset(entries):
        broad.extend(sorted(BROAD_SCHEME_PAIR))
    return broad
