"""OAuth scope set arithmetic.

Scopes are compared as exact strings: no wildcard matching and no
hierarchy inference (``gmail.modify`` does not imply ``gmail.readonly``).
All functions are pure.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import NamedTuple

GOOGLE_SCOPE_PREFIX = "https://www.googleapis.com/auth/"

CALENDAR_SCOPE = GOOGLE_SCOPE_PREFIX + "calendar"
CALENDAR_EVENTS_SCOPE = GOOGLE_SCOPE_PREFIX + "calendar.events"
GMAIL_READONLY_SCOPE = GOOGLE_SCOPE_PREFIX + "gmail.readonly"
GMAIL_SEND_SCOPE = GOOGLE_SCOPE_PREFIX + "gmail.send"
GMAIL_LABELS_SCOPE = GOOGLE_SCOPE_PREFIX + "gmail.labels"
DRIVE_SCOPE = GOOGLE_SCOPE_PREFIX + "drive"
SHEETS_SCOPE = GOOGLE_SCOPE_PREFIX + "spreadsheets"

# Requested when a caller does not name any scopes.
DEFAULT_SCOPES = frozenset(
    {
        CALENDAR_SCOPE,
        CALENDAR_EVENTS_SCOPE,
        GMAIL_READONLY_SCOPE,
        GMAIL_SEND_SCOPE,
        GMAIL_LABELS_SCOPE,
    }
)


class ScopeComparison(NamedTuple):
    """Difference between granted and required scopes."""

    missing: frozenset[str]
    extra: frozenset[str]


def parse_scopes(value: str | Iterable[str] | None) -> frozenset[str]:
    """Normalize scopes into a frozenset.

    Accepts the space separated wire format used by OAuth token responses,
    comma separated strings from environment variables, or any iterable of
    scope strings. Blank entries are dropped.

    Example:
        >>> sorted(parse_scopes("read, write  read"))
        ['read', 'write']
    """
    if value is None:
        return frozenset()
    if isinstance(value, str):
        items: Iterable[str] = value.replace(",", " ").split()
    else:
        items = value
    return frozenset(s.strip() for s in items if s and s.strip())


def format_scopes(scopes: Iterable[str]) -> str:
    """Render scopes in the space separated wire format, sorted."""
    return " ".join(sorted(set(scopes)))


def union(granted: Iterable[str], requested: Iterable[str]) -> frozenset[str]:
    """Return every scope in either set."""
    return frozenset(granted) | frozenset(requested)


def is_satisfied(granted: Iterable[str], requested: Iterable[str]) -> bool:
    """Check whether every requested scope has been granted."""
    return frozenset(requested) <= frozenset(granted)


def compare(granted: Iterable[str], required: Iterable[str]) -> ScopeComparison:
    """Report scopes that are required but not granted, and the reverse."""
    granted_set = frozenset(granted)
    required_set = frozenset(required)
    return ScopeComparison(
        missing=required_set - granted_set,
        extra=granted_set - required_set,
    )


def scope_labels(scopes: Iterable[str]) -> list[str]:
    """Short, sorted labels for display (``gmail.readonly`` and so on)."""
    return sorted(s.removeprefix(GOOGLE_SCOPE_PREFIX) for s in scopes)


__all__ = [
    "DEFAULT_SCOPES",
    "CALENDAR_SCOPE",
    "CALENDAR_EVENTS_SCOPE",
    "GMAIL_READONLY_SCOPE",
    "GMAIL_SEND_SCOPE",
    "GMAIL_LABELS_SCOPE",
    "DRIVE_SCOPE",
    "SHEETS_SCOPE",
    "ScopeComparison",
    "parse_scopes",
    "format_scopes",
    "union",
    "is_satisfied",
    "compare",
    "scope_labels",
]
