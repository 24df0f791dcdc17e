"""Miscellaneous helpers."""

from __future__ import annotations

import re
from typing import Iterable


def parse_seconds(value: str | None, default: float = 0.0) -> float:
    if value is None:
        return default
    stripped = value.strip()
    if not stripped:
        return default
    try:
        parsed = float(stripped)
    except ValueError:
        return default
    return max(0.0, parsed)


def parse_int(value: str | None, default: int = 0) -> int:
    if value is None:
        return default
    stripped = value.strip()
    if not stripped:
        return default
    try:
        parsed = int(stripped)
    except ValueError:
        return default
    return max(0, parsed)


def parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse textual boolean configuration values.

    Supported truthy values: ``on``, ``true``, ``yes``, ``1`` (case-insensitive).
    Supported falsy values: ``off``, ``false``, ``no``, ``0``.
    Any other value returns ``default``.
    """

    if value is None:
        return default
    normalized = value.strip().lower()
    if not normalized:
        return default
    if normalized in {"on", "true", "yes", "1"}:
        return True
    if normalized in {"off", "false", "no", "0"}:
        return False
    return default


def parse_keywords(value: str | None) -> tuple[str, ...] | None:
    """Split a comma separated keyword list, ``None`` when nothing usable is given."""

    if value is None:
        return None
    keywords = tuple(part.strip() for part in value.split(",") if part.strip())
    return keywords or None


def compile_keywords(keywords: Iterable[str]) -> re.Pattern[str] | None:
    cleaned = [re.escape(keyword.strip()) for keyword in keywords if keyword.strip()]
    if not cleaned:
        return None
    return re.compile("|".join(cleaned), re.IGNORECASE)


def matches_keywords(pattern: re.Pattern[str] | None, *texts: str | None) -> bool:
    """Return True if any of ``texts`` contains one of the compiled keywords."""

    if pattern is None:
        return False
    return any(text and pattern.search(text) for text in texts)
