"""Shared service-layer helper functions."""

from __future__ import annotations

from datetime import UTC, datetime


def today_iso() -> str:
    """Today's date as YYYY-MM-DD (UTC)."""
    return datetime.now(UTC).strftime("%Y-%m-%d")


def date_key(value: str) -> str:
    """Normalize a date or datetime string to its YYYY-MM-DD prefix.

    Examples:
        >>> date_key("2026-03-01T09:30:00Z")
        '2026-03-01'
        >>> date_key("2026-03-01")
        '2026-03-01'
    """
    return value.split("T", 1)[0]
