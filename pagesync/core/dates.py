"""Timestamp parsing shared by the source adapter and the page builder."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse Notion/ISO timestamps and dates into aware UTC datetimes.

    Date-only values ("2025-01-31") become midnight UTC. Returns None for
    empty or unparseable input.
    """
    if value is None or value == "":
        return None
    try:
        if isinstance(value, datetime):
            return ensure_utc(value)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        if isinstance(value, str):
            value = value.strip().replace("Z", "+00:00")
            return ensure_utc(datetime.fromisoformat(value))
    except ValueError:
        return None
    return None


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo) and convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
