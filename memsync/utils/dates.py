"""
Datetime helpers for MemSync.

All instants are handled as timezone-aware UTC in Python. DuckDB stores them as
naive UTC ``TIMESTAMP`` values and the vector payload stores ISO-8601 strings.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_db(value: datetime) -> datetime:
    """Convert to the naive UTC form stored in DuckDB."""
    return ensure_utc(value).replace(tzinfo=None)


def from_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=UTC)


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix or date-only allowed) into aware UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))
