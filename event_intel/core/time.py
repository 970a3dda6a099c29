"""UTC time helpers."""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips drop tzinfo) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def isoformat_ms(value: datetime) -> str:
    """ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")
