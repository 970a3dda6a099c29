"""Small text and date parsing helpers shared by the tool layer."""

from __future__ import annotations

from datetime import datetime

from event_intel.core.exceptions import InvalidInputError
from event_intel.core.time import ensure_utc


def truncate(text: str | None, max_length: int) -> str:
    """Truncate ``text`` to ``max_length`` characters, ending with an ellipsis."""
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def parse_date(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Raises:
        InvalidInputError: if the string is not a valid ISO date.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        raise InvalidInputError(f"Invalid date string: {value}") from None
    return ensure_utc(parsed)
