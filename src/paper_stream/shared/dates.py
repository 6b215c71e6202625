"""Date parsing shared by ordering, diff filtering, and response timestamps."""

from __future__ import annotations

from datetime import UTC, datetime

# Unknown or unparsable publication dates sort as the oldest possible value.
OLDEST = datetime.min.replace(tzinfo=UTC)


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse an ISO-8601 date or timestamp into an aware UTC datetime.

    ``YYYY-MM-DD`` is UTC midnight, naive timestamps are taken as UTC and a
    trailing ``Z`` is accepted. Returns None for empty or unparsable input.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=UTC)
        return parsed.astimezone(UTC)
    except (ValueError, OverflowError):
        # Out-of-range after UTC conversion counts as unparsable
        return None


def sort_key(published_date: str) -> datetime:
    """Key for newest-first ordering; unknown dates become OLDEST."""
    return parse_timestamp(published_date) or OLDEST


def iso_now(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    moment = (now or datetime.now(UTC)).astimezone(UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def iso_from_epoch(seconds: float) -> str:
    return iso_now(datetime.fromtimestamp(seconds, UTC))
