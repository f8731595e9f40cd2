"""Tolerant timestamp helpers.

Upstream timestamps are ISO-8601 strings in practice, but nothing guarantees
it. Every helper here degrades to a sentinel instead of raising.
"""
from datetime import datetime, timezone

# Sort key for missing or unparseable timestamps
EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 string into an aware datetime, or return None.

    Naive values are assumed to be UTC. A trailing ``Z`` is accepted.
    """
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_key(value) -> datetime:
    """Sort key that places missing/unparseable timestamps first (earliest)."""
    return parse_timestamp(value) or EARLIEST


def format_local(dt: datetime) -> str:
    """Format an aware datetime in the local timezone for display."""
    return dt.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def format_timestamp(value, unknown: str = "Unknown") -> str:
    """Display form of an article timestamp, ``unknown`` when unusable."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return unknown
    try:
        return format_local(parsed)
    except (OverflowError, OSError, ValueError):
        # Dates outside the platform's local-time range
        return parsed.strftime("%Y-%m-%d %H:%M:%S")


def isoformat_utc(dt: datetime) -> str:
    """ISO string with millisecond precision and a ``Z`` suffix."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
