"""UTC-everywhere time handling and the injectable clock."""

from datetime import datetime, timezone
from typing import Callable

# Anything that returns the current aware datetime. Services take one of these
# so tests can pin "now" without patching.
Clock = Callable[[], datetime]


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def assume_utc(dt: datetime) -> datetime:
    """
    Treat a naive datetime as UTC, convert an aware one to UTC.

    Request payloads frequently carry bare dates ("2025-09-30"); those are
    read as midnight UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Raises ValueError if string has no timezone info.
    """
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)


def fixed_clock(moment: datetime) -> Clock:
    """Clock that always returns `moment` (converted to UTC)."""
    pinned = to_utc(moment)
    return lambda: pinned
