"""
Core Utilities

Shared helpers used across the application.
"""
import math
from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    Return timezone-aware UTC datetime.

    Use this instead of datetime.utcnow() which returns naive datetime.
    """
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes read back from the store as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def minutes_until(moment: datetime, now: datetime) -> int:
    """Whole minutes from now until moment, rounded up, never negative."""
    seconds = (as_utc(moment) - now).total_seconds()
    return max(0, math.ceil(seconds / 60))
