"""
Common utility functions.
"""

import math
import time
import uuid
from datetime import datetime, timezone
from typing import Optional


def now_millis() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    SQLite hands back naive values even for timezone-aware columns.

    Args:
        value: Datetime read from the database (or None)

    Returns:
        Aware datetime in UTC, or None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id() -> str:
    """Generate an opaque identifier."""
    return uuid.uuid4().hex


def seconds_until(end_time_ms: int, now_ms: int) -> int:
    """
    Whole seconds left until a deadline, rounded up and never negative.

    Args:
        end_time_ms: Deadline in epoch milliseconds
        now_ms: Current time in epoch milliseconds

    Returns:
        Remaining seconds
    """
    return max(0, math.ceil((end_time_ms - now_ms) / 1000))


def from_millis(ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
