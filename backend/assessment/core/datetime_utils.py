"""
Datetime helpers for timezone-aware comparisons.

SQLite returns naive datetimes even for ``DateTime(timezone=True)`` columns,
so anything compared against ``utc_now()`` goes through
``ensure_timezone_aware`` first.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Return the current datetime in UTC timezone.

    Patch this function (``assessment.core.datetime_utils.utc_now``) in tests
    that depend on the current time, such as passport staleness.
    """
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware, assuming UTC when naive.

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def age_in_days(since: datetime, now: Optional[datetime] = None) -> int:
    """
    Whole days elapsed between ``since`` and ``now`` (default: utc_now()).

    Partial days are truncated, so a timestamp 23 hours old is 0 days old.
    """
    reference = ensure_timezone_aware(now) if now is not None else utc_now()
    return (reference - ensure_timezone_aware(since)).days
