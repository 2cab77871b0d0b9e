"""
Time helpers for ledger and queue timestamps.

Every timestamp the engine writes is timezone-aware UTC.
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(UTC)


def deadline_after(days: int | None) -> datetime | None:
    """
    Payment deadline ``days`` from now.

    Returns:
        Deadline, or None when ``days`` is None or 0
    """
    if not days:
        return None
    return utc_now() + timedelta(days=days)


def window_start(hours: int) -> datetime:
    """Start of the trailing window of ``hours`` ending now."""
    return utc_now() - timedelta(hours=hours)
