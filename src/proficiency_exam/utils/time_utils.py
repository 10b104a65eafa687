"""Time utility functions"""

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-aware UTC.

    Some backends (SQLite) hand back naive datetimes for timezone-aware
    columns. Those values were written as UTC, so they are tagged as UTC
    rather than converted.

    Args:
        value: Datetime to normalize, may be None

    Returns:
        Timezone-aware UTC datetime, or None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    """True when ``expires_at`` is missing or not strictly in the future"""
    expires_at = ensure_utc(expires_at)
    return expires_at is None or expires_at <= ensure_utc(now)
