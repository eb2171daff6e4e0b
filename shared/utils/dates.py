"""Date helpers. Stored timestamps are naive UTC."""

from datetime import date, datetime, timezone
from typing import Optional

YMD_FORMAT = "%Y-%m-%d"


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, matching what the database returns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today_ymd(now: Optional[datetime] = None) -> str:
    return (now or utcnow()).strftime(YMD_FORMAT)


def is_valid_ymd(value: str) -> bool:
    """True for a real calendar date written as YYYY-MM-DD."""
    if not isinstance(value, str) or len(value) != 10:
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def hours_between(earlier: Optional[datetime], later: datetime) -> float:
    """Hours from ``earlier`` to ``later``; a missing timestamp counts as ``later``."""
    if earlier is None:
        return 0.0
    return (later - earlier).total_seconds() / 3600
