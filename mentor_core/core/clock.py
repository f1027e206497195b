"""Time helpers. All persisted timestamps are naive UTC."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(UTC).replace(tzinfo=None)


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def next_day(moment: datetime) -> datetime:
    """Next day boundary after ``moment``."""
    return start_of_day(moment) + timedelta(days=1)


def days_between(later: datetime, earlier: datetime) -> int:
    """Whole days elapsed (truncated), like a calendar-agnostic day diff."""
    return int((later - earlier).total_seconds() // 86_400)
