"""Calendar helpers.

Calendar days (``date``, ``rangeStart``, "today") are local days. Timestamps
(``dueAt``, ``completedAt``, ``createdAt``) are stored and compared as naive
UTC datetimes.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def today() -> date:
    return date.today()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def end_of_day_utc(day: date) -> datetime:
    """Last instant of a local calendar day, as naive UTC."""
    local_end = datetime.combine(day, time.max).astimezone()
    return to_naive_utc(local_end)


def local_day(value: datetime) -> date:
    """Local calendar day of a naive UTC timestamp."""
    return value.replace(tzinfo=timezone.utc).astimezone().date()


def days_back(end: date, count: int):
    """The ``count`` days ending with ``end``, oldest first."""
    return [end - timedelta(days=offset) for offset in range(count - 1, -1, -1)]
