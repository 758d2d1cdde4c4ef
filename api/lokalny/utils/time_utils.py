"""
Time utility functions.

All persisted timestamps are naive UTC datetimes. Table models declare their
timestamp columns with an explicit naive ``DateTime`` type so the stored
values never need an offset.
"""
from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utctoday() -> date:
    """Current UTC calendar date."""
    return utcnow().date()


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
