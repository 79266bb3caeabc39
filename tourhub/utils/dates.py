"""Datetime helpers. Everything is stored as naive UTC."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def hours_until(moment: datetime, now: Optional[datetime] = None) -> float:
    now = now or utcnow()
    return (to_naive_utc(moment) - now) / timedelta(hours=1)
