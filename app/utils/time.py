"""UTC helpers shared by the notification services."""
from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive values read back from SQLite; convert aware ones."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> float:
    """Return the (possibly fractional) minutes elapsed from ``start`` to ``end``."""

    return (as_utc(end) - as_utc(start)).total_seconds() / 60
