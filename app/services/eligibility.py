"""Decide whether an expired inactivity timer should notify a device right now."""
from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from loguru import logger

from app.utils.time import as_utc, minutes_between, utcnow

_WARNING_TIME_PATTERN = re.compile(r"(\d{1,3}):(\d{1,2})")


def parse_warning_time(warning_time: Optional[str]) -> int:
    """Convert an ``HH:MM`` threshold into total minutes.

    A malformed value is treated as a zero-minute threshold, meaning the timer
    is always expired. It is logged as a data problem rather than raised so one
    misconfigured baby cannot stop the whole timer check.
    """

    match = _WARNING_TIME_PATTERN.fullmatch((warning_time or "").strip())
    if match is None:
        logger.warning("Malformed warning time, treating threshold as 0", warning_time=warning_time)
        return 0

    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59:
        logger.warning("Warning time minutes out of range, treating threshold as 0", warning_time=warning_time)
        return 0
    return hours * 60 + minutes


def is_notification_eligible(
    last_activity_time: Optional[datetime],
    threshold_minutes: int,
    last_notified_at: Optional[datetime],
    repeat_interval_minutes: Optional[int],
    now: Optional[datetime] = None,
) -> bool:
    """Return ``True`` when a timer notification is due.

    A notification sent before the latest activity belongs to an earlier
    expiration episode and does not count against the current one.
    """

    if last_activity_time is None:
        return False

    now = as_utc(now) if now is not None else utcnow()
    last_activity_time = as_utc(last_activity_time)

    if minutes_between(last_activity_time, now) < threshold_minutes:
        return False

    last_notified_at = as_utc(last_notified_at)
    if last_notified_at is None or last_notified_at < last_activity_time:
        return True

    if repeat_interval_minutes is None:
        return False

    return minutes_between(last_notified_at, now) >= repeat_interval_minutes


__all__ = ["is_notification_eligible", "parse_warning_time"]
