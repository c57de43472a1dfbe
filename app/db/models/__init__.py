"""Database models package."""
from app.db.models.baby import Baby, DiaperLog, FeedLog
from app.db.models.push_subscription import PushSubscription
from app.db.models.notification import (
    TIMER_EVENT_TYPES,
    NotificationEventType,
    NotificationLog,
    NotificationPreference,
)

__all__ = [
    "Baby",
    "FeedLog",
    "DiaperLog",
    "PushSubscription",
    "NotificationEventType",
    "NotificationPreference",
    "NotificationLog",
    "TIMER_EVENT_TYPES",
]
