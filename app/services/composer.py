"""Build the user-facing push payloads."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from app.db.models.notification import NotificationEventType
from app.utils.time import utcnow

DEFAULT_ICON = "/icon-128.png"

TIMER_TITLES: Dict[NotificationEventType, str] = {
    NotificationEventType.FEED_TIMER_EXPIRED: "Feed Timer Expired",
    NotificationEventType.DIAPER_TIMER_EXPIRED: "Diaper Timer Expired",
}

TIMER_ACTIVITY_NAMES: Dict[NotificationEventType, str] = {
    NotificationEventType.FEED_TIMER_EXPIRED: "feed",
    NotificationEventType.DIAPER_TIMER_EXPIRED: "diaper",
}

ACTIVITY_DISPLAY_NAMES: Dict[str, str] = {
    "feed": "Feed",
    "diaper": "Diaper",
    "sleep": "Sleep",
    "bath": "Bath",
    "medicine": "Medicine",
    "pump": "Pump",
}


@dataclass
class NotificationPayload:
    """Message rendered by the service worker."""

    title: str
    body: str
    tag: str
    data: Dict[str, Any] = field(default_factory=dict)
    icon: Optional[str] = DEFAULT_ICON
    badge: Optional[str] = DEFAULT_ICON

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


def format_time_elapsed(minutes: float) -> str:
    """Render elapsed minutes as ``"3h 5m"``, ``"45m"`` or ``"2h"``."""

    total = max(int(minutes), 0)
    hours, remainder = divmod(total, 60)
    if hours == 0:
        return f"{remainder}m"
    if remainder == 0:
        return f"{hours}h"
    return f"{hours}h {remainder}m"


def timer_tag(baby_id: Any, event_type: NotificationEventType) -> str:
    """Stable tag so repeated reminders for one timer replace each other."""

    return f"timer-{baby_id}-{event_type.value}"


def compose_timer_notification(
    baby_id: Any,
    baby_name: str,
    event_type: NotificationEventType,
    elapsed_minutes: float,
) -> NotificationPayload:
    """Payload for an expired feed or diaper timer."""

    if event_type not in TIMER_TITLES:
        raise ValueError(f"{event_type} is not a timer event")

    elapsed = format_time_elapsed(elapsed_minutes)
    activity = TIMER_ACTIVITY_NAMES[event_type]
    return NotificationPayload(
        title=TIMER_TITLES[event_type],
        body=f"{baby_name} hasn't had a {activity} in {elapsed}",
        tag=timer_tag(baby_id, event_type),
        data={"eventType": event_type.value, "babyId": str(baby_id)},
    )


def normalize_activity_type(activity_type: str) -> str:
    return activity_type.strip().lower()


def compose_activity_notification(
    baby_id: Any,
    baby_name: str,
    activity_type: str,
    created_at: Optional[datetime] = None,
) -> NotificationPayload:
    """Payload announcing a newly logged activity.

    Each activity gets its own tag so consecutive activities stack instead of
    replacing one another.
    """

    normalized = normalize_activity_type(activity_type)
    display = ACTIVITY_DISPLAY_NAMES.get(normalized, normalized.capitalize())
    stamp = int((created_at or utcnow()).timestamp() * 1000)
    return NotificationPayload(
        title=f"{display} logged for {baby_name}",
        body=f"A new {display.lower()} entry was recorded",
        tag=f"activity-{baby_id}-{normalized}-{stamp}",
        data={
            "eventType": NotificationEventType.ACTIVITY_CREATED.value,
            "babyId": str(baby_id),
            "activityType": normalized,
        },
    )


__all__ = [
    "NotificationPayload",
    "compose_activity_notification",
    "compose_timer_notification",
    "format_time_elapsed",
    "normalize_activity_type",
    "timer_tag",
]
