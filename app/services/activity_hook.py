"""Hooks called by the activity logging endpoints after a write.

Neither hook may block or fail the activity write: every error is logged and
swallowed.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload

from app.config import Settings, settings as default_settings
from app.db.models.baby import Baby
from app.db.models.notification import NotificationEventType, NotificationPreference
from app.services.composer import compose_activity_notification, normalize_activity_type
from app.services.delivery import DeliveryService

_TIMER_RESETS = {
    "feed": NotificationEventType.FEED_TIMER_EXPIRED,
    "diaper": NotificationEventType.DIAPER_TIMER_EXPIRED,
}


def reset_timer_notification_state(
    db: Session,
    baby_id: uuid.UUID,
    activity_type: str,
    settings: Settings = default_settings,
) -> int:
    """Clear ``last_timer_notified_at`` for the timer ``activity_type`` resets.

    Returns the number of preferences reset.
    """

    if not settings.ENABLE_NOTIFICATIONS:
        return 0

    event_type = _TIMER_RESETS.get(normalize_activity_type(activity_type))
    if event_type is None:
        return 0

    try:
        result = db.execute(
            update(NotificationPreference)
            .where(NotificationPreference.baby_id == baby_id)
            .where(NotificationPreference.event_type == event_type)
            .values(last_timer_notified_at=None)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.error(
            "Error resetting timer notification state",
            baby_id=str(baby_id),
            activity_type=activity_type,
            error=str(exc),
        )
        return 0
    return result.rowcount or 0


def notify_activity_created(
    db: Session,
    baby_id: uuid.UUID,
    activity_type: str,
    delivery: DeliveryService,
    created_at: Optional[datetime] = None,
    settings: Settings = default_settings,
) -> int:
    """Notify every device subscribed to ``activity_type`` for this baby.

    A preference with no activity type list matches every activity. Returns
    the number of successful deliveries.
    """

    if not settings.ENABLE_NOTIFICATIONS:
        return 0

    normalized = normalize_activity_type(activity_type)
    try:
        baby = db.get(Baby, baby_id)
        if baby is None:
            logger.error("Baby not found for activity notification", baby_id=str(baby_id))
            return 0
        baby_name = baby.display_name

        preferences = db.scalars(
            select(NotificationPreference)
            .options(joinedload(NotificationPreference.subscription))
            .where(NotificationPreference.baby_id == baby_id)
            .where(NotificationPreference.event_type == NotificationEventType.ACTIVITY_CREATED)
            .where(NotificationPreference.enabled.is_(True))
        ).unique().all()

        targets = []
        for preference in preferences:
            subscription = preference.subscription
            if subscription is None:
                continue
            if preference.activity_types is not None and normalized not in {
                normalize_activity_type(value) for value in preference.activity_types
            }:
                continue
            targets.append((subscription.id, subscription.subscription_info()))
    except Exception as exc:
        db.rollback()
        logger.error("Error loading activity notification targets", baby_id=str(baby_id), error=str(exc))
        return 0

    payload = compose_activity_notification(baby_id, baby_name, normalized, created_at)
    sent = 0
    for subscription_id, subscription_info in targets:
        try:
            result = delivery.send_with_logging(
                subscription_id,
                subscription_info,
                payload,
                NotificationEventType.ACTIVITY_CREATED,
                baby_id,
                activity_type=normalized,
            )
        except Exception as exc:
            logger.error(
                "Error sending activity notification",
                subscription_id=str(subscription_id),
                error=str(exc),
            )
            continue
        if result.success:
            sent += 1
    return sent


__all__ = ["notify_activity_created", "reset_timer_notification_state"]
