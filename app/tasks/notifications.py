"""Celery tasks for the timer notification cycle and retention cleanup."""
from __future__ import annotations

from typing import Optional

from loguru import logger

from app.celery_app import celery_app
from app.config import settings
from app.db.session import SessionLocal
from app.services.cleanup import CleanupService
from app.services.delivery import DeliveryService, get_log_writer, get_push_client
from app.services.timer_check import TimerCheckService
from app.utils.exceptions import NotificationConfigError


@celery_app.task(name="app.tasks.notifications.check_timer_expirations")
def check_timer_expirations() -> dict[str, int]:
    """Notify devices whose feed or diaper timers have expired."""

    if not settings.ENABLE_NOTIFICATIONS:
        logger.info("Notifications disabled, timer check task skipped")
        return {"notifications_sent": 0}

    push_client = get_push_client()
    try:
        push_client.initialize()
    except NotificationConfigError as exc:
        logger.error("Timer check task skipped", error=exc.message)
        return {"notifications_sent": 0}

    log_writer = get_log_writer()
    db = SessionLocal()
    try:
        delivery = DeliveryService(db, push_client, log_writer)
        sent = TimerCheckService(db, delivery, settings).check_timer_expirations()
    finally:
        db.close()
    log_writer.flush()
    return {"notifications_sent": sent}


@celery_app.task(name="app.tasks.notifications.cleanup_notifications")
def cleanup_notifications(retention_days: Optional[int] = None) -> dict[str, int]:
    """Prune failing subscriptions and notification logs past retention."""

    db = SessionLocal()
    try:
        result = CleanupService(db, settings).run_cleanup(retention_days)
        return result.as_dict()
    finally:
        db.close()
