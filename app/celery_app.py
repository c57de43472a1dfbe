"""Celery worker and beat schedule for the periodic notification jobs."""
from __future__ import annotations

from typing import Optional

from celery import Celery
from celery.schedules import crontab
from pydantic import AnyUrl

from app.config import settings


def _redis_fallback(url: Optional[AnyUrl]) -> str:
    return str(url if url is not None else settings.REDIS_URL)


celery_app = Celery(
    "timer_notifications",
    broker=_redis_fallback(settings.CELERY_BROKER_URL),
    backend=_redis_fallback(settings.CELERY_RESULT_BACKEND),
    include=["app.tasks.notifications"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # One cycle must finish well inside a few beat intervals
    task_time_limit=2 * 60,
    task_soft_time_limit=90,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    "check-timer-expirations": {
        "task": "app.tasks.notifications.check_timer_expirations",
        "schedule": float(settings.NOTIFICATION_TIMER_CHECK_SECONDS),
        # A late tick is superseded by the next one
        "options": {"expires": settings.NOTIFICATION_TIMER_CHECK_SECONDS},
    },
    "cleanup-notifications": {
        "task": "app.tasks.notifications.cleanup_notifications",
        "schedule": crontab(hour=3, minute=30),
    },
}

__all__ = ["celery_app"]
