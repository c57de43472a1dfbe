"""Health summary of the notification system for operators."""
from __future__ import annotations

from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.config import Settings, settings as default_settings
from app.db.models.notification import NotificationLog
from app.db.models.push_subscription import PushSubscription
from app.schemas.notification import LastCronRun, NotificationStatus
from app.utils.time import as_utc


class NotificationStatusService:
    def __init__(self, db: Session, settings: Settings = default_settings) -> None:
        self.db = db
        self.settings = settings

    def last_cron_run(self) -> LastCronRun | None:
        """Summarize the most recent batch of deliveries.

        A batch is every log row written in the same wall-clock minute as the
        newest one.
        """

        latest = self.db.scalars(
            select(NotificationLog).order_by(NotificationLog.created_at.desc()).limit(1)
        ).first()
        if latest is None:
            return None

        created_at = as_utc(latest.created_at)
        batch_start = created_at.replace(second=0, microsecond=0)
        batch_end = batch_start + timedelta(minutes=1)
        sent = self.db.scalar(
            select(func.count(NotificationLog.id))
            .where(NotificationLog.created_at >= batch_start)
            .where(NotificationLog.created_at < batch_end)
            .where(NotificationLog.success.is_(True))
        )
        return LastCronRun(timestamp=created_at, notifications_sent=sent or 0, success=latest.success)

    def get_status(self) -> NotificationStatus:
        subscription_count = self.db.scalar(select(func.count(PushSubscription.id))) or 0
        failed_count = self.db.scalar(
            select(func.count(PushSubscription.id)).where(PushSubscription.failure_count >= 1)
        ) or 0

        return NotificationStatus(
            enabled=self.settings.ENABLE_NOTIFICATIONS,
            vapid_configured=self.settings.vapid_configured,
            cron_secret_configured=bool(self.settings.NOTIFICATION_CRON_SECRET),
            last_cron_run=self.last_cron_run() if self.settings.ENABLE_NOTIFICATIONS else None,
            subscription_count=subscription_count,
            failed_subscription_count=failed_count,
        )


__all__ = ["NotificationStatusService"]
