"""Retention sweeps for dead subscriptions and old audit rows."""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger
from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.config import Settings, settings as default_settings
from app.db.models.notification import NotificationLog
from app.db.models.push_subscription import PushSubscription
from app.utils.time import utcnow


@dataclass
class CleanupResult:
    subscriptions_cleaned: int = 0
    logs_cleaned: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class CleanupService:
    """Delete unhealthy subscriptions and expired notification logs.

    Both sweeps are single bulk deletes that never raise: a failure is logged
    and reported as zero rows removed.
    """

    def __init__(self, db: Session, settings: Settings = default_settings) -> None:
        self.db = db
        self.settings = settings

    def cleanup_failed_subscriptions(self) -> int:
        if not self.settings.ENABLE_NOTIFICATIONS:
            logger.info("Notifications disabled, skipping subscription cleanup")
            return 0

        threshold = self.settings.NOTIFICATION_FAILURE_THRESHOLD
        try:
            result = self.db.execute(
                delete(PushSubscription)
                .where(PushSubscription.failure_count >= threshold)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.error("Error cleaning up failed subscriptions", error=str(exc))
            return 0

        deleted = result.rowcount or 0
        if deleted:
            logger.info("Cleaned up failed push subscriptions", deleted=deleted, threshold=threshold)
        return deleted

    def cleanup_old_notification_logs(
        self,
        retention_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        if not self.settings.ENABLE_NOTIFICATIONS:
            logger.info("Notifications disabled, skipping log cleanup")
            return 0

        retention_days = retention_days or self.settings.NOTIFICATION_LOG_RETENTION_DAYS
        cutoff = (now or utcnow()) - timedelta(days=retention_days)
        try:
            result = self.db.execute(
                delete(NotificationLog)
                .where(NotificationLog.created_at < cutoff)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.error("Error cleaning up old notification logs", error=str(exc))
            return 0

        deleted = result.rowcount or 0
        if deleted:
            logger.info(
                "Cleaned up old notification logs",
                deleted=deleted,
                retention_days=retention_days,
                cutoff=cutoff.isoformat(),
            )
        return deleted

    def run_cleanup(self, retention_days: Optional[int] = None) -> CleanupResult:
        """Run both sweeps and report what each removed."""

        if not self.settings.ENABLE_NOTIFICATIONS:
            logger.info("Notifications disabled, skipping cleanup")
            return CleanupResult()

        started = time.monotonic()
        result = CleanupResult(
            subscriptions_cleaned=self.cleanup_failed_subscriptions(),
            logs_cleaned=self.cleanup_old_notification_logs(retention_days),
        )
        logger.info(
            "Cleanup completed",
            duration_ms=int((time.monotonic() - started) * 1000),
            **result.as_dict(),
        )
        return result


__all__ = ["CleanupResult", "CleanupService"]
