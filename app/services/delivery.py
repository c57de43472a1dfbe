"""Send a push message and fold the outcome back into subscription health."""
from __future__ import annotations

import uuid
from functools import lru_cache
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from app.config import settings
from app.db.models.notification import NotificationEventType
from app.db.models.push_subscription import PushSubscription
from app.db.session import SessionLocal
from app.services.composer import NotificationPayload
from app.services.log_writer import NotificationLogEntry, NotificationLogWriter
from app.services.push import SendResult, WebPushClient
from app.utils.time import utcnow


class DeliveryService:
    """Deliver one payload to one subscription, then log and update health.

    Neither the audit log nor the health update may change the reported
    outcome: their failures are logged and swallowed.
    """

    def __init__(
        self,
        db: Session,
        push_client: WebPushClient,
        log_writer: NotificationLogWriter,
    ) -> None:
        self.db = db
        self.push_client = push_client
        self.log_writer = log_writer

    def send_with_logging(
        self,
        subscription_id: uuid.UUID,
        subscription_info: Dict[str, Any],
        payload: NotificationPayload,
        event_type: NotificationEventType,
        baby_id: uuid.UUID,
        activity_type: Optional[str] = None,
    ) -> SendResult:
        result = self.push_client.send(subscription_info, payload.to_dict())

        self._record_attempt(subscription_id, payload, event_type, baby_id, activity_type, result)
        self._apply_outcome(subscription_id, result)
        return result

    def _record_attempt(
        self,
        subscription_id: uuid.UUID,
        payload: NotificationPayload,
        event_type: NotificationEventType,
        baby_id: uuid.UUID,
        activity_type: Optional[str],
        result: SendResult,
    ) -> None:
        try:
            self.log_writer.submit(
                NotificationLogEntry(
                    subscription_id=subscription_id,
                    event_type=event_type,
                    baby_id=baby_id,
                    activity_type=activity_type,
                    success=result.success,
                    error_message=result.error,
                    http_status=result.http_status,
                    payload=payload.to_json(),
                )
            )
        except Exception as exc:
            logger.error("Error logging notification attempt", subscription_id=str(subscription_id), error=str(exc))

    def _apply_outcome(self, subscription_id: uuid.UUID, result: SendResult) -> None:
        now = utcnow()
        try:
            if result.success:
                self.db.execute(
                    update(PushSubscription)
                    .where(PushSubscription.id == subscription_id)
                    .values(failure_count=0, last_success_at=now)
                )
            elif result.is_gone:
                self.db.execute(delete(PushSubscription).where(PushSubscription.id == subscription_id))
                logger.info("Deleted expired subscription", subscription_id=str(subscription_id))
            else:
                self.db.execute(
                    update(PushSubscription)
                    .where(PushSubscription.id == subscription_id)
                    .values(
                        failure_count=PushSubscription.failure_count + 1,
                        last_failure_at=now,
                    )
                )
                logger.warning(
                    "Push delivery failed",
                    subscription_id=str(subscription_id),
                    status=result.http_status,
                    error=result.error,
                )
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.error("Error updating subscription", subscription_id=str(subscription_id), error=str(exc))


@lru_cache()
def get_push_client() -> WebPushClient:
    """Process-wide transport client built from settings."""

    return WebPushClient.from_settings(settings)


@lru_cache()
def get_log_writer() -> NotificationLogWriter:
    """Process-wide audit log writer bound to the application database."""

    return NotificationLogWriter(SessionLocal, maxsize=settings.NOTIFICATION_LOG_QUEUE_SIZE)


__all__ = ["DeliveryService", "get_log_writer", "get_push_client"]
