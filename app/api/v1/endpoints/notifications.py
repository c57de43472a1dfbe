"""Operator endpoints: the cron trigger, public key and system status."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from sqlalchemy.orm import Session

from app.api import deps
from app.config import Settings
from app.schemas.notification import (
    ApiResponse,
    CronRunResult,
    NotificationStatus,
    VapidKeyRead,
)
from app.services.cleanup import CleanupService
from app.services.delivery import DeliveryService
from app.services.status import NotificationStatusService
from app.services.timer_check import TimerCheckService
from app.utils.exceptions import NotificationConfigError, handle_config_error

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post(
    "/cron",
    response_model=ApiResponse[CronRunResult],
    dependencies=[Depends(deps.require_notifications_enabled), Depends(deps.verify_cron_secret)],
)
def run_notification_cycle(
    db: Session = Depends(deps.get_db),
    delivery: DeliveryService = Depends(deps.get_delivery_service),
    settings: Settings = Depends(deps.get_app_settings),
) -> ApiResponse[CronRunResult]:
    """Check timers, then prune failed subscriptions and expired logs."""

    try:
        delivery.push_client.initialize()
    except NotificationConfigError as exc:
        raise handle_config_error(exc) from exc

    notifications_sent = TimerCheckService(db, delivery, settings).check_timer_expirations()
    cleanup = CleanupService(db, settings).run_cleanup()

    logger.info(
        "Notification cron run finished",
        notifications_sent=notifications_sent,
        subscriptions_cleaned=cleanup.subscriptions_cleaned,
        logs_cleaned=cleanup.logs_cleaned,
    )
    return ApiResponse(
        data=CronRunResult(
            notifications_sent=notifications_sent,
            subscriptions_cleaned=cleanup.subscriptions_cleaned,
            logs_cleaned=cleanup.logs_cleaned,
        )
    )


@router.get("/vapid-key", response_model=ApiResponse[VapidKeyRead])
def get_vapid_public_key(
    settings: Settings = Depends(deps.require_notifications_enabled),
) -> ApiResponse[VapidKeyRead]:
    if not settings.VAPID_PUBLIC_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="VAPID keys are not configured. Please run setup to generate keys.",
        )
    return ApiResponse(data=VapidKeyRead(public_key=settings.VAPID_PUBLIC_KEY))


@router.get(
    "/status",
    response_model=ApiResponse[NotificationStatus],
    dependencies=[Depends(deps.verify_cron_secret)],
)
def get_notification_status(
    db: Session = Depends(deps.get_db),
    settings: Settings = Depends(deps.get_app_settings),
) -> ApiResponse[NotificationStatus]:
    return ApiResponse(data=NotificationStatusService(db, settings).get_status())
