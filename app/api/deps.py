"""Shared API dependencies."""
from __future__ import annotations

import secrets
import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.db.session import get_db
from app.services.delivery import DeliveryService, get_log_writer, get_push_client
from app.services.log_writer import NotificationLogWriter
from app.services.push import WebPushClient
from app.services.subscriptions import AuthContext

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings() -> Settings:
    return get_settings()


def get_auth_context(
    x_family_id: Optional[str] = Header(default=None),
    x_account_id: Optional[str] = Header(default=None),
    x_caretaker_id: Optional[str] = Header(default=None),
) -> AuthContext:
    """Resolve the tenant identity forwarded by the authentication layer."""

    if not x_family_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    try:
        return AuthContext(
            family_id=uuid.UUID(x_family_id),
            account_id=uuid.UUID(x_account_id) if x_account_id else None,
            caretaker_id=uuid.UUID(x_caretaker_id) if x_caretaker_id else None,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication context",
        ) from exc


def require_notifications_enabled(
    settings: Settings = Depends(get_app_settings),
) -> Settings:
    if not settings.ENABLE_NOTIFICATIONS:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notifications are disabled",
        )
    return settings


def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Require ``Authorization: Bearer <NOTIFICATION_CRON_SECRET>``."""

    expected = settings.NOTIFICATION_CRON_SECRET
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Cron secret not configured",
        )

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not secrets.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid secret",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_web_push_client() -> WebPushClient:
    return get_push_client()


def get_notification_log_writer() -> NotificationLogWriter:
    return get_log_writer()


def get_delivery_service(
    db: Session = Depends(get_db),
    push_client: WebPushClient = Depends(get_web_push_client),
    log_writer: NotificationLogWriter = Depends(get_notification_log_writer),
) -> DeliveryService:
    return DeliveryService(db, push_client, log_writer)
