"""Pydantic schemas package."""

from app.schemas.notification import (
    ApiResponse,
    CronRunResult,
    NotificationStatus,
    PreferenceRead,
    PreferenceUpsert,
    SubscriptionCreate,
    SubscriptionCreated,
    SubscriptionKeys,
    SubscriptionRead,
    VapidKeyRead,
)

__all__ = [
    "ApiResponse",
    "CronRunResult",
    "NotificationStatus",
    "PreferenceRead",
    "PreferenceUpsert",
    "SubscriptionCreate",
    "SubscriptionCreated",
    "SubscriptionKeys",
    "SubscriptionRead",
    "VapidKeyRead",
]
