"""Pydantic models for the notification API."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.db.models.notification import NotificationEventType

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    """Accept and emit camelCase field names like the browser client does."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ApiResponse(BaseModel, Generic[DataT]):
    """Envelope shared by every notification endpoint."""

    success: bool = True
    data: Optional[DataT] = None
    error: Optional[str] = None


class SubscriptionKeys(CamelModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class SubscriptionCreate(CamelModel):
    """Registration handshake sent by a browser after subscribing."""

    endpoint: str = Field(min_length=1)
    keys: SubscriptionKeys
    device_label: Optional[str] = Field(default=None, max_length=255)
    user_agent: Optional[str] = Field(default=None, max_length=512)


class SubscriptionCreated(CamelModel):
    id: uuid.UUID


class SubscriptionRead(CamelModel):
    id: uuid.UUID
    endpoint: str
    device_label: Optional[str] = None
    user_agent: Optional[str] = None
    failure_count: int
    last_failure_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PreferenceUpsert(CamelModel):
    """Create or update one device's opt-in for one baby and event type."""

    subscription_id: uuid.UUID
    baby_id: uuid.UUID
    event_type: NotificationEventType
    activity_types: Optional[List[str]] = None
    timer_interval_minutes: Optional[int] = Field(default=None, ge=1)
    enabled: Optional[bool] = None


class PreferenceRead(CamelModel):
    id: uuid.UUID
    subscription_id: uuid.UUID
    baby_id: uuid.UUID
    event_type: NotificationEventType
    activity_types: Optional[List[str]] = None
    timer_interval_minutes: Optional[int] = None
    last_timer_notified_at: Optional[datetime] = None
    enabled: bool


class VapidKeyRead(CamelModel):
    public_key: str


class CronRunResult(CamelModel):
    notifications_sent: int = 0
    subscriptions_cleaned: int = 0
    logs_cleaned: int = 0


class LastCronRun(CamelModel):
    timestamp: Optional[datetime] = None
    notifications_sent: int = 0
    success: bool = False


class NotificationStatus(CamelModel):
    enabled: bool
    vapid_configured: bool
    cron_secret_configured: bool
    last_cron_run: Optional[LastCronRun] = None
    subscription_count: int
    failed_subscription_count: int
