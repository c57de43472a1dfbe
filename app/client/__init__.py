"""Device-side client for registering push subscriptions."""

from app.client.api import NotificationApiClient
from app.client.errors import (
    InvalidStateError,
    NotificationClientError,
    NotificationsDisabledError,
    PermissionDeniedError,
    ServerRequestError,
    SubscriptionAbortedError,
    SubscriptionTimeoutError,
    UnsupportedPlatformError,
)
from app.client.lifecycle import PushSubscriptionManager, SubscriptionState, SubscriptionStatus
from app.client.platform import PlatformError, PlatformErrorKind

__all__ = [
    "InvalidStateError",
    "NotificationApiClient",
    "NotificationClientError",
    "NotificationsDisabledError",
    "PermissionDeniedError",
    "PlatformError",
    "PlatformErrorKind",
    "PushSubscriptionManager",
    "ServerRequestError",
    "SubscriptionAbortedError",
    "SubscriptionState",
    "SubscriptionStatus",
    "SubscriptionTimeoutError",
    "UnsupportedPlatformError",
]
