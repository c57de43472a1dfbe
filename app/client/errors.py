"""Errors raised by the device-side subscription client.

Every error carries a message that can be shown to the user as-is.
"""
from __future__ import annotations


class NotificationClientError(Exception):
    """Base class for subscription client failures."""

    default_message = "Failed to subscribe to push notifications."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotificationsDisabledError(NotificationClientError):
    default_message = "Push notifications are disabled."


class PermissionDeniedError(NotificationClientError):
    default_message = (
        "Notification permission denied. Please allow notifications in your browser settings."
    )


class UnsupportedPlatformError(NotificationClientError):
    default_message = "Push notifications are not supported in this browser."


class InvalidStateError(NotificationClientError):
    default_message = "Service worker is not in a valid state. Please try again."


class SubscriptionAbortedError(NotificationClientError):
    default_message = "The push subscription request was aborted. Please try again."


class SubscriptionTimeoutError(NotificationClientError):
    default_message = "Timed out waiting for the push service. Please check your connection and try again."


class ServerRequestError(NotificationClientError):
    """The notification API answered with an unexpected status or body."""

    default_message = "The notification server rejected the request."

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
