"""Custom exception classes and their HTTP translations."""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from loguru import logger


class NotificationEngineError(Exception):
    """Base exception for the notification engine."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotificationConfigError(NotificationEngineError):
    """Push delivery cannot work with the current configuration."""
    pass


class SubscriptionNotFoundError(NotificationEngineError):
    """A push subscription, baby or preference does not exist."""
    pass


class AccessDeniedError(NotificationEngineError):
    """The record belongs to another family."""
    pass


class ValidationError(NotificationEngineError):
    """Request data that passes schema checks but makes no sense together."""
    pass


def handle_config_error(error: NotificationConfigError) -> HTTPException:
    """The feature stays unusable until the server keys are fixed."""
    logger.error(f"Notification configuration error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=error.message,
    )


def handle_not_found_error(error: SubscriptionNotFoundError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=error.message,
    )


def handle_access_denied_error(error: AccessDeniedError) -> HTTPException:
    logger.warning(f"Access denied: {error.message}")
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=error.message,
    )


def handle_validation_error(error: ValidationError) -> HTTPException:
    logger.warning(f"Validation error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=error.message,
    )
