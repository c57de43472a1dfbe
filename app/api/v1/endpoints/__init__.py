"""API endpoint modules for v1."""

from app.api.v1.endpoints import notifications, subscriptions

__all__ = ["notifications", "subscriptions"]
