"""Service layer package."""

from app.services.cleanup import CleanupResult, CleanupService
from app.services.delivery import DeliveryService, get_log_writer, get_push_client
from app.services.status import NotificationStatusService
from app.services.subscriptions import AuthContext, SubscriptionService
from app.services.timer_check import TimerCheckService

__all__ = [
    "AuthContext",
    "CleanupResult",
    "CleanupService",
    "DeliveryService",
    "NotificationStatusService",
    "SubscriptionService",
    "TimerCheckService",
    "get_log_writer",
    "get_push_client",
]
