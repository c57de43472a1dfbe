"""Device-side push subscription lifecycle.

``PushSubscriptionManager`` walks an explicit state machine::

    UNREGISTERED -> WORKER_INSTALLING -> WORKER_ACTIVE -> SUBSCRIBED -> REGISTERED

Each platform wait (worker activation, platform subscribe) is bounded by
``asyncio.wait_for``; a stuck step surfaces as ``SubscriptionTimeoutError``.
Any failure drops the machine back to ``UNREGISTERED``.
"""
from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import Awaitable, Dict, FrozenSet, Optional, TypeVar

from loguru import logger

from app.client.api import NotificationApiClient
from app.client.errors import (
    InvalidStateError,
    NotificationClientError,
    PermissionDeniedError,
    SubscriptionAbortedError,
    SubscriptionTimeoutError,
    UnsupportedPlatformError,
)
from app.client.keys import bytes_to_base64, url_base64_to_bytes
from app.client.platform import (
    PlatformError,
    PlatformErrorKind,
    PlatformSubscription,
    PushPlatform,
    WorkerRegistration,
)

T = TypeVar("T")

DEFAULT_STEP_TIMEOUT_SECONDS = 30.0


class SubscriptionState(str, enum.Enum):
    UNREGISTERED = "unregistered"
    WORKER_INSTALLING = "worker_installing"
    WORKER_ACTIVE = "worker_active"
    SUBSCRIBED = "subscribed"
    REGISTERED = "registered"


_TRANSITIONS: Dict[SubscriptionState, FrozenSet[SubscriptionState]] = {
    SubscriptionState.UNREGISTERED: frozenset({SubscriptionState.WORKER_INSTALLING}),
    SubscriptionState.WORKER_INSTALLING: frozenset({SubscriptionState.WORKER_ACTIVE}),
    SubscriptionState.WORKER_ACTIVE: frozenset({SubscriptionState.SUBSCRIBED}),
    SubscriptionState.SUBSCRIBED: frozenset({SubscriptionState.REGISTERED}),
    SubscriptionState.REGISTERED: frozenset({SubscriptionState.WORKER_INSTALLING}),
}

_ERRORS_BY_KIND = {
    PlatformErrorKind.NOT_ALLOWED: PermissionDeniedError,
    PlatformErrorKind.NOT_SUPPORTED: UnsupportedPlatformError,
    PlatformErrorKind.INVALID_STATE: InvalidStateError,
    PlatformErrorKind.ABORTED: SubscriptionAbortedError,
    PlatformErrorKind.TIMEOUT: SubscriptionTimeoutError,
}


def classify_platform_error(exc: PlatformError) -> NotificationClientError:
    """Map a platform failure to the client error shown to the user."""

    error_cls = _ERRORS_BY_KIND.get(exc.kind)
    if error_cls is not None:
        return error_cls()
    return NotificationClientError(f"Failed to subscribe to push notifications: {exc.message}")


def device_label_from_user_agent(user_agent: str) -> str:
    if "Mobile" in user_agent:
        if "Android" in user_agent:
            return "Android Device"
        if "iPhone" in user_agent or "iPad" in user_agent:
            return "iOS Device"
        return "Mobile Device"
    for marker, label in (("Mac", "Mac"), ("Windows", "Windows"), ("Linux", "Linux")):
        if marker in user_agent:
            return label
    return "Device"


@dataclass
class SubscriptionStatus:
    is_subscribed: bool
    is_registered_on_server: bool
    subscription_id: Optional[str] = None


class PushSubscriptionManager:
    """Obtain, register and tear down this device's push subscription."""

    def __init__(
        self,
        platform: PushPlatform,
        api: NotificationApiClient,
        *,
        worker_url: str = "/sw.js",
        scope: str = "/",
        step_timeout: float = DEFAULT_STEP_TIMEOUT_SECONDS,
    ) -> None:
        self.platform = platform
        self.api = api
        self.worker_url = worker_url
        self.scope = scope
        self.step_timeout = step_timeout
        self._state = SubscriptionState.UNREGISTERED
        self.subscription_id: Optional[str] = None
        self.endpoint: Optional[str] = None

    @property
    def state(self) -> SubscriptionState:
        return self._state

    def _transition(self, target: SubscriptionState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise InvalidStateError(
                f"Cannot move from {self._state.value} to {target.value}."
            )
        logger.debug("Push subscription state change", previous=self._state.value, state=target.value)
        self._state = target

    def _reset(self) -> None:
        self._state = SubscriptionState.UNREGISTERED
        self.subscription_id = None
        self.endpoint = None

    async def _bounded(self, awaitable: Awaitable[T], step: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.step_timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("Push subscription step timed out", step=step, timeout=self.step_timeout)
            raise SubscriptionTimeoutError() from exc
        except PlatformError as exc:
            logger.warning("Push platform error", step=step, kind=exc.kind.value, error=exc.message)
            raise classify_platform_error(exc) from exc

    async def subscribe(self, device_label: Optional[str] = None) -> str:
        """Run the full flow and return the server-side subscription id."""

        if not self.platform.is_supported():
            raise UnsupportedPlatformError()

        try:
            permission = await self.platform.request_permission()
        except PlatformError as exc:
            logger.warning("Push permission request failed", kind=exc.kind.value, error=exc.message)
            raise classify_platform_error(exc) from exc
        if permission != "granted":
            raise PermissionDeniedError()

        self._transition(SubscriptionState.WORKER_INSTALLING)
        try:
            registration = await self._activate_worker()
            self._transition(SubscriptionState.WORKER_ACTIVE)

            public_key = await self.api.get_vapid_public_key()
            subscription = await self._subscribe_platform(registration, url_base64_to_bytes(public_key))
            self.endpoint = subscription.endpoint
            self._transition(SubscriptionState.SUBSCRIBED)

            user_agent = self.platform.user_agent
            self.subscription_id = await self.api.register_subscription(
                subscription.endpoint,
                bytes_to_base64(subscription.get_key("p256dh")),
                bytes_to_base64(subscription.get_key("auth")),
                device_label=device_label or device_label_from_user_agent(user_agent),
                user_agent=user_agent,
            )
            self._transition(SubscriptionState.REGISTERED)
        except BaseException:
            self._reset()
            raise
        return self.subscription_id

    async def _activate_worker(self) -> WorkerRegistration:
        registration = await self._bounded(
            self.platform.register_worker(self.worker_url, self.scope), "register_worker"
        )
        if not registration.active:
            await self._bounded(registration.wait_for_activation(), "worker_activation")
        if not registration.active:
            raise InvalidStateError("Service worker failed to activate. Please refresh the page and try again.")
        return registration

    async def _subscribe_platform(
        self, registration: WorkerRegistration, application_server_key: bytes
    ) -> PlatformSubscription:
        push_manager = registration.push_manager
        if push_manager is None:
            raise UnsupportedPlatformError(
                "PushManager is not available. This browser may not support push notifications."
            )

        # Drop a subscription made with an older server key
        existing = await self._bounded(push_manager.get_subscription(), "get_subscription")
        if existing is not None:
            logger.info("Removing existing push subscription before resubscribing")
            await self._bounded(existing.unsubscribe(), "unsubscribe_existing")

        return await self._bounded(
            push_manager.subscribe(
                application_server_key=application_server_key, user_visible_only=True
            ),
            "subscribe",
        )

    async def _current_subscription(self) -> Optional[PlatformSubscription]:
        if not self.platform.is_supported():
            return None
        registration = await self.platform.get_registration()
        if registration is None or registration.push_manager is None:
            return None
        return await registration.push_manager.get_subscription()

    async def unsubscribe(self, endpoint: Optional[str] = None) -> bool:
        """Remove the subscription from the server first, then from the platform.

        Returns ``False`` when there was nothing to remove.
        """

        subscription = await self._current_subscription()
        endpoint = endpoint or (subscription.endpoint if subscription else None) or self.endpoint
        if endpoint is None:
            self._reset()
            return False

        await self.api.unregister_subscription(endpoint)

        if subscription is not None and subscription.endpoint == endpoint:
            try:
                await self._bounded(subscription.unsubscribe(), "unsubscribe")
            except NotificationClientError as exc:
                # The server no longer targets this endpoint
                logger.warning("Failed to unsubscribe from push platform", error=exc.message)

        self._reset()
        return True

    async def check_status(self) -> SubscriptionStatus:
        """Report whether this device is subscribed and known to the server."""

        subscription = await self._current_subscription()
        if subscription is None:
            return SubscriptionStatus(is_subscribed=False, is_registered_on_server=False)

        try:
            server_subscriptions = await self.api.list_subscriptions()
        except NotificationClientError as exc:
            logger.warning("Failed to check server subscription", error=exc.message)
            return SubscriptionStatus(is_subscribed=True, is_registered_on_server=False)

        match = next(
            (item for item in server_subscriptions if item.get("endpoint") == subscription.endpoint),
            None,
        )
        if match is None:
            return SubscriptionStatus(is_subscribed=True, is_registered_on_server=False)
        return SubscriptionStatus(
            is_subscribed=True,
            is_registered_on_server=True,
            subscription_id=str(match.get("id")),
        )


__all__ = [
    "PushSubscriptionManager",
    "SubscriptionState",
    "SubscriptionStatus",
    "classify_platform_error",
    "device_label_from_user_agent",
]
