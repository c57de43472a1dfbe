"""Tests for the device-side subscription state machine."""
from __future__ import annotations

import asyncio
import base64
from typing import Optional

import pytest

from app.client.errors import (
    InvalidStateError,
    NotificationClientError,
    PermissionDeniedError,
    SubscriptionAbortedError,
    SubscriptionTimeoutError,
    UnsupportedPlatformError,
)
from app.client.lifecycle import (
    PushSubscriptionManager,
    SubscriptionState,
    classify_platform_error,
    device_label_from_user_agent,
)
from app.client.platform import PlatformError, PlatformErrorKind

SERVER_KEY = base64.urlsafe_b64encode(bytes([4]) + bytes(64)).decode().rstrip("=")
MAC_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0)"


class FakeSubscription:
    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        self.unsubscribed = False

    def get_key(self, name: str) -> Optional[bytes]:
        return {"p256dh": b"client-public", "auth": b"secret"}.get(name)

    async def unsubscribe(self) -> bool:
        self.unsubscribed = True
        return True


class FakePushManager:
    def __init__(self) -> None:
        self.current: Optional[FakeSubscription] = None
        self.subscribe_error: Optional[Exception] = None
        self.hang = False
        self.keys: list[bytes] = []
        self.count = 0

    async def get_subscription(self) -> Optional[FakeSubscription]:
        return self.current

    async def subscribe(self, *, application_server_key: bytes, user_visible_only: bool = True) -> FakeSubscription:
        if self.hang:
            await asyncio.sleep(3600)
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.keys.append(application_server_key)
        self.count += 1
        self.current = FakeSubscription(f"https://push.example.com/{self.count}")
        return self.current


class FakeRegistration:
    def __init__(self, active: bool = True) -> None:
        self._active = active
        self.push_manager: Optional[FakePushManager] = FakePushManager()
        self.activation_hangs = False
        self.becomes_redundant = False

    @property
    def active(self) -> bool:
        return self._active

    async def wait_for_activation(self) -> None:
        if self.activation_hangs:
            await asyncio.sleep(3600)
        if self.becomes_redundant:
            raise PlatformError(PlatformErrorKind.INVALID_STATE, "redundant")
        self._active = True


class FakePlatform:
    def __init__(self, registration: Optional[FakeRegistration] = None) -> None:
        self.registration = registration or FakeRegistration()
        self.supported = True
        self.permission = "granted"
        self.permission_error: Optional[PlatformError] = None
        self.user_agent = MAC_UA
        self.registered = False

    def is_supported(self) -> bool:
        return self.supported

    async def request_permission(self) -> str:
        if self.permission_error is not None:
            raise self.permission_error
        return self.permission

    async def register_worker(self, script_url: str, scope: str) -> FakeRegistration:
        self.registered = True
        return self.registration

    async def get_registration(self) -> Optional[FakeRegistration]:
        return self.registration if self.registered else None


class FakeApi:
    def __init__(self) -> None:
        self.registered: dict[str, dict] = {}
        self.unregistered: list[str] = []
        self.list_error: Optional[Exception] = None

    async def get_vapid_public_key(self) -> str:
        return SERVER_KEY

    async def register_subscription(self, endpoint, p256dh, auth, *, device_label=None, user_agent=None) -> str:
        subscription_id = f"id-{len(self.registered) + 1}"
        self.registered[endpoint] = {
            "id": subscription_id,
            "p256dh": p256dh,
            "auth": auth,
            "device_label": device_label,
            "user_agent": user_agent,
        }
        return subscription_id

    async def unregister_subscription(self, endpoint: str) -> None:
        self.unregistered.append(endpoint)
        self.registered.pop(endpoint, None)

    async def list_subscriptions(self) -> list[dict]:
        if self.list_error is not None:
            raise self.list_error
        return [{"id": data["id"], "endpoint": endpoint} for endpoint, data in self.registered.items()]


@pytest.fixture()
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture()
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture()
def manager(platform, api) -> PushSubscriptionManager:
    return PushSubscriptionManager(platform, api, step_timeout=0.05)


@pytest.mark.asyncio
async def test_subscribe_reaches_registered(manager, platform, api) -> None:
    subscription_id = await manager.subscribe()

    assert subscription_id == "id-1"
    assert manager.state is SubscriptionState.REGISTERED
    registered = api.registered["https://push.example.com/1"]
    assert registered["p256dh"] == base64.b64encode(b"client-public").decode()
    assert registered["device_label"] == "Mac"
    assert registered["user_agent"] == MAC_UA
    assert platform.registration.push_manager.keys[0] == bytes([4]) + bytes(64)


@pytest.mark.asyncio
async def test_existing_subscription_replaced(manager, platform) -> None:
    stale = FakeSubscription("https://push.example.com/stale")
    platform.registration.push_manager.current = stale

    await manager.subscribe()

    assert stale.unsubscribed
    assert manager.endpoint == "https://push.example.com/1"


@pytest.mark.asyncio
async def test_waits_for_installing_worker(platform, api) -> None:
    platform.registration = FakeRegistration(active=False)
    manager = PushSubscriptionManager(platform, api, step_timeout=0.05)

    await manager.subscribe()

    assert manager.state is SubscriptionState.REGISTERED


@pytest.mark.asyncio
async def test_stuck_worker_times_out(platform, api) -> None:
    platform.registration = FakeRegistration(active=False)
    platform.registration.activation_hangs = True
    manager = PushSubscriptionManager(platform, api, step_timeout=0.05)

    with pytest.raises(SubscriptionTimeoutError):
        await manager.subscribe()
    assert manager.state is SubscriptionState.UNREGISTERED


@pytest.mark.asyncio
async def test_redundant_worker_is_invalid_state(platform, api) -> None:
    platform.registration = FakeRegistration(active=False)
    platform.registration.becomes_redundant = True
    manager = PushSubscriptionManager(platform, api, step_timeout=0.05)

    with pytest.raises(InvalidStateError):
        await manager.subscribe()


@pytest.mark.asyncio
async def test_stuck_platform_subscribe_times_out(manager, platform) -> None:
    platform.registration.push_manager.hang = True

    with pytest.raises(SubscriptionTimeoutError):
        await manager.subscribe()
    assert manager.state is SubscriptionState.UNREGISTERED


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (PlatformErrorKind.NOT_ALLOWED, PermissionDeniedError),
        (PlatformErrorKind.NOT_SUPPORTED, UnsupportedPlatformError),
        (PlatformErrorKind.INVALID_STATE, InvalidStateError),
        (PlatformErrorKind.ABORTED, SubscriptionAbortedError),
        (PlatformErrorKind.TIMEOUT, SubscriptionTimeoutError),
    ],
)
async def test_platform_errors_are_classified(manager, platform, api, kind, expected) -> None:
    platform.registration.push_manager.subscribe_error = PlatformError(kind)

    with pytest.raises(expected):
        await manager.subscribe()
    assert api.registered == {}


def test_classified_messages_are_distinct() -> None:
    messages = {
        classify_platform_error(PlatformError(kind)).message
        for kind in PlatformErrorKind
    }
    assert len(messages) == len(PlatformErrorKind)


def test_unknown_platform_error_keeps_message() -> None:
    error = classify_platform_error(PlatformError("QuotaExceededError", "quota exceeded"))

    assert type(error) is NotificationClientError
    assert "quota exceeded" in error.message


@pytest.mark.asyncio
async def test_permission_denied_before_worker(manager, platform) -> None:
    platform.permission = "denied"

    with pytest.raises(PermissionDeniedError):
        await manager.subscribe()
    assert not platform.registered


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (PlatformErrorKind.NOT_ALLOWED, PermissionDeniedError),
        (PlatformErrorKind.NOT_SUPPORTED, UnsupportedPlatformError),
    ],
)
async def test_permission_request_errors_are_classified(manager, platform, kind, expected) -> None:
    platform.permission_error = PlatformError(kind)

    with pytest.raises(expected):
        await manager.subscribe()
    assert manager.state is SubscriptionState.UNREGISTERED
    assert not platform.registered


@pytest.mark.asyncio
async def test_unsupported_platform(manager, platform) -> None:
    platform.supported = False

    with pytest.raises(UnsupportedPlatformError):
        await manager.subscribe()


@pytest.mark.asyncio
async def test_missing_push_manager(manager, platform) -> None:
    platform.registration.push_manager = None

    with pytest.raises(UnsupportedPlatformError):
        await manager.subscribe()


@pytest.mark.asyncio
async def test_unsubscribe_tells_server_first(manager, platform, api) -> None:
    await manager.subscribe()
    subscription = platform.registration.push_manager.current

    assert await manager.unsubscribe()

    assert api.unregistered == [subscription.endpoint]
    assert subscription.unsubscribed
    assert manager.state is SubscriptionState.UNREGISTERED


@pytest.mark.asyncio
async def test_unsubscribe_without_subscription(manager, api) -> None:
    assert not await manager.unsubscribe()
    assert api.unregistered == []


@pytest.mark.asyncio
async def test_check_status(manager, platform, api) -> None:
    status = await manager.check_status()
    assert not status.is_subscribed

    await manager.subscribe()
    status = await manager.check_status()
    assert status.is_subscribed
    assert status.is_registered_on_server
    assert status.subscription_id == "id-1"

    api.registered.clear()
    status = await manager.check_status()
    assert status.is_subscribed
    assert not status.is_registered_on_server


@pytest.mark.asyncio
async def test_check_status_server_error(manager, api) -> None:
    await manager.subscribe()
    api.list_error = NotificationClientError("server down")

    status = await manager.check_status()

    assert status.is_subscribed
    assert not status.is_registered_on_server


@pytest.mark.asyncio
async def test_resubscribe_from_registered(manager) -> None:
    await manager.subscribe()
    second = await manager.subscribe()

    assert second == "id-2"
    assert manager.state is SubscriptionState.REGISTERED


@pytest.mark.parametrize(
    ("user_agent", "label"),
    [
        ("Mozilla/5.0 (Linux; Android 14) Mobile", "Android Device"),
        ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0) Mobile", "iOS Device"),
        (MAC_UA, "Mac"),
        ("Mozilla/5.0 (Windows NT 10.0)", "Windows"),
        ("curl/8.0", "Device"),
    ],
)
def test_device_label_from_user_agent(user_agent: str, label: str) -> None:
    assert device_label_from_user_agent(user_agent) == label
