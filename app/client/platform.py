"""Ports for the device push platform (service worker and push manager).

A browser bridge, or a fake in tests, implements these protocols so the
subscription lifecycle can run without a real browser.
"""
from __future__ import annotations

import enum
from typing import Optional, Protocol


class PlatformErrorKind(str, enum.Enum):
    """Error names reported by the platform, as DOMException names."""

    NOT_ALLOWED = "NotAllowedError"
    NOT_SUPPORTED = "NotSupportedError"
    INVALID_STATE = "InvalidStateError"
    ABORTED = "AbortError"
    TIMEOUT = "TimeoutError"
    UNKNOWN = "UnknownError"


class PlatformError(Exception):
    """Failure reported by the push platform."""

    def __init__(self, kind: PlatformErrorKind | str, message: str = ""):
        try:
            self.kind = PlatformErrorKind(kind)
        except ValueError:
            self.kind = PlatformErrorKind.UNKNOWN
        self.message = message or self.kind.value
        super().__init__(self.message)


class PlatformSubscription(Protocol):
    endpoint: str

    def get_key(self, name: str) -> Optional[bytes]:
        """Return raw ``p256dh`` or ``auth`` key material."""

    async def unsubscribe(self) -> bool:
        ...


class PushManager(Protocol):
    async def get_subscription(self) -> Optional[PlatformSubscription]:
        ...

    async def subscribe(
        self, *, application_server_key: bytes, user_visible_only: bool = True
    ) -> PlatformSubscription:
        ...


class WorkerRegistration(Protocol):
    @property
    def active(self) -> bool:
        """Whether an activated worker controls this registration."""

    @property
    def push_manager(self) -> Optional[PushManager]:
        ...

    async def wait_for_activation(self) -> None:
        """Resolve once the installing worker activates.

        Raises ``PlatformError`` with ``INVALID_STATE`` if the worker becomes
        redundant instead.
        """


class PushPlatform(Protocol):
    user_agent: str

    def is_supported(self) -> bool:
        ...

    async def request_permission(self) -> str:
        """Return ``"granted"``, ``"denied"`` or ``"default"``."""

    async def register_worker(self, script_url: str, scope: str) -> WorkerRegistration:
        ...

    async def get_registration(self) -> Optional[WorkerRegistration]:
        ...


__all__ = [
    "PlatformError",
    "PlatformErrorKind",
    "PlatformSubscription",
    "PushManager",
    "PushPlatform",
    "WorkerRegistration",
]
