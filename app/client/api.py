"""Async HTTP client for the notification subscription endpoints."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import httpx
from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.client.errors import NotificationsDisabledError, ServerRequestError
from app.utils.cache import CacheBackend


class NotificationApiClient:
    """Talk to ``/notifications`` on behalf of one signed-in device.

    The server public key is cached for a limited time so a key rotation on
    the server is picked up without restarting the client.
    """

    VAPID_CACHE_NAMESPACE = "notifications:vapid-key"
    VAPID_CACHE_TTL_SECONDS = 30 * 60

    def __init__(
        self,
        base_url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        cache: Optional[CacheBackend] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url
        self._cache = cache or CacheBackend()
        self._client = client or httpx.AsyncClient(
            base_url=base_url, headers=dict(headers or {}), timeout=timeout
        )

    async def __aenter__(self) -> "NotificationApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get(self, path: str) -> httpx.Response:
        return await self._client.get(path)

    async def get_vapid_public_key(self) -> str:
        cached = self._cache.get(self.VAPID_CACHE_NAMESPACE, self.base_url)
        if cached:
            return cached

        response = await self._get("/notifications/vapid-key")
        data = self._unwrap(response, "Failed to fetch VAPID key")
        public_key = (data or {}).get("publicKey")
        if not public_key:
            raise ServerRequestError("Invalid VAPID key response", response.status_code)

        self._cache.set(
            self.VAPID_CACHE_NAMESPACE,
            self.base_url,
            public_key,
            ttl_seconds=self.VAPID_CACHE_TTL_SECONDS,
        )
        return public_key

    def invalidate_vapid_public_key(self) -> None:
        self._cache.invalidate(self.VAPID_CACHE_NAMESPACE, self.base_url)

    async def register_subscription(
        self,
        endpoint: str,
        p256dh: str,
        auth: str,
        *,
        device_label: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        """Send the registration handshake and return the server subscription id."""

        payload = {
            "endpoint": endpoint,
            "keys": {"p256dh": p256dh, "auth": auth},
            "deviceLabel": device_label,
            "userAgent": user_agent,
        }
        response = await self._client.post("/notifications/subscribe", json=payload)
        data = self._unwrap(response, "Failed to register subscription")
        subscription_id = (data or {}).get("id")
        if not subscription_id:
            raise ServerRequestError("Invalid subscription response", response.status_code)
        logger.info("Push subscription registered with server", subscription_id=subscription_id)
        return str(subscription_id)

    async def unregister_subscription(self, endpoint: str) -> None:
        """Remove the subscription on the server; an unknown endpoint is fine."""

        response = await self._client.delete(
            "/notifications/subscribe", params={"endpoint": endpoint}
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            logger.debug("Subscription already absent on server")
            return
        self._unwrap(response, "Failed to unsubscribe")

    async def list_subscriptions(self) -> List[Dict[str, Any]]:
        response = await self._get("/notifications/subscriptions")
        data = self._unwrap(response, "Failed to list subscriptions")
        return list(data or [])

    @staticmethod
    def _unwrap(response: httpx.Response, fallback: str) -> Any:
        if response.status_code == httpx.codes.SERVICE_UNAVAILABLE:
            raise NotificationsDisabledError()

        try:
            body = response.json()
        except ValueError:
            body = {"error": response.text or fallback}

        if response.is_error or not body.get("success", False):
            message = body.get("error") or fallback
            raise ServerRequestError(message, response.status_code)
        return body.get("data")


__all__ = ["NotificationApiClient"]
