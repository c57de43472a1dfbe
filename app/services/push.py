"""Web Push transport: signs and delivers one message to one subscription."""
from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger
from pywebpush import WebPushException, webpush

from app.config import Settings
from app.utils.exceptions import NotificationConfigError

GONE_STATUS = 410
DEFAULT_ERROR_STATUS = 500
DEFAULT_SUCCESS_STATUS = 201


@dataclass(frozen=True)
class VapidConfig:
    """Server identity used to sign push requests."""

    public_key: Optional[str]
    private_key: Optional[str]
    subject: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "VapidConfig":
        return cls(
            public_key=settings.VAPID_PUBLIC_KEY,
            private_key=settings.VAPID_PRIVATE_KEY,
            subject=settings.VAPID_SUBJECT,
        )


@dataclass
class SendResult:
    """Outcome of one delivery attempt."""

    success: bool
    http_status: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_gone(self) -> bool:
        return not self.success and self.http_status == GONE_STATUS


def _extract_status_code(exc: WebPushException) -> Optional[int]:
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


class WebPushClient:
    """Deliver payloads through ``pywebpush`` using a fixed VAPID identity.

    ``initialize`` validates the key pair once; later calls are no-ops. It runs
    lazily on the first ``send`` when the owner did not call it at startup.
    """

    def __init__(
        self,
        config: VapidConfig,
        *,
        ttl_seconds: int = 86400,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._config = config
        self._ttl_seconds = ttl_seconds
        self._timeout_seconds = timeout_seconds
        self._lock = threading.Lock()
        self._initialized = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebPushClient":
        return cls(
            VapidConfig.from_settings(settings),
            ttl_seconds=settings.NOTIFICATION_PUSH_TTL_SECONDS,
            timeout_seconds=settings.NOTIFICATION_PUSH_TIMEOUT_SECONDS,
        )

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def public_key(self) -> Optional[str]:
        return self._config.public_key

    def initialize(self) -> None:
        if self._initialized:
            return
        with self._lock:
            if self._initialized:
                return
            if not self._config.public_key or not self._config.private_key:
                raise NotificationConfigError(
                    "VAPID keys are not configured. Run scripts/setup_vapid_keys.py to generate them."
                )
            self._initialized = True
            logger.info("Web Push transport initialized", subject=self._config.subject)

    def send(self, subscription_info: Dict[str, Any], payload: Dict[str, Any]) -> SendResult:
        """Send ``payload`` to the subscription; transport errors become a failed result."""

        self.initialize()
        data = json.dumps(payload, separators=(",", ":"))

        try:
            response = webpush(
                subscription_info=subscription_info,
                data=data,
                vapid_private_key=self._config.private_key,
                # pywebpush adds aud/exp to the claims it is given
                vapid_claims={"sub": self._config.subject},
                ttl=self._ttl_seconds,
                timeout=self._timeout_seconds,
            )
        except WebPushException as exc:
            status = _extract_status_code(exc) or DEFAULT_ERROR_STATUS
            return SendResult(success=False, http_status=status, error=str(exc) or "Unknown error")
        except Exception as exc:
            return SendResult(
                success=False,
                http_status=DEFAULT_ERROR_STATUS,
                error=str(exc) or exc.__class__.__name__,
            )

        status = getattr(response, "status_code", None)
        if not isinstance(status, int):
            status = DEFAULT_SUCCESS_STATUS
        return SendResult(success=True, http_status=status)


__all__ = [
    "DEFAULT_ERROR_STATUS",
    "GONE_STATUS",
    "SendResult",
    "VapidConfig",
    "WebPushClient",
]
