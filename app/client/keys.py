"""Conversions between URL-safe base64 strings and raw key bytes."""
from __future__ import annotations

import base64
import binascii

from loguru import logger

# Uncompressed P-256 point: 0x04 || X || Y
UNCOMPRESSED_KEY_LENGTH = 65


def url_base64_to_bytes(value: str) -> bytes:
    """Decode a URL-safe base64 server key, padding it as needed.

    A decoded length other than 65 bytes is logged but not rejected.
    """

    if not value or not isinstance(value, str):
        raise ValueError("Invalid VAPID key: must be a non-empty string")

    padded = value + "=" * (-len(value) % 4)
    try:
        raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"Failed to convert VAPID key: {exc}") from exc

    if len(raw) != UNCOMPRESSED_KEY_LENGTH:
        logger.warning(
            "Unexpected VAPID key length",
            length=len(raw),
            expected=UNCOMPRESSED_KEY_LENGTH,
        )
    return raw


def bytes_to_base64(data: bytes | None) -> str:
    """Standard base64 encoding of subscription key material."""

    if data is None:
        raise ValueError("Key material is missing")
    return base64.b64encode(data).decode("ascii")


__all__ = ["UNCOMPRESSED_KEY_LENGTH", "bytes_to_base64", "url_base64_to_bytes"]
