"""Generate a VAPID key pair for Web Push and print it as .env entries."""
from __future__ import annotations

import argparse

from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from py_vapid import Vapid01
from py_vapid.utils import b64urlencode


def generate_vapid_keys() -> tuple[str, str]:
    """Return ``(public_key, private_key)`` as URL-safe base64 without padding."""

    vapid = Vapid01()
    vapid.generate_keys()
    public_key = vapid.public_key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
    private_value = vapid.private_key.private_numbers().private_value.to_bytes(32, "big")
    return b64urlencode(public_key), b64urlencode(private_value)


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate VAPID keys for push notifications")
    parser.add_argument(
        "--subject",
        default="mailto:notifications@example.com",
        help="Contact subject included in VAPID claims",
    )
    args = parser.parse_args()

    public_key, private_key = generate_vapid_keys()
    print("# Add these to your .env file")
    print("ENABLE_NOTIFICATIONS=true")
    print(f"VAPID_PUBLIC_KEY={public_key}")
    print(f"VAPID_PRIVATE_KEY={private_key}")
    print(f"VAPID_SUBJECT={args.subject}")


if __name__ == "__main__":
    main()
