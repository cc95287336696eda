"""
Generate a VAPID key pair for web push.

Prints VAPID_PUBLIC_KEY / VAPID_PRIVATE_KEY lines ready for a .env file.
"""

from __future__ import annotations

import argparse
import json

from cryptography.hazmat.primitives import serialization
from py_vapid import Vapid01
from py_vapid.utils import b64urlencode


def generate_keys() -> tuple[str, str]:
    vapid = Vapid01()
    vapid.generate_keys()
    public_key = b64urlencode(
        vapid.public_key.public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.UncompressedPoint,
        )
    )
    private_key = b64urlencode(
        vapid.private_key.private_numbers().private_value.to_bytes(32, "big")
    )
    return public_key, private_key


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate VAPID keys for web push")
    parser.add_argument(
        "--format",
        choices=("env", "json"),
        default="env",
        help="Output format",
    )
    args = parser.parse_args()

    public_key, private_key = generate_keys()
    if args.format == "json":
        print(json.dumps({"publicKey": public_key, "privateKey": private_key}))
    else:
        print(f"VAPID_PUBLIC_KEY={public_key}")
        print(f"VAPID_PRIVATE_KEY={private_key}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
