"""Request signature utilities built on HMAC-SHA256 primitives."""
from __future__ import annotations

import hashlib
import hmac


def signing_payload(timestamp: int, body: bytes) -> bytes:
    """Return the exact bytes covered by a request signature."""
    return str(int(timestamp)).encode("ascii") + b"." + body


def sign(timestamp: int, body: bytes, key: bytes) -> str:
    """Return the lowercase hex HMAC-SHA256 of ``timestamp + "." + body``.

    Args:
        timestamp: Unix seconds sent alongside the signature.
        body: Raw request body, empty for body-less requests.
        key: Signing key delivered by the authority at login.

    Returns:
        Hex-encoded signature, deterministic for identical inputs.
    """
    return hmac.new(key, signing_payload(timestamp, body), hashlib.sha256).hexdigest()


def verify_signature(timestamp: int, body: bytes, key: bytes, signature_hex: str) -> bool:
    """Return True if ``signature_hex`` matches the payload under ``key``."""
    expected = sign(timestamp, body, key)
    return hmac.compare_digest(expected, signature_hex.lower())


def build_signature_headers(
    timestamp: int,
    body: bytes,
    key: bytes,
    *,
    signature_header: str = "X-Signature",
    timestamp_header: str = "X-Timestamp",
) -> dict[str, str]:
    """Return the transport headers carrying a request signature."""
    return {
        signature_header: sign(timestamp, body, key),
        timestamp_header: str(int(timestamp)),
    }
