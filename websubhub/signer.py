"""HMAC-SHA256 signing of content deliveries."""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "X-Hub-Signature"
SIGNATURE_PREFIX = "sha256="


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def sign(secret: str | bytes, message: str | bytes) -> str:
    """Return the hex HMAC-SHA256 of ``message`` keyed with ``secret``."""

    return hmac.new(_as_bytes(secret), _as_bytes(message), hashlib.sha256).hexdigest()


def signature_header(secret: str | bytes, message: str | bytes) -> str:
    return f"{SIGNATURE_PREFIX}{sign(secret, message)}"


def verify_signature(secret: str | bytes, message: str | bytes, header: str | None) -> bool:
    """Check an ``X-Hub-Signature`` value in constant time."""

    if not header or not header.startswith(SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(header, signature_header(secret, message))
