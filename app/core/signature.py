"""
Webhook authenticity checks.

``verify_signature`` validates ``X-Hub-Signature-256`` (HMAC-SHA256 of the
exact raw body keyed with the app secret). ``verify_subscription`` handles
the one-time GET handshake Meta performs when the webhook is registered.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from app.exceptions import AuthenticationError

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_ALGORITHM = "sha256"
SUBSCRIBE_MODE = "subscribe"


def compute_signature(secret: str, body: bytes) -> str:
    """Return the header value Meta would send for ``body``."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_ALGORITHM}={digest}"


def verify_signature(
    body: bytes, signature_header: Optional[str], secret: Optional[str]
) -> bool:
    """
    True if ``signature_header`` matches ``body`` under ``secret``.

    With no secret configured every request passes; callers are expected to
    log that. Header parsing is strict: ``sha256=<hex digest>`` only.
    """
    if not secret:
        return True
    if not signature_header:
        return False

    algorithm, _, supplied = signature_header.strip().partition("=")
    if algorithm != SIGNATURE_ALGORITHM or not supplied:
        return False
    try:
        supplied_digest = bytes.fromhex(supplied)
    except ValueError:
        return False

    expected_digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return hmac.compare_digest(expected_digest, supplied_digest)


def verify_subscription(
    mode: Optional[str],
    token: Optional[str],
    challenge: Optional[str],
    verify_token: Optional[str],
) -> str:
    """Return the challenge verbatim, or raise AuthenticationError."""
    if mode != SUBSCRIBE_MODE:
        raise AuthenticationError("Webhook verification failed: unexpected hub.mode")
    if not verify_token or not token:
        raise AuthenticationError("Webhook verification failed: missing verify token")
    if not hmac.compare_digest(token.encode("utf-8"), verify_token.encode("utf-8")):
        raise AuthenticationError("Webhook verification failed: token mismatch")
    return challenge or ""
