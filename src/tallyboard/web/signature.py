"""Webhook signature helpers.

The chat platform signs each delivery with HMAC-SHA256 over the raw body
using the channel secret, base64-encoded into a request header.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Optional

SIGNATURE_HEADER = "X-Tallyboard-Signature"


def compute_signature(body: bytes, secret: str) -> str:
    """Return the base64 HMAC-SHA256 signature of ``body``."""
    if not secret:
        raise ValueError("Secret cannot be empty")
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """
    Verify a delivery signature.

    Verification is skipped (always True) when no secret is configured,
    which is only meant for local development.
    """
    if not secret:
        return True
    if not signature:
        return False
    return hmac.compare_digest(compute_signature(body, secret), signature)
