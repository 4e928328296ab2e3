"""HMAC-SHA256 request signatures for inbound triggers."""

from __future__ import annotations

import hashlib
import hmac


class SignatureError(ValueError):
    """Raised when a signature is missing or malformed."""


_HEX = set("0123456789abcdef")


def sign_body(secret: str, body: bytes) -> str:
    """Lowercase hex HMAC-SHA256 of the raw body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def constant_time_equals(left: bytes, right: bytes) -> bool:
    """Compare two byte strings without short-circuiting on the first difference.

    Every byte pair is XORed into an accumulator and the result is compared
    to zero once the whole input has been walked.
    """
    if len(left) != len(right):
        return False
    acc = 0
    for a, b in zip(left, right):
        acc |= a ^ b
    return acc == 0


def _normalize(signature: str | None) -> str:
    if not isinstance(signature, str) or not signature:
        raise SignatureError("Missing signature")
    value = signature
    if value.startswith("sha256="):
        value = value[7:]
    if len(value) != 64 or any(ch not in _HEX for ch in value):
        raise SignatureError("Malformed signature")
    return value


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Return True only if ``signature`` is the HMAC of ``body`` under ``secret``.

    Raises SignatureError when the signature is absent or not a 64 character
    lowercase hex string (an optional ``sha256=`` prefix is accepted).
    """
    provided = _normalize(signature)
    expected = sign_body(secret, body)
    return constant_time_equals(expected.encode("ascii"), provided.encode("ascii"))
