"""HMAC-SHA256 signing and verification for webhook payloads."""
import hashlib
import hmac
import secrets
from typing import Union

SIGNATURE_PREFIX = "sha256="

Payload = Union[str, bytes]


def _to_bytes(value: Payload) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def sign(payload: Payload, secret: str) -> str:
    """Return the hex HMAC-SHA256 of the exact payload bytes."""
    return hmac.new(
        _to_bytes(secret),
        _to_bytes(payload),
        hashlib.sha256
    ).hexdigest()


def signature_header(payload: Payload, secret: str) -> str:
    """Return the `X-CMS-Signature` header value for a payload."""
    return f"{SIGNATURE_PREFIX}{sign(payload, secret)}"


def verify(payload: Payload, signature: str, secret: str) -> bool:
    """
    Check a signature against the payload using a constant-time comparison.

    Accepts signatures with or without the `sha256=` prefix. The hex digest is
    compared as text, so any change to a character (including its case)
    fails; malformed or wrong-length signatures return False.
    """
    if not signature:
        return False

    if signature.startswith(SIGNATURE_PREFIX):
        signature = signature[len(SIGNATURE_PREFIX):]

    provided = signature.encode("utf-8")
    expected = sign(payload, secret).encode("utf-8")
    if len(provided) != len(expected):
        return False

    return hmac.compare_digest(provided, expected)


def generate_webhook_secret(nbytes: int = 32) -> str:
    """Generate a random shared secret for a new webhook target."""
    return secrets.token_hex(nbytes)
