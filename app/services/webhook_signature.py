# app/services/webhook_signature.py
"""
Payment webhook signature verification.

Header format: t=<unix seconds>,v1=<hex hmac-sha256>
Signed payload: f"{t}.{raw body}" with the shared webhook secret.
Several v1 entries may be present during secret rotation; any match passes.
"""

import hashlib
import hmac
import time

from app.constants import WebhookDefaults


class SignatureVerificationError(Exception):
    """Signature header missing, malformed, stale, or not matching."""


def compute_signature(secret: str, timestamp: int, body: bytes) -> str:
    signed = f"{timestamp}.".encode("utf-8") + body
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def build_signature_header(secret: str, body: bytes, timestamp: int | None = None) -> str:
    """Header value for a body (used by tests and local tooling)."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    return f"t={timestamp},v1={compute_signature(secret, timestamp, body)}"


def _parse_header(header: str) -> tuple[int, list[str]]:
    timestamp = None
    signatures = []
    for part in header.split(","):
        key, sep, value = part.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError as e:
                raise SignatureVerificationError("Invalid signature timestamp") from e
        elif key == "v1":
            signatures.append(value)

    if timestamp is None or not signatures:
        raise SignatureVerificationError("Malformed signature header")
    return timestamp, signatures


def verify_signature(
    body: bytes,
    header: str | None,
    secret: str,
    tolerance_seconds: int = WebhookDefaults.TOLERANCE_SECONDS,
    now: float | None = None,
) -> int:
    """
    Verify a signed webhook body.

    Returns:
        The signed timestamp

    Raises:
        SignatureVerificationError: on any mismatch
    """
    if not header:
        raise SignatureVerificationError("Missing signature header")

    timestamp, signatures = _parse_header(header)
    now = time.time() if now is None else now
    if abs(now - timestamp) > tolerance_seconds:
        raise SignatureVerificationError("Signature timestamp outside tolerance")

    expected = compute_signature(secret, timestamp, body)
    if not any(hmac.compare_digest(expected.encode("utf-8"), sig.encode("utf-8")) for sig in signatures):
        raise SignatureVerificationError("Signature mismatch")
    return timestamp
