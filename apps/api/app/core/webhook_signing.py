"""Signed webhook verification (``{id}.{timestamp}.{body}`` HMAC-SHA256 scheme)."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import time

_SECRET_PREFIX = "whsec_"
_SIGNATURE_VERSION = "v1"


class WebhookVerificationError(Exception):
    """Raised when a webhook delivery cannot be authenticated."""


def secret_bytes(secret: str) -> bytes:
    """Key material for a signing secret; ``whsec_`` secrets carry base64 after the prefix."""
    if secret.startswith(_SECRET_PREFIX):
        try:
            return base64.b64decode(secret[len(_SECRET_PREFIX):], validate=True)
        except (binascii.Error, ValueError) as exc:
            raise WebhookVerificationError("Webhook secret is not valid base64") from exc
    return secret.encode("utf-8")


def compute_signature(*, secret: str, delivery_id: str, timestamp: str, body: bytes) -> str:
    """Return the base64 HMAC-SHA256 signature for a delivery."""
    signed_payload = f"{delivery_id}.{timestamp}.".encode("utf-8") + body
    digest = hmac.new(secret_bytes(secret), signed_payload, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def sign_headers(*, secret: str, delivery_id: str, body: bytes, timestamp: int | None = None) -> dict[str, str]:
    """Build the header set a provider would send; used by local tooling and tests."""
    ts = str(int(time.time()) if timestamp is None else timestamp)
    signature = compute_signature(secret=secret, delivery_id=delivery_id, timestamp=ts, body=body)
    return {
        "webhook-id": delivery_id,
        "webhook-timestamp": ts,
        "webhook-signature": f"{_SIGNATURE_VERSION},{signature}",
    }


def verify_signature(
    *,
    secret: str,
    delivery_id: str | None,
    timestamp: str | None,
    signature_header: str | None,
    body: bytes,
    tolerance_seconds: int,
    now: float | None = None,
) -> None:
    """Raise ``WebhookVerificationError`` unless the delivery is fresh and correctly signed."""
    if not delivery_id or not timestamp or not signature_header:
        raise WebhookVerificationError("Missing webhook signature headers")

    try:
        sent_at = int(timestamp)
    except ValueError as exc:
        raise WebhookVerificationError("Malformed webhook timestamp") from exc

    current = time.time() if now is None else now
    if abs(current - sent_at) > tolerance_seconds:
        raise WebhookVerificationError("Webhook timestamp outside tolerance window")

    expected = compute_signature(secret=secret, delivery_id=delivery_id, timestamp=timestamp, body=body)

    # Header may carry several space separated signatures during secret rotation.
    for candidate in signature_header.split():
        version, _, value = candidate.partition(",")
        if not value:
            value, version = version, _SIGNATURE_VERSION
        if version != _SIGNATURE_VERSION:
            continue
        if hmac.compare_digest(value.encode("ascii", "ignore"), expected.encode("ascii")):
            return

    raise WebhookVerificationError("Webhook signature mismatch")
