"""Signed webhook verification."""

from __future__ import annotations

import unittest

from pydantic import ValidationError

from app.core.config import Settings
from app.core.webhook_signing import (
    WebhookVerificationError,
    compute_signature,
    sign_headers,
    verify_signature,
)

SECRET = "whsec_dGVzdA=="
BODY = b'{"id":"pred-1","status":"succeeded"}'
NOW = 1_770_000_000


class WebhookSigningTests(unittest.TestCase):
    def _verify(self, headers: dict[str, str], *, body: bytes = BODY, now: float = NOW, secret: str = SECRET) -> None:
        verify_signature(
            secret=secret,
            delivery_id=headers.get("webhook-id"),
            timestamp=headers.get("webhook-timestamp"),
            signature_header=headers.get("webhook-signature"),
            body=body,
            tolerance_seconds=300,
            now=now,
        )

    def test_signed_delivery_verifies(self) -> None:
        headers = sign_headers(secret=SECRET, delivery_id="msg_1", body=BODY, timestamp=NOW)

        self.assertTrue(headers["webhook-signature"].startswith("v1,"))
        self._verify(headers)

    def test_prefixed_secret_is_base64_decoded(self) -> None:
        # "dGVzdA==" is base64 for "test"; the raw-string secret "test" must sign identically.
        self.assertEqual(
            compute_signature(secret=SECRET, delivery_id="msg_1", timestamp=str(NOW), body=BODY),
            compute_signature(secret="test", delivery_id="msg_1", timestamp=str(NOW), body=BODY),
        )

    def test_any_matching_entry_in_rotated_signature_list_is_accepted(self) -> None:
        headers = sign_headers(secret=SECRET, delivery_id="msg_1", body=BODY, timestamp=NOW)
        headers["webhook-signature"] = f"v1,bm90LWl0 v2,ignored {headers['webhook-signature']}"

        self._verify(headers)

    def test_tampered_body_is_rejected(self) -> None:
        headers = sign_headers(secret=SECRET, delivery_id="msg_1", body=BODY, timestamp=NOW)

        with self.assertRaises(WebhookVerificationError):
            self._verify(headers, body=BODY.replace(b"succeeded", b"failed"))

    def test_wrong_secret_is_rejected(self) -> None:
        headers = sign_headers(secret="whsec_b3RoZXI=", delivery_id="msg_1", body=BODY, timestamp=NOW)

        with self.assertRaises(WebhookVerificationError):
            self._verify(headers)

    def test_delivery_id_is_part_of_signed_content(self) -> None:
        headers = sign_headers(secret=SECRET, delivery_id="msg_1", body=BODY, timestamp=NOW)
        headers["webhook-id"] = "msg_2"

        with self.assertRaises(WebhookVerificationError):
            self._verify(headers)

    def test_timestamp_outside_tolerance_is_rejected_both_directions(self) -> None:
        headers = sign_headers(secret=SECRET, delivery_id="msg_1", body=BODY, timestamp=NOW)
        for now in (NOW + 301, NOW - 301):
            with self.subTest(now=now):
                with self.assertRaises(WebhookVerificationError):
                    self._verify(headers, now=now)
        self._verify(headers, now=NOW + 300)

    def test_missing_or_malformed_headers_are_rejected(self) -> None:
        signed = sign_headers(secret=SECRET, delivery_id="msg_1", body=BODY, timestamp=NOW)
        cases = {
            "missing id": {**signed, "webhook-id": ""},
            "missing signature": {k: v for k, v in signed.items() if k != "webhook-signature"},
            "non-numeric timestamp": {**signed, "webhook-timestamp": "yesterday"},
        }
        for name, headers in cases.items():
            with self.subTest(case=name):
                with self.assertRaises(WebhookVerificationError):
                    self._verify(headers)

    def test_invalid_prefixed_secret_is_rejected(self) -> None:
        headers = sign_headers(secret="plain", delivery_id="msg_1", body=BODY, timestamp=NOW)

        with self.assertRaises(WebhookVerificationError):
            self._verify(headers, secret="whsec_!!!not-base64!!!")


class WebhookSecretSettingsTests(unittest.TestCase):
    def test_malformed_prefixed_secret_fails_at_load(self) -> None:
        for secret in ("whsec_!!!not-base64!!!", "whsec_", ""):
            with self.subTest(secret=secret):
                with self.assertRaises(ValidationError):
                    Settings(webhook_secret=secret)

    def test_prefixed_and_raw_secrets_load(self) -> None:
        self.assertEqual(Settings(webhook_secret=SECRET).webhook_secret, SECRET)
        self.assertEqual(Settings(webhook_secret="plain-secret").webhook_secret, "plain-secret")
