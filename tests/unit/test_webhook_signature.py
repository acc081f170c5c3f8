"""Unit tests for payment webhook signature verification."""

import pytest

from app.services.webhook_signature import (
    SignatureVerificationError,
    build_signature_header,
    compute_signature,
    verify_signature,
)

SECRET = "whsec_unit"
BODY = b'{"type":"checkout.session.completed","data":{}}'
TIMESTAMP = 1_770_000_000


class TestVerifySignature:
    def test_valid_signature(self):
        header = build_signature_header(SECRET, BODY, timestamp=TIMESTAMP)

        assert verify_signature(BODY, header, SECRET, now=TIMESTAMP + 10) == TIMESTAMP

    def test_missing_header(self):
        with pytest.raises(SignatureVerificationError, match="Missing"):
            verify_signature(BODY, None, SECRET, now=TIMESTAMP)

    def test_malformed_header(self):
        with pytest.raises(SignatureVerificationError, match="Malformed"):
            verify_signature(BODY, "garbage", SECRET, now=TIMESTAMP)

    def test_non_numeric_timestamp(self):
        with pytest.raises(SignatureVerificationError, match="timestamp"):
            verify_signature(BODY, "t=yesterday,v1=abc", SECRET, now=TIMESTAMP)

    def test_tampered_body(self):
        header = build_signature_header(SECRET, BODY, timestamp=TIMESTAMP)

        with pytest.raises(SignatureVerificationError, match="mismatch"):
            verify_signature(BODY + b" ", header, SECRET, now=TIMESTAMP)

    def test_wrong_secret(self):
        header = build_signature_header("whsec_other", BODY, timestamp=TIMESTAMP)

        with pytest.raises(SignatureVerificationError, match="mismatch"):
            verify_signature(BODY, header, SECRET, now=TIMESTAMP)

    def test_stale_timestamp(self):
        header = build_signature_header(SECRET, BODY, timestamp=TIMESTAMP)

        with pytest.raises(SignatureVerificationError, match="tolerance"):
            verify_signature(BODY, header, SECRET, tolerance_seconds=300, now=TIMESTAMP + 301)

    def test_any_rotated_signature_may_match(self):
        good = compute_signature(SECRET, TIMESTAMP, BODY)
        header = f"t={TIMESTAMP},v1=deadbeef,v1={good}"

        assert verify_signature(BODY, header, SECRET, now=TIMESTAMP) == TIMESTAMP

    def test_non_ascii_signature_is_a_mismatch(self):
        with pytest.raises(SignatureVerificationError, match="mismatch"):
            verify_signature(BODY, f"t={TIMESTAMP},v1=\xe9abc", SECRET, now=TIMESTAMP)
