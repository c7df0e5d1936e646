"""Tests for EventSub signature verification."""

from __future__ import annotations

import hashlib
import hmac
from unittest.mock import patch

import pytest

from robochick.eventsub.signature import (
    MalformedSignature,
    MissingHeader,
    SignatureMismatch,
    sign,
    verify_signature,
)

SECRET = b"chickencoop"
MESSAGE_ID = "message-1"
TIMESTAMP = "2025-09-14T00:00:00.123456789Z"
BODY = b'{"message":"Hello, World!"}'


def _signature(body: bytes = BODY, timestamp: str = TIMESTAMP) -> str:
    digest = hmac.new(SECRET, MESSAGE_ID.encode() + timestamp.encode() + body, hashlib.sha256)
    return f"sha256={digest.hexdigest()}"


class TestValidSignature:
    def test_valid_signature_accepted(self) -> None:
        verify_signature(MESSAGE_ID, TIMESTAMP, BODY, _signature(), SECRET)

    def test_str_body_matches_bytes_body(self) -> None:
        verify_signature(MESSAGE_ID, TIMESTAMP, BODY.decode(), _signature(), SECRET)

    def test_str_secret_accepted(self) -> None:
        verify_signature(MESSAGE_ID, TIMESTAMP, BODY, _signature(), SECRET.decode())

    def test_uppercase_hex_accepted(self) -> None:
        sig = _signature()
        verify_signature(MESSAGE_ID, TIMESTAMP, BODY, "sha256=" + sig[7:].upper(), SECRET)

    def test_sign_matches_reference_hmac(self) -> None:
        assert sign(MESSAGE_ID, TIMESTAMP, BODY, SECRET) == _signature()

    def test_uses_constant_time_comparison(self) -> None:
        with patch(
            "robochick.eventsub.signature.hmac.compare_digest", return_value=True,
        ) as mock_cmp:
            verify_signature(MESSAGE_ID, TIMESTAMP, BODY, "sha256=00", SECRET)
            mock_cmp.assert_called_once()


class TestTampering:
    def test_tampered_body_rejected(self) -> None:
        tampered = BODY.replace(b"Hello", b"Jello")
        with pytest.raises(SignatureMismatch):
            verify_signature(MESSAGE_ID, TIMESTAMP, tampered, _signature(), SECRET)

    def test_tampered_timestamp_rejected(self) -> None:
        with pytest.raises(SignatureMismatch):
            verify_signature(
                MESSAGE_ID, "2025-09-14T00:00:01.123456789Z", BODY, _signature(), SECRET,
            )

    def test_tampered_message_id_rejected(self) -> None:
        with pytest.raises(SignatureMismatch):
            verify_signature("message-2", TIMESTAMP, BODY, _signature(), SECRET)

    def test_mutated_signature_rejected(self) -> None:
        sig = _signature()
        last = "0" if sig[-1] != "0" else "1"
        with pytest.raises(SignatureMismatch):
            verify_signature(MESSAGE_ID, TIMESTAMP, BODY, sig[:-1] + last, SECRET)

    def test_wrong_secret_rejected(self) -> None:
        with pytest.raises(SignatureMismatch):
            verify_signature(MESSAGE_ID, TIMESTAMP, BODY, _signature(), b"other-secret")

    def test_truncated_signature_rejected(self) -> None:
        with pytest.raises(SignatureMismatch):
            verify_signature(MESSAGE_ID, TIMESTAMP, BODY, _signature()[:-2], SECRET)


class TestMissingHeaders:
    @pytest.mark.parametrize(
        ("field", "header"),
        [
            ("message_id", "Message-Id"),
            ("timestamp", "Message-Timestamp"),
            ("signature_header", "Message-Signature"),
        ],
    )
    @pytest.mark.parametrize("body", [BODY, b"", b"not json"])
    def test_missing_header_rejected(self, field: str, header: str, body: bytes) -> None:
        kwargs: dict[str, str | None] = {
            "message_id": MESSAGE_ID,
            "timestamp": TIMESTAMP,
            "signature_header": _signature(body),
        }
        kwargs[field] = None
        with pytest.raises(MissingHeader) as exc_info:
            verify_signature(
                kwargs["message_id"], kwargs["timestamp"], body,
                kwargs["signature_header"], SECRET,
            )
        assert exc_info.value.missing == [header]

    def test_all_missing_headers_reported(self) -> None:
        with pytest.raises(MissingHeader) as exc_info:
            verify_signature(None, None, BODY, None, SECRET)
        assert len(exc_info.value.missing) == 3


class TestMalformedSignature:
    def test_missing_prefix_rejected(self) -> None:
        with pytest.raises(MalformedSignature):
            verify_signature(MESSAGE_ID, TIMESTAMP, BODY, _signature()[7:], SECRET)

    def test_wrong_algorithm_prefix_rejected(self) -> None:
        with pytest.raises(MalformedSignature):
            verify_signature(
                MESSAGE_ID, TIMESTAMP, BODY, "sha1=" + _signature()[7:], SECRET,
            )

    @pytest.mark.parametrize(
        "hex_part",
        ["not-hex", "abc", "ab cd", "zz" * 32, "é" * 4],
    )
    def test_invalid_hex_rejected(self, hex_part: str) -> None:
        with pytest.raises(MalformedSignature):
            verify_signature(MESSAGE_ID, TIMESTAMP, BODY, "sha256=" + hex_part, SECRET)

    def test_empty_signature_rejected(self) -> None:
        with pytest.raises(MalformedSignature):
            verify_signature(MESSAGE_ID, TIMESTAMP, BODY, "", SECRET)
