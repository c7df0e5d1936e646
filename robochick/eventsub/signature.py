"""EventSub message signature verification.

Twitch signs every callback with HMAC-SHA256 over the concatenation of the
message id, message timestamp and raw body, keyed by the subscription secret.
The result is sent as ``sha256=<hex>`` in the message signature header.
"""

from __future__ import annotations

import binascii
import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


class SignatureError(Exception):
    """Base class for callback authentication failures."""


class MissingHeader(SignatureError):
    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing EventSub headers: {', '.join(missing)}")


class MalformedSignature(SignatureError):
    pass


class SignatureMismatch(SignatureError):
    def __init__(self) -> None:
        super().__init__("Signature verification failed")


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode() if isinstance(value, str) else value


def _digest(message_id: str, timestamp: str, body: str | bytes, secret: bytes) -> bytes:
    plaintext = message_id.encode() + timestamp.encode() + _as_bytes(body)
    return hmac.new(secret, plaintext, hashlib.sha256).digest()


def sign(message_id: str, timestamp: str, body: str | bytes, secret: str | bytes) -> str:
    """Build the signature header value Twitch would send for this message."""
    digest = _digest(message_id, timestamp, body, _as_bytes(secret))
    return SIGNATURE_PREFIX + digest.hex()


def verify_signature(
    message_id: str | None,
    timestamp: str | None,
    body: str | bytes,
    signature_header: str | None,
    secret: str | bytes,
) -> None:
    """Raise a SignatureError unless the callback carries a valid signature."""
    if message_id is None or timestamp is None or signature_header is None:
        raise MissingHeader([
            name for name, value in (
                ("Message-Id", message_id),
                ("Message-Timestamp", timestamp),
                ("Message-Signature", signature_header),
            ) if value is None
        ])

    if not signature_header.startswith(SIGNATURE_PREFIX):
        raise MalformedSignature(f"Signature header lacks {SIGNATURE_PREFIX!r} prefix")

    try:
        provided = binascii.unhexlify(signature_header[len(SIGNATURE_PREFIX):])
    except (binascii.Error, ValueError) as exc:
        raise MalformedSignature("Signature is not valid hex") from exc

    expected = _digest(message_id, timestamp, body, _as_bytes(secret))
    if not hmac.compare_digest(expected, provided):
        raise SignatureMismatch()
