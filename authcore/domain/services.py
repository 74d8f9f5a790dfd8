# authcore/domain/services.py
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets
import uuid

TEMPORARY_PASSWORD_CHARSET = (
    "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789@#$%"
)


def secure_compare(a: str | bytes, b: str | bytes) -> bool:
    """
    Constant-time comparison for secrets.
    Accepts str or bytes; mixed or non-ASCII str input is compared as UTF-8.
    """
    try:
        # hmac.compare_digest supports str if types match and both are ASCII
        return hmac.compare_digest(a, b)
    except TypeError:
        a_bytes = a.encode("utf-8") if isinstance(a, str) else a
        b_bytes = b.encode("utf-8") if isinstance(b, str) else b
        return hmac.compare_digest(a_bytes, b_bytes)


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def base32_encode(data: bytes) -> str:
    """RFC 4648 Base32, uppercase alphabet A-Z2-7, padding stripped."""
    return base64.b32encode(data).decode("ascii").rstrip("=")


def base32_decode(value: str) -> bytes:
    """
    Decode Base32 produced by authenticator tooling: case-insensitive,
    whitespace and padding ignored. Raises ValueError on bad input.
    """
    cleaned = "".join(value.split()).rstrip("=").upper()
    padding = "=" * (-len(cleaned) % 8)
    try:
        return base64.b32decode(cleaned + padding)
    except binascii.Error as e:
        raise ValueError(f"invalid base32: {e}") from e


def generate_temporary_password(length: int = 12) -> str:
    """Random password handed out on reset; the user must change it on login."""
    return "".join(secrets.choice(TEMPORARY_PASSWORD_CHARSET) for _ in range(length))


def make_reset_token() -> tuple[str, str]:
    """
    Return (raw_token, token_hash). Only the hash is stored; the raw token
    travels in the reset link.
    """
    raw_token = str(uuid.uuid4())
    return raw_token, sha256_hex(raw_token)


def verify_reset_token(raw_token: str, token_hash: str) -> bool:
    return secure_compare(sha256_hex(raw_token), token_hash.lower())
