"""
HOTP (RFC 4226) and TOTP (RFC 6238) with HMAC-SHA1, six digits, 30 s steps.

Verification is stateless: there is no replay tracking here, callers that need
it keep the last accepted counter themselves.
"""
from __future__ import annotations

import hashlib
import hmac
import re
import struct
import time
from datetime import datetime, timezone

from authcore.domain.entities import DEFAULT_HOTP, HotpParameters
from authcore.domain.services import base32_decode, secure_compare

_CODE_RE = re.compile(r"[0-9]{6}")


def normalize_code(code: str) -> str | None:
    """Strip whitespace; return the code if it is exactly six digits, else None."""
    if not isinstance(code, str):
        return None
    cleaned = "".join(code.split())
    if not _CODE_RE.fullmatch(cleaned):
        return None
    return cleaned


def to_epoch_seconds(now: datetime | float | int | None) -> float:
    if now is None:
        return time.time()
    if isinstance(now, datetime):
        # naive datetimes are UTC, never host-local
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.timestamp()
    return float(now)


def hotp(key: bytes, counter: int, *, params: HotpParameters = DEFAULT_HOTP) -> str:
    digest = hmac.new(key, struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[19] & 0x0F
    binary = (
        (digest[offset] & 0x7F) << 24
        | digest[offset + 1] << 16
        | digest[offset + 2] << 8
        | digest[offset + 3]
    )
    return str(binary % 10**params.digits).zfill(params.digits)


def time_counter(now_seconds: float, *, params: HotpParameters = DEFAULT_HOTP) -> int:
    return int(now_seconds // params.step_seconds)


def totp(
    secret: str,
    now: datetime | float | int | None = None,
    *,
    params: HotpParameters = DEFAULT_HOTP,
) -> str:
    """Current code for a Base32 secret. Raises ValueError on a bad secret."""
    key = base32_decode(secret)
    return hotp(key, time_counter(to_epoch_seconds(now), params=params), params=params)


def verify_totp(
    secret: str,
    code: str,
    now: datetime | float | int | None = None,
    *,
    params: HotpParameters = DEFAULT_HOTP,
) -> bool:
    """
    Accept `code` if it matches any step in [-window, +window] around `now`.

    Malformed codes are rejected before any HMAC is computed; a secret that
    does not decode is a plain mismatch.
    """
    candidate = normalize_code(code)
    if candidate is None or not secret:
        return False
    try:
        key = base32_decode(secret)
    except ValueError:
        return False
    if not key:
        return False

    # one clock sample for every window
    counter = time_counter(to_epoch_seconds(now), params=params)
    matched = False
    for drift in range(-params.window, params.window + 1):
        step = counter + drift
        if step < 0:
            continue
        if secure_compare(hotp(key, step, params=params), candidate):
            matched = True
    return matched
