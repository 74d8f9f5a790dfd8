"""
Stored credential formats.

A stored credential is a single string whose prefix alone decides how it is
read:

    argon2:$argon2id$v=19$m=<KiB>,t=<iterations>,p=<lanes>$<salt b64>$<digest b64>
    sha256:<salt>:<hex digest>
    <anything else>        legacy plaintext

`parse_credential` turns the string into one of three value types so callers
dispatch on type instead of re-checking prefixes.
"""
from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Union

from authcore.settings import (
    MEMORY_COST_BOUNDS,
    PARALLELISM_BOUNDS,
    TIME_COST_BOUNDS,
    clamp,
)

ARGON2_PREFIX = "argon2:"
SHA256_PREFIX = "sha256:"
ENVELOPE_PREFIX = "$argon2id$"
ARGON2_VERSION = 19


@dataclass(frozen=True)
class Argon2Params:
    memory_cost: int
    time_cost: int
    parallelism: int

    def encode(self) -> str:
        return f"m={self.memory_cost},t={self.time_cost},p={self.parallelism}"


@dataclass(frozen=True)
class Argon2Envelope:
    params: Argon2Params  # clamped, what the scrypt engine derives with
    salt: bytes
    digest: bytes
    encoded_params: Argon2Params  # as written, what native argon2 recomputes with


@dataclass(frozen=True)
class Argon2Credential:
    envelope: str
    parsed: Argon2Envelope | None  # None when the envelope is corrupted


@dataclass(frozen=True)
class LegacySha256Credential:
    salt: str
    hex_digest: str


@dataclass(frozen=True)
class PlaintextCredential:
    value: str


StoredCredential = Union[Argon2Credential, LegacySha256Credential, PlaintextCredential]


def b64encode(data: bytes) -> str:
    # PHC strings drop the padding
    return base64.b64encode(data).decode("ascii").rstrip("=")


def b64decode(value: str) -> bytes:
    stripped = value.rstrip("=")
    padding = "=" * (-len(stripped) % 4)
    return base64.b64decode(stripped + padding, validate=True)


def format_envelope(params: Argon2Params, salt: bytes, digest: bytes) -> str:
    return (
        f"{ENVELOPE_PREFIX}v={ARGON2_VERSION}${params.encode()}"
        f"${b64encode(salt)}${b64encode(digest)}"
    )


def _parse_params(segment: str) -> Argon2Params | None:
    values: dict[str, int] = {}
    for pair in segment.split(","):
        key, sep, raw = pair.partition("=")
        if not key or not sep or not raw:
            return None
        try:
            value = int(raw, 10)
        except ValueError:
            return None
        if key in ("m", "t", "p"):
            values[key] = value

    if not {"m", "t", "p"} <= values.keys():
        return None
    return Argon2Params(memory_cost=values["m"], time_cost=values["t"], parallelism=values["p"])


def parse_envelope(envelope: str) -> Argon2Envelope | None:
    """Parse a `$argon2id$...` string. Returns None for anything malformed."""
    trimmed = envelope.strip()
    if not trimmed.startswith(ENVELOPE_PREFIX):
        return None

    parts = trimmed.split("$")
    if len(parts) != 6:
        return None
    _, _, version_part, params_part, salt_part, digest_part = parts

    if not version_part.startswith("v="):
        return None
    try:
        version = int(version_part[2:], 10)
    except ValueError:
        return None
    if version != ARGON2_VERSION:
        return None

    encoded = _parse_params(params_part)
    if encoded is None:
        return None
    params = Argon2Params(
        memory_cost=clamp(encoded.memory_cost, MEMORY_COST_BOUNDS[1], MEMORY_COST_BOUNDS[2]),
        time_cost=clamp(encoded.time_cost, TIME_COST_BOUNDS[1], TIME_COST_BOUNDS[2]),
        parallelism=clamp(encoded.parallelism, PARALLELISM_BOUNDS[1], PARALLELISM_BOUNDS[2]),
    )

    try:
        salt = b64decode(salt_part)
        digest = b64decode(digest_part)
    except (binascii.Error, ValueError):
        return None
    if not salt or not digest:
        return None

    return Argon2Envelope(params=params, salt=salt, digest=digest, encoded_params=encoded)


def parse_credential(stored: str) -> StoredCredential:
    if stored.startswith(ARGON2_PREFIX):
        envelope = stored[len(ARGON2_PREFIX):]
        return Argon2Credential(envelope=envelope, parsed=parse_envelope(envelope))

    if stored.startswith(SHA256_PREFIX):
        salt, sep, hex_digest = stored[len(SHA256_PREFIX):].rpartition(":")
        if sep:
            return LegacySha256Credential(salt=salt, hex_digest=hex_digest)

    return PlaintextCredential(value=stored)
