from __future__ import annotations

import hashlib
import logging
import math
import secrets
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

from passlib.context import CryptContext
from passlib.hash import argon2 as passlib_argon2

from authcore.domain.credentials import Argon2Params, format_envelope, parse_envelope
from authcore.domain.services import secure_compare
from authcore.settings import (
    MEMORY_COST_BOUNDS,
    PARALLELISM_BOUNDS,
    SALT_LENGTH_BOUNDS,
    TIME_COST_BOUNDS,
    Settings,
    get_settings,
    parse_cost,
)

logger = logging.getLogger(__name__)

DIGEST_LENGTH = 32
# passlib refuses secrets above this size
MAX_SECRET_BYTES = 4096

# scrypt fallback shape
SCRYPT_R = 8
SCRYPT_MIN_LOG_N = 10
SCRYPT_MAX_LOG_N = 20
SCRYPT_MAX_P = 16
SCRYPT_MIN_MAXMEM = 32 * 1024 * 1024
# CPython refuses maxmem above INT_MAX
SCRYPT_MAXMEM_CAP = 2**31 - 1


@dataclass(frozen=True)
class HashingOptions:
    memory_cost: int = MEMORY_COST_BOUNDS[0]
    time_cost: int = TIME_COST_BOUNDS[0]
    parallelism: int = PARALLELISM_BOUNDS[0]
    salt_length: int = SALT_LENGTH_BOUNDS[0]

    def __post_init__(self):
        # same clamping as the environment path
        object.__setattr__(self, "memory_cost", parse_cost(self.memory_cost, MEMORY_COST_BOUNDS))
        object.__setattr__(self, "time_cost", parse_cost(self.time_cost, TIME_COST_BOUNDS))
        object.__setattr__(self, "parallelism", parse_cost(self.parallelism, PARALLELISM_BOUNDS))
        object.__setattr__(self, "salt_length", parse_cost(self.salt_length, SALT_LENGTH_BOUNDS))

    @classmethod
    def from_settings(cls, settings: Settings) -> "HashingOptions":
        return cls(
            memory_cost=settings.password_hash_memory_cost,
            time_cost=settings.password_hash_time_cost,
            parallelism=settings.password_hash_parallelism,
            salt_length=settings.password_hash_salt_length,
        )

    @property
    def params(self) -> Argon2Params:
        return Argon2Params(
            memory_cost=self.memory_cost,
            time_cost=self.time_cost,
            parallelism=self.parallelism,
        )


def kdf_secret(password: str) -> bytes:
    """
    Bytes fed to either KDF. Secrets over MAX_SECRET_BYTES are replaced by
    their SHA-256 hex digest so both engines accept any length alike.
    """
    raw = password.encode("utf-8")
    if len(raw) > MAX_SECRET_BYTES:
        return hashlib.sha256(raw).hexdigest().encode("ascii")
    return raw


class KdfEngine(Protocol):
    name: str

    def hash(self, password: str, options: HashingOptions) -> str:
        """Return a `$argon2id$v=19$...` envelope for `password`."""

    def verify(self, password: str, envelope: str) -> bool:
        """True on match; False on mismatch or a malformed envelope."""


class Argon2Engine:
    """Native Argon2id through passlib's argon2 handler (argon2-cffi backend)."""

    name = "argon2"

    def __init__(self) -> None:
        self._contexts: dict[HashingOptions, CryptContext] = {}

    def _context(self, options: HashingOptions) -> CryptContext:
        ctx = self._contexts.get(options)
        if ctx is None:
            ctx = CryptContext(
                schemes=["argon2"],
                argon2__type="id",
                argon2__memory_cost=options.memory_cost,
                argon2__rounds=options.time_cost,
                argon2__parallelism=options.parallelism,
                argon2__salt_size=options.salt_length,
                argon2__digest_size=DIGEST_LENGTH,
            )
            self._contexts[options] = ctx
        return ctx

    def hash(self, password: str, options: HashingOptions) -> str:
        return self._context(options).hash(kdf_secret(password))

    def verify(self, password: str, envelope: str) -> bool:
        # verification reads every parameter from the envelope itself
        try:
            context = self._context(HashingOptions())
            return bool(context.verify(kdf_secret(password), envelope.strip()))
        except (ValueError, TypeError):
            return False


def scrypt_parameters(params: Argon2Params) -> tuple[int, int, int, int]:
    """Map Argon2 costs to scrypt (n, r, p, maxmem)."""
    # round half up, like the envelope's producers historically did
    log_n = math.floor(math.log2(params.memory_cost) + 0.5)
    log_n = min(max(log_n, SCRYPT_MIN_LOG_N), SCRYPT_MAX_LOG_N)
    n = 1 << log_n
    r = SCRYPT_R
    p = min(max(params.parallelism * params.time_cost, 1), SCRYPT_MAX_P)
    maxmem = max(SCRYPT_MIN_MAXMEM, 128 * n * r * p)
    # OpenSSL also counts the B buffer and two spare blocks against maxmem
    maxmem = min(maxmem + 128 * r * (p + 2), SCRYPT_MAXMEM_CAP)
    return n, r, p, maxmem


def scrypt_derive(password: str, salt: bytes, params: Argon2Params, length: int = DIGEST_LENGTH) -> bytes:
    n, r, p, maxmem = scrypt_parameters(params)
    return hashlib.scrypt(
        kdf_secret(password), salt=salt, n=n, r=r, p=p, maxmem=maxmem, dklen=length
    )


class ScryptEngine:
    """
    Fallback KDF when no native Argon2 is available. It writes the same
    `$argon2id$v=19$` envelope, so stored strings parse the same way; the
    digest itself is scrypt, so it only verifies under this engine.
    """

    name = "scrypt"

    def hash(self, password: str, options: HashingOptions) -> str:
        salt = secrets.token_bytes(options.salt_length)
        digest = scrypt_derive(password, salt, options.params)
        return format_envelope(options.params, salt, digest)

    def verify(self, password: str, envelope: str) -> bool:
        parsed = parse_envelope(envelope)
        if parsed is None:
            return False
        computed = scrypt_derive(password, parsed.salt, parsed.params, len(parsed.digest))
        return secure_compare(computed, parsed.digest)


def native_argon2_available() -> bool:
    try:
        return bool(passlib_argon2.has_backend())
    except Exception:
        logger.warning("argon2 backend check failed", exc_info=True)
        return False


def select_kdf_engine(*, force_fallback: bool = False) -> KdfEngine:
    if force_fallback:
        logger.info("kdf engine selected", extra={"engine": "scrypt", "reason": "forced"})
        return ScryptEngine()
    if not native_argon2_available():
        logger.warning(
            "native argon2 unavailable, using scrypt fallback",
            extra={"engine": "scrypt"},
        )
        return ScryptEngine()
    logger.info("kdf engine selected", extra={"engine": "argon2"})
    return Argon2Engine()


@lru_cache(maxsize=1)
def get_kdf_engine() -> KdfEngine:
    """Process-wide engine, chosen once from settings."""
    return select_kdf_engine(force_fallback=get_settings().password_hash_force_fallback)
