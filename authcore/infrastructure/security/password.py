from __future__ import annotations

import logging
from functools import lru_cache

from authcore.domain.credentials import (
    ARGON2_PREFIX,
    Argon2Credential,
    LegacySha256Credential,
    PlaintextCredential,
    parse_credential,
)
from authcore.domain.entities import VerificationResult
from authcore.infrastructure.security import legacy
from authcore.infrastructure.security.kdf import (
    HashingOptions,
    KdfEngine,
    get_kdf_engine,
)
from authcore.settings import get_settings

logger = logging.getLogger(__name__)


class PasswordHasher:
    """
    Produces `argon2:`-tagged credentials and verifies every stored format.

    CPU-heavy by design: call it from a worker thread, never directly on an
    event loop.
    """

    def __init__(self, engine: KdfEngine, options: HashingOptions | None = None) -> None:
        self.engine = engine
        self.options = options or HashingOptions()

    def hash(self, password: str) -> str:
        return ARGON2_PREFIX + self.engine.hash(password, self.options)

    def needs_rehash(self, stored: str) -> bool:
        """
        True when the stored cost parameters differ from the configured ones.
        Legacy and unreadable credentials always need a rehash.
        """
        if not isinstance(stored, str):
            return True
        credential = parse_credential(stored)
        if not isinstance(credential, Argon2Credential) or credential.parsed is None:
            return True
        return credential.parsed.encoded_params != self.options.params

    def verify(self, password: str, stored: str) -> VerificationResult:
        """Never raises for a bad `stored` value; it simply does not match."""
        if not isinstance(password, str) or not isinstance(stored, str):
            return VerificationResult.invalid()

        credential = parse_credential(stored)
        try:
            if isinstance(credential, Argon2Credential):
                return self._verify_argon2(password, credential)
            return self._verify_legacy(password, credential)
        except (ValueError, TypeError):
            logger.warning("credential verification error", exc_info=True)
            return VerificationResult.invalid()

    def _verify_legacy(
        self, password: str, credential: LegacySha256Credential | PlaintextCredential
    ) -> VerificationResult:
        if isinstance(credential, LegacySha256Credential):
            matched = legacy.verify_sha256(password, credential)
            fmt = "sha256"
        else:
            matched = legacy.verify_plaintext(password, credential)
            fmt = "plaintext"
        if not matched:
            return VerificationResult.invalid()
        logger.info("legacy credential matched, migrating", extra={"format": fmt})
        return self._migrate(password)

    def _verify_argon2(self, password: str, credential: Argon2Credential) -> VerificationResult:
        if credential.parsed is None:
            return VerificationResult.invalid()
        if not self.engine.verify(password, credential.envelope):
            return VerificationResult.invalid()
        if credential.parsed.encoded_params == self.options.params:
            return VerificationResult(is_valid=True)
        logger.info(
            "argon2 cost parameters drifted, rehashing",
            extra={
                "stored": credential.parsed.encoded_params.encode(),
                "configured": self.options.params.encode(),
            },
        )
        return self._migrate(password)

    def _migrate(self, password: str) -> VerificationResult:
        return VerificationResult(
            is_valid=True, needs_rehash=True, migrated_hash=self.hash(password)
        )


@lru_cache(maxsize=1)
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(
        engine=get_kdf_engine(),
        options=HashingOptions.from_settings(get_settings()),
    )


def hash_password(plain: str) -> str:
    """Hash with the process-wide engine and the configured cost parameters."""
    return get_password_hasher().hash(plain)


def verify_password(plain: str, stored: str) -> VerificationResult:
    return get_password_hasher().verify(plain, stored)
