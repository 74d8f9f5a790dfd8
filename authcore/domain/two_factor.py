"""
TOTP secret provisioning and the 2FA lifecycle.

    NotConfigured --initiate--> Pending --confirm(code)--> Active
    Pending/Active --initiate--> Pending          (fresh secret, codes dropped)
    Active --disable(code or backup code)--> NotConfigured

Every transition takes a `TwoFactorConfig` and hands back a new one; the
caller persists it. Re-initiating from Active throws the old secret away, so
the caller must only allow it behind a freshly authenticated session.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import replace
from datetime import datetime, timezone
from urllib.parse import quote, urlencode

from authcore.domain import backup_codes
from authcore.domain.entities import (
    SecondFactorResult,
    TwoFactorConfig,
    TwoFactorConfirmation,
    TwoFactorDeactivation,
    TwoFactorEnrollment,
    TwoFactorState,
)
from authcore.domain.errors import InvalidTwoFactorTransition, MalformedOtpCode
from authcore.domain.services import base32_encode
from authcore.domain.totp import normalize_code, to_epoch_seconds, verify_totp

logger = logging.getLogger(__name__)

QR_IMAGE_SIZE = 240
QR_MARGIN = 2


def generate_secret(byte_length: int = 20) -> str:
    """Random Base32 secret; 20 bytes gives 32 characters."""
    return base32_encode(secrets.token_bytes(byte_length))


def build_provisioning_uri(issuer: str, account: str, secret: str) -> str:
    label = quote(f"{issuer}:{account}", safe="")
    return f"otpauth://totp/{label}?secret={secret}&issuer={quote(issuer, safe='')}"


def build_qr_url(uri: str, base_url: str = "https://quickchart.io/qr") -> str:
    query = urlencode({"text": uri, "size": QR_IMAGE_SIZE, "margin": QR_MARGIN})
    return f"{base_url}?{query}"


def _as_datetime(now: datetime | float | int | None) -> datetime:
    if isinstance(now, datetime):
        return now if now.tzinfo else now.replace(tzinfo=timezone.utc)
    return datetime.fromtimestamp(to_epoch_seconds(now), tz=timezone.utc)


class TwoFactorManager:
    def __init__(self, issuer: str, qr_base_url: str = "https://quickchart.io/qr") -> None:
        self.issuer = issuer
        self.qr_base_url = qr_base_url

    @classmethod
    def from_settings(cls, settings) -> "TwoFactorManager":
        return cls(
            issuer=settings.two_factor_issuer,
            qr_base_url=settings.two_factor_qr_base_url,
        )

    def initiate(
        self, account: str, config: TwoFactorConfig | None = None
    ) -> TwoFactorEnrollment:
        previous = (config or TwoFactorConfig()).state
        secret = generate_secret()
        uri = build_provisioning_uri(self.issuer, account, secret)
        logger.info("2fa initiated", extra={"previous_state": previous.value})
        return TwoFactorEnrollment(
            config=TwoFactorConfig(secret=secret),
            secret=secret,
            provisioning_uri=uri,
            qr_url=build_qr_url(uri, self.qr_base_url),
        )

    def confirm(
        self,
        config: TwoFactorConfig | None,
        code: str,
        now: datetime | float | int | None = None,
    ) -> TwoFactorConfirmation:
        config = config or TwoFactorConfig()
        if config.state is not TwoFactorState.PENDING:
            raise InvalidTwoFactorTransition(
                f"cannot confirm 2fa from state {config.state.value}"
            )
        if normalize_code(code) is None:
            raise MalformedOtpCode("code must be 6 digits")

        moment = _as_datetime(now)
        if not verify_totp(config.secret, code, moment):
            return TwoFactorConfirmation(config=config, confirmed=False)

        codes = backup_codes.generate()
        activated = replace(
            config,
            enabled=True,
            activated_at=moment,
            backup_code_hashes=tuple(backup_codes.hash_codes(codes)),
        )
        logger.info("2fa activated")
        return TwoFactorConfirmation(config=activated, confirmed=True, backup_codes=codes)

    def disable(
        self,
        config: TwoFactorConfig | None,
        code: str,
        now: datetime | float | int | None = None,
    ) -> TwoFactorDeactivation:
        config = config or TwoFactorConfig()
        if config.state is not TwoFactorState.ACTIVE:
            raise InvalidTwoFactorTransition(
                f"cannot disable 2fa from state {config.state.value}"
            )
        if not isinstance(code, str) or not code.strip():
            raise MalformedOtpCode("code is required")

        # TOTP first, then backup codes
        remaining = None
        if not verify_totp(config.secret, code, now):
            remaining = backup_codes.consume(code, config.backup_code_hashes)
            if remaining is None:
                return TwoFactorDeactivation(config=config, disabled=False)

        used_backup = remaining is not None
        logger.info("2fa disabled", extra={"used_backup_code": used_backup})
        return TwoFactorDeactivation(
            config=TwoFactorConfig(),
            disabled=True,
            used_backup_code=used_backup,
            backup_code_hashes=tuple(remaining) if used_backup else None,
        )

    def verify_second_factor(
        self,
        config: TwoFactorConfig | None,
        code: str,
        now: datetime | float | int | None = None,
    ) -> SecondFactorResult:
        config = config or TwoFactorConfig()
        if config.state is not TwoFactorState.ACTIVE:
            raise InvalidTwoFactorTransition(
                f"2fa is not active (state {config.state.value})"
            )
        if not isinstance(code, str) or not code.strip():
            raise MalformedOtpCode("code is required")

        if verify_totp(config.secret, code, now):
            return SecondFactorResult(is_valid=True, method="totp")

        remaining = backup_codes.consume(code, config.backup_code_hashes)
        if remaining is None:
            return SecondFactorResult(is_valid=False)
        logger.info("backup code consumed", extra={"remaining": len(remaining)})
        return SecondFactorResult(
            is_valid=True, method="backup_code", backup_code_hashes=tuple(remaining)
        )
