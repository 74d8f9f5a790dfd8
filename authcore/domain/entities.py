from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

MAX_BACKUP_CODES = 10


class TwoFactorState(str, Enum):
    NOT_CONFIGURED = "not_configured"
    PENDING = "pending"
    ACTIVE = "active"


@dataclass(frozen=True)
class TwoFactorConfig:
    """
    Snapshot of a user's 2FA row. The store owns it; the domain only ever
    returns new instances.
    """

    secret: str | None = None
    backup_code_hashes: tuple[str, ...] = ()
    enabled: bool = False
    activated_at: datetime | None = None

    def __post_init__(self):
        # accept any iterable from the store, keep an immutable copy
        object.__setattr__(self, "backup_code_hashes", tuple(self.backup_code_hashes))
        if len(self.backup_code_hashes) > MAX_BACKUP_CODES:
            raise ValueError(f"at most {MAX_BACKUP_CODES} backup codes are allowed")
        if self.enabled and (self.activated_at is None or not self.secret):
            raise ValueError("an enabled config needs a secret and activated_at")

    @property
    def state(self) -> TwoFactorState:
        if self.enabled:
            return TwoFactorState.ACTIVE
        if self.secret:
            return TwoFactorState.PENDING
        return TwoFactorState.NOT_CONFIGURED


@dataclass(frozen=True)
class VerificationResult:
    is_valid: bool
    needs_rehash: bool = False
    migrated_hash: str | None = None

    @classmethod
    def invalid(cls) -> "VerificationResult":
        return cls(is_valid=False)


@dataclass(frozen=True)
class HotpParameters:
    step_seconds: int = 30
    digits: int = 6
    window: int = 1


DEFAULT_HOTP = HotpParameters()


@dataclass(frozen=True)
class TwoFactorEnrollment:
    config: TwoFactorConfig
    secret: str
    provisioning_uri: str
    qr_url: str


@dataclass(frozen=True)
class TwoFactorConfirmation:
    config: TwoFactorConfig
    confirmed: bool
    backup_codes: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TwoFactorDeactivation:
    config: TwoFactorConfig
    disabled: bool
    used_backup_code: bool = False
    # codes left after the one used here; None when TOTP matched
    backup_code_hashes: tuple[str, ...] | None = None


@dataclass(frozen=True)
class SecondFactorResult:
    is_valid: bool
    method: str | None = None  # "totp" | "backup_code"
    backup_code_hashes: tuple[str, ...] | None = None


@dataclass(frozen=True)
class PasswordResetToken:
    """Stored side of a reset link: only the SHA-256 of the raw token is kept."""

    token_hash: str
    expires_at: datetime


@dataclass(frozen=True)
class PasswordReset:
    temporary_password: str
    reset_token: str
    expires_at: datetime
