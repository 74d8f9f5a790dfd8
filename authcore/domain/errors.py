class DomainError(Exception):
    """Base class for all domain-level errors."""

    pass


class ValidationError(DomainError):
    """Caller input cannot be used for the requested operation."""

    pass


class InvalidTwoFactorTransition(ValidationError):
    """Tried to move a 2FA configuration in a way that's not allowed."""

    pass


class MalformedOtpCode(ValidationError):
    """Submitted code is blank, or not six digits where a TOTP code is required."""

    pass
