from __future__ import annotations

from typing import Protocol, Sequence

from authcore.domain.entities import PasswordResetToken, TwoFactorConfig


class CredentialStorePort(Protocol):
    """
    Persistence for credentials and 2FA config, atomic per row.
    Use cases issue at most one logical read and one logical write per call.
    """

    async def load_credential(self, user_id: str) -> str | None:
        """Return the stored credential string, or None if the user has none."""

    async def save_credential(self, user_id: str, credential: str) -> None:
        """Replace the stored credential."""

    async def load_two_factor_config(self, user_id: str) -> TwoFactorConfig | None:
        """Return the user's 2FA config, or None if never configured."""

    async def save_two_factor_config(self, user_id: str, config: TwoFactorConfig) -> None:
        """Replace the user's 2FA config."""

    async def swap_backup_code_hashes(
        self, user_id: str, expected: Sequence[str], new: Sequence[str]
    ) -> bool:
        """
        Compare-and-swap: write `new` only if the stored list still equals
        `expected`. Return False (and write nothing) if it changed meanwhile.
        """

    async def save_reset_token(self, user_id: str, token: PasswordResetToken) -> None:
        """Store the user's reset token, replacing (and so revoking) any earlier one."""

    async def load_reset_token(self, user_id: str) -> PasswordResetToken | None:
        ...
