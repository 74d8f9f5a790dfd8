from __future__ import annotations

import logging
from datetime import datetime

from authcore.domain.entities import (
    SecondFactorResult,
    TwoFactorConfirmation,
    TwoFactorDeactivation,
    TwoFactorEnrollment,
)
from authcore.domain.ports.credential_store import CredentialStorePort
from authcore.domain.two_factor import TwoFactorManager

logger = logging.getLogger(__name__)


async def start_two_factor(
    store: CredentialStorePort,
    manager: TwoFactorManager,
    user_id: str,
    account: str,
) -> TwoFactorEnrollment:
    """
    Begin (or restart) enrollment. Restarting replaces an active secret, so
    callers must require a freshly authenticated session first.
    """
    current = await store.load_two_factor_config(user_id)
    enrollment = manager.initiate(account, current)
    await store.save_two_factor_config(user_id, enrollment.config)
    return enrollment


async def confirm_two_factor(
    store: CredentialStorePort,
    manager: TwoFactorManager,
    user_id: str,
    code: str,
    now: datetime | float | None = None,
) -> list[str] | None:
    """Return the new backup codes on success, None if the code was wrong."""
    current = await store.load_two_factor_config(user_id)
    confirmation: TwoFactorConfirmation = manager.confirm(current, code, now)
    if not confirmation.confirmed:
        return None
    await store.save_two_factor_config(user_id, confirmation.config)
    return confirmation.backup_codes


async def disable_two_factor(
    store: CredentialStorePort,
    manager: TwoFactorManager,
    user_id: str,
    code: str,
    now: datetime | float | None = None,
) -> bool:
    current = await store.load_two_factor_config(user_id)
    deactivation: TwoFactorDeactivation = manager.disable(current, code, now)
    if not deactivation.disabled:
        return False

    if deactivation.backup_code_hashes is not None and current is not None:
        # the code is spent only if the list is still the one read above
        claimed = await store.swap_backup_code_hashes(
            user_id, current.backup_code_hashes, deactivation.backup_code_hashes
        )
        if not claimed:
            logger.info("backup code lost a concurrent consume", extra={"user_id": user_id})
            return False
    await store.save_two_factor_config(user_id, deactivation.config)
    return True


async def verify_second_factor(
    store: CredentialStorePort,
    manager: TwoFactorManager,
    user_id: str,
    code: str,
    now: datetime | float | None = None,
) -> SecondFactorResult:
    current = await store.load_two_factor_config(user_id)
    result = manager.verify_second_factor(current, code, now)
    if result.backup_code_hashes is None or current is None:
        return result

    # single use only holds if the write is conditional on the list we read
    swapped = await store.swap_backup_code_hashes(
        user_id, current.backup_code_hashes, result.backup_code_hashes
    )
    if not swapped:
        logger.info("backup code lost a concurrent consume", extra={"user_id": user_id})
        return SecondFactorResult(is_valid=False)
    return result
