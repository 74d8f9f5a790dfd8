import asyncio
from datetime import datetime, timedelta, timezone

import authcore.domain.services as domain_services
from authcore.domain.entities import PasswordReset, PasswordResetToken
from authcore.domain.ports.credential_store import CredentialStorePort
from authcore.infrastructure.security.password import PasswordHasher

RESET_TOKEN_TTL = timedelta(hours=1)


def _utc(now: datetime | None) -> datetime:
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


async def set_password(
    store: CredentialStorePort,
    hasher: PasswordHasher,
    user_id: str,
    password: str,
) -> None:
    hashed = await asyncio.to_thread(hasher.hash, password)
    await store.save_credential(user_id, hashed)


async def reset_password(
    store: CredentialStorePort,
    hasher: PasswordHasher,
    user_id: str,
    now: datetime | None = None,
) -> PasswordReset:
    """
    Store a fresh temporary password plus a reset token hash. The returned
    temporary password and raw token are for delivery to the user only.
    """
    temporary = domain_services.generate_temporary_password()
    raw_token, token_hash = domain_services.make_reset_token()
    expires_at = _utc(now) + RESET_TOKEN_TTL

    await set_password(store, hasher, user_id, temporary)
    await store.save_reset_token(
        user_id, PasswordResetToken(token_hash=token_hash, expires_at=expires_at)
    )
    return PasswordReset(
        temporary_password=temporary, reset_token=raw_token, expires_at=expires_at
    )


async def check_reset_token(
    store: CredentialStorePort,
    user_id: str,
    raw_token: str,
    now: datetime | None = None,
) -> bool:
    stored = await store.load_reset_token(user_id)
    if stored is None or not isinstance(raw_token, str):
        return False
    if _utc(now) >= stored.expires_at:
        return False
    return domain_services.verify_reset_token(raw_token, stored.token_hash)
