import asyncio
import logging

from authcore.domain.ports.credential_store import CredentialStorePort
from authcore.infrastructure.security.password import PasswordHasher

logger = logging.getLogger(__name__)


async def authenticate_user(
    store: CredentialStorePort,
    hasher: PasswordHasher,
    user_id: str,
    password: str,
) -> bool:
    stored = await store.load_credential(user_id)
    if stored is None:
        return False

    # KDF work stays off the event loop
    result = await asyncio.to_thread(hasher.verify, password, stored)
    if not result.is_valid:
        return False

    if result.needs_rehash and result.migrated_hash:
        try:
            await store.save_credential(user_id, result.migrated_hash)
        except Exception:
            # the login already succeeded; migration is retried next time
            logger.warning(
                "failed to persist migrated credential",
                extra={"user_id": user_id},
                exc_info=True,
            )
    return True
