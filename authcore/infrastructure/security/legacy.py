"""
Checks for credential formats that predate Argon2.

Both formats are accepted only so that they can be replaced: a successful
match always asks for a rehash.
"""
from __future__ import annotations

from authcore.domain.credentials import LegacySha256Credential, PlaintextCredential
from authcore.domain.services import secure_compare, sha256_hex


def verify_sha256(password: str, credential: LegacySha256Credential) -> bool:
    # digest = SHA256(salt + ":" + password), stored as hex
    expected = sha256_hex(f"{credential.salt}:{password}")
    return secure_compare(expected, credential.hex_digest.strip().lower())


def verify_plaintext(password: str, credential: PlaintextCredential) -> bool:
    if not credential.value:
        # an empty column means "no password", never "empty password"
        return False
    return secure_compare(password, credential.value)
