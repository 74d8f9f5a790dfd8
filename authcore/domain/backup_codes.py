from __future__ import annotations

import hashlib
import re
import secrets
from typing import Iterable

from authcore.domain.entities import MAX_BACKUP_CODES
from authcore.domain.services import secure_compare

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def normalize(code: str) -> str:
    return _NON_ALNUM.sub("", code).upper()


def generate(count: int = MAX_BACKUP_CODES) -> list[str]:
    """`count` distinct codes, each 5 random bytes as 10 uppercase hex chars."""
    codes: list[str] = []
    seen: set[str] = set()
    while len(codes) < count:
        code = secrets.token_hex(5).upper()
        if code in seen:
            continue
        seen.add(code)
        codes.append(code)
    return codes


def hash_code(code: str) -> str:
    return hashlib.sha256(normalize(code).encode("utf-8")).hexdigest()


def hash_codes(codes: Iterable[str]) -> list[str]:
    return [hash_code(c) for c in codes]


def consume(submitted_code: str, stored_hashes: Iterable[str]) -> list[str] | None:
    """
    Single-use check. Returns the hash list without the matching entry, or
    None when nothing matches. Nothing is mutated: the caller must write the
    returned list back with a compare-and-swap on the original list, otherwise
    two concurrent submissions of the same code can both succeed.
    """
    hashes = list(stored_hashes)
    if not isinstance(submitted_code, str) or not normalize(submitted_code):
        return None

    submitted_hash = hash_code(submitted_code)
    match_index = None
    for index, stored in enumerate(hashes):
        if secure_compare(submitted_hash, stored.lower()) and match_index is None:
            match_index = index
    if match_index is None:
        return None
    return hashes[:match_index] + hashes[match_index + 1:]
