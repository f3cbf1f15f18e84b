############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# api_keys.py: API key generation, hashing, and verification
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""API key generation and verification.

Keys look like ``vr_<random>``. The first 8 random characters are stored
in clear as a lookup prefix; the full key is stored only as an Argon2 hash
of its SHA-256 digest.
"""

import hashlib
import secrets
from typing import Optional, Tuple

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db import crud
from backend.app.db.models import ApiKey

API_KEY_PREFIX = "vr_"
_PREFIX_CHARS = 8

_hasher = PasswordHasher(
    time_cost=2,
    memory_cost=65536,
    parallelism=1,
)


def key_prefix_for(api_key: str) -> Optional[str]:
    """Lookup prefix of a raw key, or None if the key is malformed."""
    if not api_key.startswith(API_KEY_PREFIX):
        return None
    random_part = api_key[len(API_KEY_PREFIX):]
    if len(random_part) < _PREFIX_CHARS:
        return None
    return f"{API_KEY_PREFIX}{random_part[:_PREFIX_CHARS]}"


def generate_api_key() -> Tuple[str, str, str]:
    """
    Generate a new API key.

    Returns:
        Tuple of (full_key, key_hash, key_prefix). The full key is shown
        once and never stored.
    """
    full_key = f"{API_KEY_PREFIX}{secrets.token_urlsafe(32)}"
    return full_key, hash_api_key(full_key), key_prefix_for(full_key)


def hash_api_key(api_key: str) -> str:
    """Argon2 hash of the key's SHA-256 digest."""
    normalized = hashlib.sha256(api_key.encode()).hexdigest()
    return _hasher.hash(normalized)


def _verify_key_hash(api_key: str, key_hash: str) -> bool:
    normalized = hashlib.sha256(api_key.encode()).hexdigest()
    try:
        return _hasher.verify(key_hash, normalized)
    except (VerificationError, InvalidHashError):
        return False


async def verify_api_key(db: AsyncSession, api_key: str) -> Optional[ApiKey]:
    """
    Return the active ApiKey matching ``api_key``, or None.

    Looks the key up by prefix first, then checks the full hash.
    """
    key_prefix = key_prefix_for(api_key)
    if key_prefix is None:
        return None

    db_key = await crud.get_api_key_by_prefix(db, key_prefix)
    if db_key is None:
        return None

    if _verify_key_hash(api_key, db_key.key_hash):
        return db_key
    return None
