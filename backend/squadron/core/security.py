"""
Security utilities for API key authentication.

Keys have the form ``<prefix>.<secret>``. The prefix is stored in clear for
lookup; the whole key is stored as a bcrypt hash.
"""
import secrets
import time
from datetime import datetime
from typing import Dict, Optional, Tuple
from uuid import UUID

import bcrypt
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from squadron.core.config import settings
from squadron.core.database import get_db
from squadron.models.api_key import ApiKey
from squadron.models.user import User

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Verified keys: {api_key: (api_key_id, expiry_time)}
_api_key_cache: Dict[str, Tuple[str, float]] = {}
_CACHE_TTL = 300
_CACHE_MAX_SIZE = 10000

PREFIX_BYTES = 6


def invalidate_api_key_cache(api_key_id: Optional[str] = None) -> int:
    """
    Invalidate cached API keys.

    Args:
        api_key_id: If provided, invalidate only entries for this key ID.

    Returns:
        Number of cache entries invalidated.
    """
    global _api_key_cache

    if api_key_id is None:
        count = len(_api_key_cache)
        _api_key_cache = {}
        return count

    keys_to_remove = [
        key for key, (cached_id, _) in _api_key_cache.items()
        if cached_id == api_key_id
    ]
    for key in keys_to_remove:
        del _api_key_cache[key]
    return len(keys_to_remove)


def generate_api_key() -> Tuple[str, str]:
    """
    Generate a new API key.

    Returns:
        Tuple of (full key, prefix)
    """
    prefix = secrets.token_hex(PREFIX_BYTES)
    return f"{prefix}.{secrets.token_urlsafe(32)}", prefix


def hash_api_key(api_key: str, salt: str) -> str:
    combined = f"{api_key}{salt}".encode()
    return bcrypt.hashpw(combined, bcrypt.gensalt()).decode()


def verify_api_key_hash(api_key: str, key_hash: str, salt: str) -> bool:
    combined = f"{api_key}{salt}".encode()
    return bcrypt.checkpw(combined, key_hash.encode())


def _remember(api_key: str, api_key_id: str) -> None:
    if len(_api_key_cache) >= _CACHE_MAX_SIZE:
        oldest = sorted(_api_key_cache.items(), key=lambda x: x[1][1])[:_CACHE_MAX_SIZE // 10]
        for old_key, _ in oldest:
            del _api_key_cache[old_key]
    _api_key_cache[api_key] = (api_key_id, time.time() + _CACHE_TTL)


async def get_api_key_from_db(api_key: str, db: AsyncSession) -> Optional[ApiKey]:
    """
    Validate an API key and return the corresponding active, unexpired ApiKey.

    Keys without a prefix are rejected outright; there is no scan over all keys.
    """
    cached = _api_key_cache.get(api_key)
    if cached:
        cached_id, expiry = cached
        if time.time() < expiry:
            result = await db.execute(
                select(ApiKey).where(ApiKey.id == UUID(cached_id), ApiKey.is_active.is_(True))
            )
            db_key = result.unique().scalar_one_or_none()
            if db_key and not db_key.is_expired:
                return db_key
        del _api_key_cache[api_key]

    prefix, sep, _ = api_key.partition(".")
    if not sep or not prefix:
        return None

    result = await db.execute(
        select(ApiKey).where(ApiKey.prefix == prefix, ApiKey.is_active.is_(True))
    )
    db_key = result.unique().scalar_one_or_none()
    if not db_key or db_key.is_expired:
        return None
    if not verify_api_key_hash(api_key, db_key.key_hash, settings.API_KEY_SALT):
        return None

    _remember(api_key, str(db_key.id))
    db_key.last_used_at = datetime.utcnow()
    await db.commit()
    return db_key


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
    session: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency that authenticates the caller and returns their User.

    Raises:
        HTTPException: 401 if the key is missing, unknown, inactive or expired
    """
    if api_key:
        db_key = await get_api_key_from_db(api_key, session)
        if db_key and db_key.user:
            return db_key.user

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing API key",
        headers={"WWW-Authenticate": "ApiKey"},
    )
