"""
Tests for API key generation and verification.

Run with: pytest backend/tests/test_security.py -v
"""
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from squadron.core.security import (
    generate_api_key,
    get_api_key_from_db,
    hash_api_key,
    invalidate_api_key_cache,
    verify_api_key_hash,
)
from squadron.models.api_key import ApiKey


@pytest.fixture(autouse=True)
def clear_cache():
    invalidate_api_key_cache()
    yield
    invalidate_api_key_cache()


def _db_returning(api_key):
    db = AsyncMock()
    result = MagicMock()
    result.unique.return_value.scalar_one_or_none.return_value = api_key
    db.execute.return_value = result
    return db


def test_generated_key_has_prefix():
    key, prefix = generate_api_key()

    assert key.startswith(prefix + ".")
    assert len(prefix) == 12


def test_hash_roundtrip():
    key, _ = generate_api_key()
    key_hash = hash_api_key(key, "salt")

    assert verify_api_key_hash(key, key_hash, "salt")
    assert not verify_api_key_hash(key, key_hash, "other-salt")


@pytest.mark.asyncio
async def test_key_without_prefix_rejected():
    db = _db_returning(None)

    assert await get_api_key_from_db("no-dot-here", db) is None
    db.execute.assert_not_called()


@pytest.mark.asyncio
async def test_valid_key_accepted_and_touched():
    from squadron.core.config import settings

    key, prefix = generate_api_key()
    stored = ApiKey(prefix=prefix, key_hash=hash_api_key(key, settings.API_KEY_SALT), is_active=True)
    db = _db_returning(stored)

    assert await get_api_key_from_db(key, db) is stored
    assert stored.last_used_at is not None
    db.commit.assert_awaited()


@pytest.mark.asyncio
async def test_expired_key_rejected():
    from squadron.core.config import settings

    key, prefix = generate_api_key()
    stored = ApiKey(
        prefix=prefix,
        key_hash=hash_api_key(key, settings.API_KEY_SALT),
        is_active=True,
        expires_at=datetime.utcnow() - timedelta(days=1),
    )

    assert await get_api_key_from_db(key, _db_returning(stored)) is None


@pytest.mark.asyncio
async def test_wrong_secret_rejected():
    from squadron.core.config import settings

    key, prefix = generate_api_key()
    stored = ApiKey(prefix=prefix, key_hash=hash_api_key(key, settings.API_KEY_SALT), is_active=True)

    assert await get_api_key_from_db(f"{prefix}.wrong", _db_returning(stored)) is None
