#!/usr/bin/env python3
"""
Create a user (if needed) and issue an API key for it.
Usage: python scripts/create_user.py --email ops@example.com --key-name laptop
"""
import argparse
import asyncio
import sys
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import select

from squadron.core.config import settings
from squadron.core.database import async_session_maker
from squadron.core.security import generate_api_key, hash_api_key
from squadron.models.api_key import ApiKey
from squadron.models.user import User


async def create_user_key(
    email: str,
    key_name: str,
    name: Optional[str] = None,
    expires_at: Optional[str] = None,
) -> Tuple[str, str]:
    """
    Create the user if it does not exist, then add a new API key.

    Returns:
        Tuple of (user_id, plaintext_key)
    """
    plaintext_key, prefix = generate_api_key()
    key_hash = hash_api_key(plaintext_key, settings.API_KEY_SALT)

    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if not user:
            user = User(email=email, name=name)
            session.add(user)
            await session.flush()

        api_key = ApiKey(
            user_id=user.id,
            name=key_name,
            prefix=prefix,
            key_hash=key_hash,
            is_active=True,
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
        )
        session.add(api_key)
        await session.commit()

        return str(user.id), plaintext_key


async def main():
    parser = argparse.ArgumentParser(description="Create a user and an API key")
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument("--name", help="Display name for a new user")
    parser.add_argument("--key-name", default="default", help="Name for the API key")
    parser.add_argument("--expires", help="Expiration date (ISO format)")

    args = parser.parse_args()

    try:
        user_id, plaintext_key = await create_user_key(args.email, args.key_name, args.name, args.expires)
    except Exception as e:
        print(f"\nError creating API key: {e}\n", file=sys.stderr)
        sys.exit(1)

    print("\n" + "=" * 80)
    print("API Key Created Successfully!")
    print("=" * 80)
    print(f"User:       {args.email}")
    print(f"User ID:    {user_id}")
    print(f"Key name:   {args.key_name}")
    print(f"Key:        {plaintext_key}")
    print("\nIMPORTANT: Save this key now! It will not be shown again.")
    print("=" * 80 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
