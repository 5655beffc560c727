"""
Secret service — manages the allow-list of pre-shared API keys.

Flow:
  1. An admin calls create_secret(); a random key is generated, its Argon2
     hash is stored, and the plaintext is returned exactly once.
  2. Every protected request calls is_valid_key() with the presented key,
     which is checked against each stored hash.

Plaintext keys are never stored or logged.
"""

import asyncio

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bankapi.models.secret import Secret
from bankapi.security import generate_api_key, hash_api_key, verify_api_key


logger = structlog.get_logger(__name__)


async def create_secret(db: AsyncSession) -> tuple[Secret, str]:
    """
    Mint a new API key.

    Returns:
        Tuple of (stored Secret row, plaintext key).
    """
    plain_key = generate_api_key()
    secret = Secret(key_hash=hash_api_key(plain_key))
    db.add(secret)
    await db.flush()
    logger.info("API key created", secret_id=secret.id)
    return secret, plain_key


async def list_secrets(db: AsyncSession) -> list[Secret]:
    result = await db.execute(select(Secret).order_by(Secret.id))
    return list(result.scalars().all())


async def is_valid_key(
    session_factory: async_sessionmaker[AsyncSession],
    plain_key: str,
) -> bool:
    """
    Return True if `plain_key` matches any stored secret.

    The hashes are loaded in a short session of its own, which is closed
    before verification starts. Argon2 verification is CPU-bound and runs
    in a worker thread.
    """
    if not plain_key:
        return False

    async with session_factory() as db:
        result = await db.execute(select(Secret.key_hash))
        key_hashes = list(result.scalars())

    return await asyncio.to_thread(_matches_any, plain_key, key_hashes)


def _matches_any(plain_key: str, key_hashes: list[str]) -> bool:
    return any(verify_api_key(plain_key, key_hash) for key_hash in key_hashes)
