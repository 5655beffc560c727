"""
User service — profile CRUD for account owners.

Users are plain profiles (first and last name). Account opening checks
the owner itself, inside the account store's insert session.

All functions take the request-scoped session from get_db(); the router's
dependency commits on success and rolls back on error.
"""

from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bankapi.exceptions import UserHasAccountsError, UserNotFoundError
from bankapi.models.account import Account
from bankapi.models.user import User


logger = structlog.get_logger(__name__)


async def create_user(
    db: AsyncSession,
    first_name: str,
    last_name: str,
) -> User:
    """Insert a new user and return it with its assigned id."""
    now = datetime.now(timezone.utc)
    user = User(
        first_name=first_name,
        last_name=last_name,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    # Flush to get user.id assigned before returning
    await db.flush()
    logger.info("User created", user_id=user.id)
    return user


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.id))
    return list(result.scalars().all())


async def get_user(db: AsyncSession, user_id: int) -> User:
    """
    Get a single user by id.

    Raises:
        UserNotFoundError: If no user has this id.
    """
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise UserNotFoundError(user_id)

    return user


async def update_user(
    db: AsyncSession,
    user_id: int,
    updates: dict,
) -> User:
    """
    Apply a partial update to a user's profile.

    Only keys present in `updates` are changed.
    """
    user = await get_user(db, user_id)

    for field, value in updates.items():
        setattr(user, field, value)

    await db.flush()
    return user


async def delete_user(db: AsyncSession, user_id: int) -> None:
    """
    Delete a user who owns no accounts.

    Raises:
        UserNotFoundError: If no user has this id.
        UserHasAccountsError: If the user still owns at least one account.
    """
    await get_user(db, user_id)

    owned = await db.execute(
        select(Account.id).where(Account.user_id == user_id).limit(1)
    )
    if owned.scalar_one_or_none() is not None:
        raise UserHasAccountsError(user_id)

    try:
        await db.execute(delete(User).where(User.id == user_id))
    except IntegrityError:
        # An account was opened after the check above
        raise UserHasAccountsError(user_id) from None
    logger.info("User deleted", user_id=user_id)
