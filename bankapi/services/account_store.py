"""
Account store — durable persistence of Account records.

The store is a deliberately dumb persistence layer:
  - It reads and writes account rows by id or account number.
  - It does NOT enforce the non-negative balance invariant (that is the
    balance engine's job; the DB CHECK constraint is only a backstop).
  - It does NOT serialize read-then-write sequences. Callers that need a
    consistent read-modify-write must hold the account lock
    (services/locks.py) across both calls.

Session scoping:
  Every method opens its own short-lived session from the factory it was
  built with and commits before returning. A write is therefore durable by
  the time set_balance()/set_balances() return, which is what lets the
  engine release the account lock right after.

Error translation:
  Any SQLAlchemyError raised by the backend is re-raised as
  StorageFailureError (chained to the original), except unique-constraint
  violations on create(), which become DuplicateAccountNumberError.
"""

from contextlib import contextmanager
from datetime import datetime

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bankapi.exceptions import (
    AccountNotFoundError,
    DuplicateAccountNumberError,
    StorageFailureError,
    UserNotFoundError,
)
from bankapi.models.account import Account
from bankapi.models.user import User


logger = structlog.get_logger(__name__)


@contextmanager
def _storage_errors(operation: str):
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Storage operation failed", operation=operation, error=str(exc))
        raise StorageFailureError(operation) from exc


class AccountStore:
    """Read/write access to the accounts table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_by_id(self, account_id: int) -> Account:
        """
        Fetch an account by its numeric id.

        Raises:
            AccountNotFoundError: If no account has this id.
            StorageFailureError: If the backend fails.
        """
        with _storage_errors("get_by_id"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Account).where(Account.id == account_id)
                )
                account = result.scalar_one_or_none()

        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def get_by_account_number(self, account_number: str) -> Account:
        """
        Fetch an account by its account number.

        Raises:
            AccountNotFoundError: If no account has this number.
            StorageFailureError: If the backend fails.
        """
        with _storage_errors("get_by_account_number"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Account).where(Account.account_number == account_number)
                )
                account = result.scalar_one_or_none()

        if account is None:
            raise AccountNotFoundError(account_number)
        return account

    async def create(
        self,
        user_id: int,
        account_number: str,
        display_name: str,
        created_at: datetime,
    ) -> Account:
        """
        Insert a new account with a zero balance.

        Both timestamps are set to `created_at`. The owner check and the
        insert share one session; the foreign key catches an owner deleted
        in between.

        Raises:
            UserNotFoundError: If the owning user doesn't exist.
            DuplicateAccountNumberError: If the account number is taken.
            StorageFailureError: If the backend fails.
        """
        with _storage_errors("create"):
            async with self._session_factory() as session:
                if await session.get(User, user_id) is None:
                    raise UserNotFoundError(user_id)

                existing = await session.execute(
                    select(Account.id).where(Account.account_number == account_number)
                )
                if existing.scalar_one_or_none() is not None:
                    raise DuplicateAccountNumberError(account_number)

                account = Account(
                    user_id=user_id,
                    account_number=account_number,
                    display_name=display_name,
                    balance=0,
                    created_at=created_at,
                    updated_at=created_at,
                )
                session.add(account)
                try:
                    await session.commit()
                except IntegrityError as exc:
                    # Lost a race with a concurrent create or user deletion
                    await session.rollback()
                    if "foreign key" in str(exc.orig).lower():
                        raise UserNotFoundError(user_id) from None
                    raise DuplicateAccountNumberError(account_number) from None

        return account

    async def set_balance(
        self,
        account_id: int,
        new_balance: int,
        updated_at: datetime,
    ) -> None:
        """
        Unconditionally overwrite one account's balance.

        Raises:
            AccountNotFoundError: If the account no longer exists.
            StorageFailureError: If the backend fails.
        """
        await self.set_balances({account_id: new_balance}, updated_at)

    async def set_balances(
        self,
        balances: dict[int, int],
        updated_at: datetime,
    ) -> None:
        """
        Overwrite several balances in ONE database transaction.

        Either every row in `balances` is updated and committed, or none is.
        If any account is missing the whole transaction is rolled back.

        Args:
            balances: Mapping of account id to its new balance.
            updated_at: Timestamp written to every updated row.

        Raises:
            AccountNotFoundError: If any of the accounts no longer exists.
            StorageFailureError: If the backend fails.
        """
        with _storage_errors("set_balances"):
            async with self._session_factory() as session:
                async with session.begin():
                    for account_id, new_balance in balances.items():
                        result = await session.execute(
                            update(Account)
                            .where(Account.id == account_id)
                            .values(balance=new_balance, updated_at=updated_at)
                        )
                        if result.rowcount == 0:
                            raise AccountNotFoundError(account_id)

    async def list_for_user(self, user_id: int) -> list[Account]:
        with _storage_errors("list_for_user"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Account)
                    .where(Account.user_id == user_id)
                    .order_by(Account.id)
                )
                return list(result.scalars().all())

    async def list_all(self) -> list[Account]:
        with _storage_errors("list_all"):
            async with self._session_factory() as session:
                result = await session.execute(select(Account).order_by(Account.id))
                return list(result.scalars().all())

    async def total_balance(self) -> int:
        """Sum of all balances. Used for reconciliation checks."""
        with _storage_errors("total_balance"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(func.coalesce(func.sum(Account.balance), 0))
                )
                return result.scalar()

    async def delete(self, account_id: int) -> None:
        """
        Remove an account row.

        Raises:
            AccountNotFoundError: If the account does not exist.
        """
        with _storage_errors("delete"):
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(Account).where(Account.id == account_id)
                    )
                    if result.rowcount == 0:
                        raise AccountNotFoundError(account_id)
