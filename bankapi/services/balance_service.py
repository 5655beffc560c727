"""
Balance engine — the only code allowed to change an account balance.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It handles:
  - Deposits and withdrawals on a single account
  - Atomic transfers between two accounts (by account number)
  - Balance enforcement (never negative, never above MAX_BALANCE)
  - Closing accounts, only once they are empty
  - Bounded retries of transient failures

Critical sections:
  Every operation takes the per-account lock (services/locks.py) BEFORE
  reading the balance and releases it only AFTER the new balance is
  committed. Within one process this makes all operations on one account
  linearizable, which closes the stale-read double-spend window of a plain
  read-then-write.

Transfers:
  Both accounts are locked, always in ascending account id order, so two
  transfers crossing the same pair in opposite directions cannot deadlock.
  The balances are re-read inside the lock, then the debit and the credit
  are written by AccountStore.set_balances() in ONE database transaction:
  both rows change or neither does.

Retries:
  AccountBusyError (lock timeout) and StorageFailureError are transient and
  retried up to `retry_attempts` times with exponential backoff. Validation
  failures (InvalidAmountError, InsufficientFundsError, InvalidTransferError,
  BalanceLimitExceededError, AccountNotFoundError) are raised immediately
  and never retried.

Timestamps:
  updated_at is assigned here, from a clock that never goes backwards.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog

from bankapi.config import settings
from bankapi.exceptions import (
    AccountBusyError,
    AccountNotEmptyError,
    BalanceLimitExceededError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidTransferError,
    StorageFailureError,
)
from bankapi.models.account import MAX_BALANCE, Account
from bankapi.services.account_store import AccountStore
from bankapi.services.locks import AccountLockManager


logger = structlog.get_logger(__name__)

TRANSIENT_ERRORS = (AccountBusyError, StorageFailureError)


@dataclass
class TransferResult:
    """Both accounts as they stand right after a committed transfer."""
    from_account: Account
    to_account: Account
    amount: int


class MonotonicClock:
    """UTC wall clock that never returns a timestamp earlier than the last one."""

    def __init__(self) -> None:
        self._last: datetime | None = None

    def now(self) -> datetime:
        current = datetime.now(timezone.utc)
        if self._last is not None and current <= self._last:
            current = self._last + timedelta(microseconds=1)
        self._last = current
        return current


def _validate_amount(amount) -> None:
    # bool is an int subclass; True is not a valid amount
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(amount)
    if amount <= 0 or amount > MAX_BALANCE:
        raise InvalidAmountError(amount)


class BalanceEngine:
    """
    Deposit, withdraw and transfer over an AccountStore.

    Args:
        store: Persistence for account records.
        locks: Lock manager shared by every engine touching the same store.
        lock_timeout: Seconds to wait for each account lock.
        retry_attempts: Total attempts for transient failures (>= 1).
        retry_backoff: Delay before the first retry, doubled each time.
        clock: Source of updated_at timestamps.
    """

    def __init__(
        self,
        store: AccountStore,
        locks: AccountLockManager | None = None,
        lock_timeout: float = settings.LOCK_TIMEOUT_SECONDS,
        retry_attempts: int = settings.STORAGE_RETRY_ATTEMPTS,
        retry_backoff: float = settings.STORAGE_RETRY_BACKOFF_SECONDS,
        clock: MonotonicClock | None = None,
    ):
        self.store = store
        self.locks = locks or AccountLockManager()
        self.lock_timeout = lock_timeout
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff = retry_backoff
        self.clock = clock or MonotonicClock()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def deposit(self, account_id: int, amount: int) -> Account:
        """
        Add `amount` to an account's balance.

        Returns:
            The account with its updated balance.

        Raises:
            InvalidAmountError: If amount is not a positive integer.
            AccountNotFoundError: If the account doesn't exist.
            BalanceLimitExceededError: If the new balance would exceed MAX_BALANCE.
            AccountBusyError / StorageFailureError: After retries are exhausted.
        """
        _validate_amount(amount)
        account = await self._with_retries(
            "deposit", self._apply_delta, account_id, amount
        )
        logger.info(
            "Deposit applied",
            account_id=account_id,
            amount=amount,
            balance=account.balance,
        )
        return account

    async def withdraw(self, account_id: int, amount: int) -> Account:
        """
        Subtract `amount` from an account's balance.

        The balance check and the write happen inside the same critical
        section. When funds are insufficient nothing is written.

        Raises:
            InvalidAmountError: If amount is not a positive integer.
            AccountNotFoundError: If the account doesn't exist.
            InsufficientFundsError: If the balance is lower than amount.
            AccountBusyError / StorageFailureError: After retries are exhausted.
        """
        _validate_amount(amount)
        account = await self._with_retries(
            "withdraw", self._apply_delta, account_id, -amount
        )
        logger.info(
            "Withdrawal applied",
            account_id=account_id,
            amount=amount,
            balance=account.balance,
        )
        return account

    async def transfer(
        self,
        from_account_number: str,
        to_account_number: str,
        amount: int,
    ) -> TransferResult:
        """
        Move `amount` from one account to another, atomically.

        Raises:
            InvalidAmountError: If amount is not a positive integer.
            InvalidTransferError: If either number is blank or both are equal.
            AccountNotFoundError: If either account doesn't exist.
            InsufficientFundsError: If the source balance is lower than amount.
            BalanceLimitExceededError: If the destination would exceed MAX_BALANCE.
            AccountBusyError / StorageFailureError: After retries are exhausted.
        """
        _validate_amount(amount)
        if not from_account_number or not to_account_number:
            raise InvalidTransferError("Both source and destination account numbers are required")
        if from_account_number == to_account_number:
            raise InvalidTransferError("Cannot transfer to the same account")

        result = await self._with_retries(
            "transfer",
            self._transfer,
            from_account_number,
            to_account_number,
            amount,
        )
        logger.info(
            "Transfer applied",
            from_account_id=result.from_account.id,
            to_account_id=result.to_account.id,
            amount=amount,
        )
        return result

    async def open_account(
        self,
        user_id: int,
        account_number: str,
        display_name: str = "",
    ) -> Account:
        """
        Create a zero-balance account for an existing user.

        Raises:
            UserNotFoundError: If the owning user doesn't exist.
            DuplicateAccountNumberError: If the account number is taken.
        """
        account = await self.store.create(
            user_id=user_id,
            account_number=account_number,
            display_name=display_name,
            created_at=self.clock.now(),
        )
        logger.info(
            "Account opened",
            account_id=account.id,
            user_id=user_id,
            account_number=account_number,
        )
        return account

    async def close_account(self, account_id: int) -> None:
        """
        Delete an account whose balance is zero.

        Runs under the account lock, so no deposit or transfer can land
        between the balance check and the delete.

        Raises:
            AccountNotFoundError: If the account doesn't exist.
            AccountNotEmptyError: If the account still holds money.
        """
        async with self.locks.hold(account_id, timeout=self.lock_timeout):
            account = await self.store.get_by_id(account_id)
            if account.balance != 0:
                raise AccountNotEmptyError(account_id, account.balance)
            await self.store.delete(account_id)
        logger.info("Account closed", account_id=account_id)

    # ------------------------------------------------------------------
    # Critical sections
    # ------------------------------------------------------------------

    async def _apply_delta(self, account_id: int, delta: int) -> Account:
        async with self.locks.hold(account_id, timeout=self.lock_timeout):
            account = await self.store.get_by_id(account_id)
            new_balance = account.balance + delta
            if new_balance > MAX_BALANCE:
                raise BalanceLimitExceededError(
                    account_id=account_id, requested=delta, limit=MAX_BALANCE
                )
            if new_balance < 0:
                logger.warning(
                    "Insufficient funds",
                    account_id=account_id,
                    requested=-delta,
                    available=account.balance,
                )
                raise InsufficientFundsError(
                    account_id=account_id,
                    requested=-delta,
                    available=account.balance,
                )

            now = self.clock.now()
            await self.store.set_balance(account_id, new_balance, now)

        account.balance = new_balance
        account.updated_at = now
        return account

    async def _transfer(
        self,
        from_account_number: str,
        to_account_number: str,
        amount: int,
    ) -> TransferResult:
        # Resolve numbers to ids first; the ids define the lock order
        source = await self.store.get_by_account_number(from_account_number)
        dest = await self.store.get_by_account_number(to_account_number)

        async with self.locks.hold(source.id, dest.id, timeout=self.lock_timeout):
            # Fresh reads inside the critical section
            source = await self.store.get_by_id(source.id)
            dest = await self.store.get_by_id(dest.id)

            if source.balance < amount:
                logger.warning(
                    "Insufficient funds for transfer",
                    account_id=source.id,
                    requested=amount,
                    available=source.balance,
                )
                raise InsufficientFundsError(
                    account_id=source.id,
                    requested=amount,
                    available=source.balance,
                )
            if dest.balance + amount > MAX_BALANCE:
                raise BalanceLimitExceededError(
                    account_id=dest.id, requested=amount, limit=MAX_BALANCE
                )

            now = self.clock.now()
            await self.store.set_balances(
                {
                    source.id: source.balance - amount,
                    dest.id: dest.balance + amount,
                },
                now,
            )

        source.balance -= amount
        dest.balance += amount
        source.updated_at = dest.updated_at = now
        return TransferResult(from_account=source, to_account=dest, amount=amount)

    # ------------------------------------------------------------------
    # Retry policy
    # ------------------------------------------------------------------

    async def _with_retries(self, operation: str, func, *args):
        attempt = 1
        while True:
            try:
                return await func(*args)
            except TRANSIENT_ERRORS as exc:
                if attempt >= self.retry_attempts:
                    logger.error(
                        "Balance operation failed after retries",
                        operation=operation,
                        attempts=attempt,
                        error=exc.detail,
                    )
                    raise
                delay = self.retry_backoff * 2 ** (attempt - 1)
                logger.warning(
                    "Retrying balance operation",
                    operation=operation,
                    attempt=attempt,
                    delay=delay,
                    error=exc.detail,
                )
                await asyncio.sleep(delay)
                attempt += 1
