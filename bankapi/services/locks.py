"""
Per-account lock manager.

Every balance mutation runs inside `hold(...)` for the accounts it touches:

    async with locks.hold(source.id, dest.id, timeout=5.0):
        ...read balances, check, write...

Guarantees:
  - One asyncio.Lock per account id. Operations on disjoint accounts never
    wait on each other; there is no global lock.
  - Multi-account holds acquire in ascending id order, whatever order the
    caller passed. Two transfers crossing the same pair of accounts in
    opposite directions therefore cannot deadlock.
  - Each acquisition is bounded by `timeout`. On timeout, locks already
    taken for this hold are released and AccountBusyError is raised.
  - Cancellation of the waiting task also releases everything taken so far.

Lock objects are created on first use and dropped once no task holds or
waits for them, so the table does not grow with the number of accounts.
The locks are per process: run one API process per database.
"""

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager

import structlog

from bankapi.exceptions import AccountBusyError


logger = structlog.get_logger(__name__)


class AccountLockManager:
    """Hands out exclusive, account-scoped critical sections."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        # Holders plus waiters per account; the lock is dropped at zero
        self._users: dict[int, int] = {}

    def __contains__(self, account_id: int) -> bool:
        return account_id in self._locks

    def is_locked(self, account_id: int) -> bool:
        lock = self._locks.get(account_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, *account_ids: int, timeout: float | None = None):
        """
        Hold the locks of all given accounts for the body of the block.

        Args:
            *account_ids: Accounts to lock. Duplicates are ignored.
            timeout: Seconds to wait for EACH lock; None waits forever.

        Raises:
            AccountBusyError: If any lock was not acquired in time.
        """
        ordered = sorted(set(account_ids))
        async with AsyncExitStack() as stack:
            for account_id in ordered:
                await stack.enter_async_context(self._acquire(account_id, timeout))
            yield

    @asynccontextmanager
    async def _acquire(self, account_id: int, timeout: float | None):
        lock = self._locks.setdefault(account_id, asyncio.Lock())
        self._users[account_id] = self._users.get(account_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Account lock timed out", account_id=account_id, timeout=timeout
                )
                raise AccountBusyError(account_id) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[account_id] -= 1
            if self._users[account_id] == 0:
                del self._users[account_id]
                del self._locks[account_id]
