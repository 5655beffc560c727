"""
FastAPI dependencies for authentication and the balance engine.

Dependencies are reusable functions that FastAPI injects into route handlers:

  require_api_key (Authorization header -> allow-list)   [users, accounts, transfers]
  require_admin   (HTTP Basic -> fixed admin credential) [/admin/*]
  get_balance_engine () -> BalanceEngine                 [account + transfer routes]

If an auth dependency fails, the request is rejected with 401 before the
route handler (and therefore the balance engine) runs.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader, HTTPBasic, HTTPBasicCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bankapi.database import AsyncSessionLocal, get_session_factory
from bankapi.security import verify_admin_credentials
from bankapi.services import secret_service
from bankapi.services.account_store import AccountStore
from bankapi.services.balance_service import BalanceEngine


# auto_error=False so a missing header produces our 401 instead of 403
api_key_header = APIKeyHeader(name="Authorization", auto_error=False)
admin_basic = HTTPBasic()


async def require_api_key(
    api_key: str | None = Depends(api_key_header),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> str:
    """
    Require a pre-shared API key from the secrets allow-list.

    The lookup uses a short session of its own rather than get_db(), so a
    request waiting on an account lock holds no database connection.

    Raises:
        HTTPException 401: If the header is missing or the key is unknown.
    """
    if not api_key or not await secret_service.is_valid_key(session_factory, api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key


async def require_admin(
    credentials: HTTPBasicCredentials = Depends(admin_basic),
) -> str:
    """
    Require the fixed admin basic-auth credential.

    Returns:
        The admin username.

    Raises:
        HTTPException 401: If the credentials don't match.
    """
    if not verify_admin_credentials(credentials.username, credentials.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


# One engine per process: the lock manager inside it must be shared by
# every request touching the same database.
_balance_engine = BalanceEngine(AccountStore(AsyncSessionLocal))


def get_balance_engine() -> BalanceEngine:
    return _balance_engine
