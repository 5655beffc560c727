"""
Test fixtures for the Bank Ledger API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory / db_session: Fresh SQLite database
    file for each test
  - store / balance_engine: The account store and balance engine wired to
    the test database (no retry backoff, short lock timeout)
  - user / open_account: Helpers for service-level tests
  - client: Async HTTP test client with no credentials
  - admin_auth: Basic-auth credentials for /admin endpoints
  - api_key / authenticated_client: A real key minted through the admin
    endpoint, and a client sending it on every request

Key design decisions:
  - Each test gets a fresh SQLite file under pytest's tmp_path, so no state
    leaks between tests. A file (not :memory:) gives every session its own
    connection, which the concurrency tests need: sessions sharing one
    in-memory connection would commit and roll back each other's work.
  - We override get_db, get_session_factory and get_balance_engine so the
    application code runs exactly as in production, just against the
    test database.
  - The API key is created through POST /admin/secrets, so the tests
    exercise the real key minting and verification flow.
"""

import os

# Required settings must exist before bankapi.config is imported
os.environ.setdefault("ADMIN_PASSWORD", "test-admin-password")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from bankapi.database import Base, configure_sqlite, get_db, get_session_factory
from bankapi.dependencies import get_balance_engine
from bankapi.main import app
from bankapi.services import user_service
from bankapi.services.account_store import AccountStore
from bankapi.services.balance_service import BalanceEngine


ADMIN_AUTH = ("admin", "test-admin-password")


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    configure_sqlite(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session_factory):
    return AccountStore(session_factory)


@pytest.fixture
def balance_engine(store):
    """Balance engine with no retry backoff and a short lock timeout."""
    return BalanceEngine(
        store,
        lock_timeout=1.0,
        retry_attempts=3,
        retry_backoff=0,
    )


@pytest_asyncio.fixture
async def user(db_session):
    """A committed user that can own accounts."""
    user = await user_service.create_user(db_session, "Test", "User")
    await db_session.commit()
    return user


@pytest.fixture
def open_account(balance_engine, user):
    """
    Factory fixture: open an account for `user`, optionally pre-funded.

    Usage:
        account = await open_account("ACC-1", balance=100)
    """

    async def _open(account_number: str, balance: int = 0):
        account = await balance_engine.open_account(
            user.id, account_number, display_name=account_number
        )
        if balance:
            account = await balance_engine.deposit(account.id, balance)
        return account

    return _open


@pytest_asyncio.fixture
async def client(session_factory, balance_engine):
    """
    Async HTTP test client with the test database injected.

    This overrides get_db, get_session_factory and get_balance_engine so
    all requests hit the per-test database instead of the real one.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_balance_engine] = lambda: balance_engine

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_auth():
    return ADMIN_AUTH


@pytest_asyncio.fixture
async def api_key(client):
    """Mint a real API key through the admin endpoint."""
    response = await client.post("/admin/secrets", auth=ADMIN_AUTH)
    assert response.status_code == 201, f"Key creation failed: {response.text}"
    return response.json()["key"]


@pytest_asyncio.fixture
async def authenticated_client(client, api_key):
    """Test client that sends a valid API key on every request."""
    client.headers["Authorization"] = api_key
    return client


@pytest_asyncio.fixture
async def api_user(authenticated_client):
    """A user created through the API; returns its JSON representation."""
    response = await authenticated_client.post(
        "/users", json={"first_name": "Api", "last_name": "User"}
    )
    assert response.status_code == 201, f"User creation failed: {response.text}"
    return response.json()


@pytest.fixture
def api_account(authenticated_client, api_user):
    """
    Factory fixture: open an account through the API, optionally funded.

    Returns the account JSON after any deposit.
    """

    async def _open(account_number: str, balance: int = 0) -> dict:
        response = await authenticated_client.post(
            f"/users/{api_user['id']}/bankAccount",
            json={"account_number": account_number, "name": f"Account {account_number}"},
        )
        assert response.status_code == 201, f"Account creation failed: {response.text}"
        account = response.json()
        if balance:
            response = await authenticated_client.post(
                f"/bankAccounts/{account['id']}/deposit", json={"amount": balance}
            )
            assert response.status_code == 200
            account = response.json()
        return account

    return _open
