"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - engine: The async database engine (connection pool for production DBs)
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request
  - get_session_factory(): FastAPI dependency for short, self-managed sessions

Two ways of using sessions:
  Read-mostly collaborators (users, secrets) take a request-scoped session
  from get_db(), which commits on success and rolls back on exception.

  The balance engine does NOT use the request session. Its store opens a
  short session of its own for every read and every write, so a balance
  write is committed before the account lock is released.

  Routes that reach the balance engine hold no request session at all
  (the API key check uses get_session_factory()). A request queued on an
  account lock therefore holds no pooled connection, and the lock holder
  can always check one out.
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from bankapi.config import settings


def configure_sqlite(async_engine: AsyncEngine) -> None:
    """
    Tune every new SQLite connection for concurrent writers.

    WAL lets readers proceed while a write transaction is open, and the
    busy timeout makes a second writer wait for the lock instead of
    failing immediately with "database is locked". SQLite only enforces
    foreign keys when asked to, per connection. No-op for other backends.
    """
    if async_engine.dialect.name != "sqlite":
        return

    @event.listens_for(async_engine.sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# echo=True in debug mode logs all SQL statements
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)
configure_sqlite(engine)

# expire_on_commit=False keeps attribute access working after commit;
# otherwise reading a committed object would trigger a lazy load, which
# fails in async context.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


async def get_db():
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/users")
        async def list_users(db: AsyncSession = Depends(get_db)):
            ...

    The session is committed on success and rolled back on any exception,
    then closed when the request completes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    FastAPI dependency for code that opens its own short sessions.

    Used where a request must not keep a pooled connection checked out
    while it waits, e.g. the API key check in front of balance operations.
    """
    return AsyncSessionLocal
