"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Logging — structlog configured from settings
  2. Lifespan manager — handles startup/shutdown (DB table creation, cleanup)
  3. Middleware — CORS and a per-request access log
  4. Exception handlers — maps domain errors to HTTP responses
  5. Router registration — mounts all API endpoint groups behind their gates

Running locally:
    uvicorn bankapi.main:app --reload
or
    python -m bankapi
"""

import time
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

import bankapi.models  # noqa: F401  (registers every table on Base.metadata)
from bankapi.config import settings
from bankapi.database import engine, Base
from bankapi.dependencies import require_admin, require_api_key
from bankapi.exceptions import register_exception_handlers
from bankapi.logging_config import configure_logging
from bankapi.routers import accounts, admin, transfers, users


configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
      Creates all database tables if they don't exist.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    # --- Startup ---
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Starting Bank Ledger API", version=settings.APP_VERSION)
    yield
    # --- Shutdown ---
    await engine.dispose()
    logger.info("Shut down Bank Ledger API")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Banking ledger API: accounts, deposits, withdrawals and atomic transfers",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def access_log(request: Request, call_next):
    """Log method, path, status and duration of every request (never bodies)."""
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "Request handled",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

api_key_gate = [Depends(require_api_key)]

app.include_router(users.router, prefix="/users", tags=["Users"], dependencies=api_key_gate)
app.include_router(
    accounts.router, prefix="/bankAccounts", tags=["Bank Accounts"], dependencies=api_key_gate
)
app.include_router(
    transfers.router, prefix="/transfers", tags=["Transfers"], dependencies=api_key_gate
)
app.include_router(
    admin.router, prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)]
)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for deployment probes."""
    return {"status": "ok", "version": settings.APP_VERSION}
