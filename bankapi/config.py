"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. This pattern keeps secrets out of source code; the .env file is
gitignored, and .env.example provides a safe template for operators.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from bankapi.config import settings
    print(settings.LOCK_TIMEOUT_SECONDS)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Bank Ledger API.

    Required fields (no defaults) MUST be set in .env or environment:
      - ADMIN_PASSWORD: Basic-auth password guarding the /admin endpoints
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Bank Ledger API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # --- Server (used by `python -m bankapi`) ---
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # --- Database ---
    # SQLite for local use; swap to a PostgreSQL (asyncpg) URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./bank.db"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    # "json" for machine-readable output, "console" for local development
    LOG_FORMAT: str = "json"

    # --- Balance engine ---
    # Upper bound on how long an operation waits for an account lock
    LOCK_TIMEOUT_SECONDS: float = 5.0
    # Total attempts for an operation that hits a lock timeout or storage error
    STORAGE_RETRY_ATTEMPTS: int = 3
    # First retry delay; doubles on every subsequent attempt
    STORAGE_RETRY_BACKOFF_SECONDS: float = 0.05

    # --- Admin basic auth ---
    ADMIN_USERNAME: str = "admin"
    # REQUIRED: no default, the operator must set a real password
    ADMIN_PASSWORD: str

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
