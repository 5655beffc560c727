"""
Security utilities: API key generation and hashing, admin credential checks.

Two gates protect the API:

1. PRE-SHARED API KEYS (Argon2-hashed allow-list)
   - Admins mint keys with POST /admin/secrets; the plaintext is shown once
   - Only the Argon2id hash is stored in the `secrets` table
   - Clients send the key in the Authorization header
   - We use passlib's CryptContext for safe, high-level Argon2 operations

2. ADMIN BASIC AUTH
   - A single fixed credential pair from settings (ADMIN_USERNAME /
     ADMIN_PASSWORD) guards the /admin endpoints
   - Compared in constant time to prevent timing attacks
"""

import secrets

from passlib.context import CryptContext

from bankapi.config import settings


# ---------------------------------------------------------------------------
# 1. API keys (Argon2)
# ---------------------------------------------------------------------------

# "deprecated='auto'" lets passlib verify hashes from older schemes if the
# active scheme is ever changed, while new keys use the new one.
key_context = CryptContext(schemes=["argon2"], deprecated="auto")


def generate_api_key() -> str:
    """Return a new random URL-safe API key (43 characters)."""
    return secrets.token_urlsafe(32)


def hash_api_key(plain_key: str) -> str:
    return key_context.hash(plain_key)


def verify_api_key(plain_key: str, key_hash: str) -> bool:
    """Check a presented key against one stored hash."""
    return key_context.verify(plain_key, key_hash)


# ---------------------------------------------------------------------------
# 2. Admin basic auth
# ---------------------------------------------------------------------------

def verify_admin_credentials(username: str, password: str) -> bool:
    """
    Compare basic-auth credentials with the configured admin pair.

    Both comparisons always run so the response time does not reveal
    which half was wrong.
    """
    username_ok = secrets.compare_digest(
        username.encode(), settings.ADMIN_USERNAME.encode()
    )
    password_ok = secrets.compare_digest(
        password.encode(), settings.ADMIN_PASSWORD.encode()
    )
    return username_ok and password_ok
