"""
Secret model — the allow-list of pre-shared API keys.

Clients send one of these keys in the Authorization header to reach the
user, account and transfer endpoints. Only an Argon2 hash of each key is
stored; the plaintext is returned once, when an admin creates the secret.
"""

from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from bankapi.database import Base


class Secret(Base):
    __tablename__ = "secrets"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    key_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
