"""
Account model — a bank account owned by a User.

Each account has:
  - A store-assigned integer id
  - A unique, externally chosen account number (immutable after creation)
  - A display name
  - A balance in the smallest currency unit (integer, no fractions)

Balance management:
  The `balance` column is the single source of truth. It is only ever
  written by the balance engine (services/balance_service.py), which holds
  the per-account lock across the read and the write.

  A CHECK constraint at the database level enforces that the balance can
  never go negative. The engine checks before debiting; the constraint is
  the final safety net against bugs.

  Balances are stored as a signed 64-bit integer (BIGINT), so MAX_BALANCE
  is the largest balance any account can hold. The engine rejects amounts
  and credits beyond it before writing.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, String, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bankapi.database import Base


MAX_BALANCE = 2**63 - 1


class Account(Base):
    __tablename__ = "accounts"

    # Database-level constraint: balance can never be negative
    __table_args__ = (
        CheckConstraint(
            "balance >= 0",
            name="ck_accounts_non_negative_balance",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    # Owner of this account
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    account_number: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )

    display_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="",
    )

    balance: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    # Set explicitly by the store/engine, never by onupdate hooks
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    user: Mapped["User"] = relationship(
        back_populates="accounts",
    )
