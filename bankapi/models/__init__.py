"""
SQLAlchemy ORM models package.

All models are imported here so that Base.metadata knows every table
before create_all() runs, and so other modules can import from
bankapi.models directly.
"""

from bankapi.models.user import User  # noqa: F401
from bankapi.models.account import Account  # noqa: F401
from bankapi.models.secret import Secret  # noqa: F401
