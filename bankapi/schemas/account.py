"""
Pydantic schemas for bank account endpoints.

All balances and amounts are integers in the smallest currency unit.
Amounts are StrictInt so that strings, floats and booleans are rejected
as malformed input; the sign check is left to the balance engine.
"""

from datetime import datetime

from pydantic import BaseModel, Field, StrictInt


class AccountCreateRequest(BaseModel):
    """Request body for POST /users/{id}/bankAccount."""
    account_number: str = Field(min_length=1, max_length=64)
    name: str = Field(default="", max_length=100, description="Display name")


class AmountRequest(BaseModel):
    """Request body for deposit and withdraw."""
    amount: StrictInt


class AccountResponse(BaseModel):
    """Public representation of a bank account."""
    id: int
    user_id: int
    account_number: str
    display_name: str
    balance: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
