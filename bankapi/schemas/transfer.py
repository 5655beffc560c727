"""
Pydantic schemas for the transfer endpoint.

The request body uses the wire names `from` and `to`; since `from` is a
Python keyword the fields are declared with aliases.
"""

from typing import Literal

from pydantic import BaseModel, Field, StrictInt

from bankapi.schemas.account import AccountResponse


class TransferRequest(BaseModel):
    """Request body for POST /transfers."""
    from_account_number: str = Field(alias="from")
    to_account_number: str = Field(alias="to")
    amount: StrictInt

    model_config = {"populate_by_name": True}


class TransferResponse(BaseModel):
    """Response body for a successful transfer: both accounts after the move."""
    status: Literal["success"] = "success"
    amount: int
    from_account: AccountResponse
    to_account: AccountResponse
