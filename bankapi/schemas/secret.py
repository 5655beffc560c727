"""
Pydantic schemas for the admin secrets endpoints.

The plaintext key only ever appears in SecretCreatedResponse.
"""

from datetime import datetime

from pydantic import BaseModel


class SecretResponse(BaseModel):
    id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class SecretCreatedResponse(SecretResponse):
    """Returned once, when the key is minted. Store the key; it can't be shown again."""
    key: str
