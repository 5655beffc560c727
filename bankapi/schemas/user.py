"""
Pydantic schemas for User endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class UserCreateRequest(BaseModel):
    """Request body for POST /users."""
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)


class UserUpdateRequest(BaseModel):
    """Request body for PUT /users/{id} (omitted fields are left unchanged)."""
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)


class UserResponse(BaseModel):
    """Public representation of a User."""
    id: int
    first_name: str
    last_name: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
