"""
Admin router — management of the API key allow-list.

All endpoints require the fixed admin basic-auth credential.

Endpoints:
  POST /admin/secrets — Mint a new API key (plaintext returned once)
  GET  /admin/secrets — List key ids and creation times (never the keys)
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from bankapi.database import get_db
from bankapi.schemas.secret import SecretCreatedResponse, SecretResponse
from bankapi.services import secret_service

router = APIRouter()


@router.post(
    "/secrets",
    response_model=SecretCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="[Admin] Create an API key",
)
async def create_secret(db: AsyncSession = Depends(get_db)):
    """
    Generate a new API key and add it to the allow-list.

    The key is returned in this response only; just its hash is stored.
    """
    secret, plain_key = await secret_service.create_secret(db)
    return SecretCreatedResponse(id=secret.id, created_at=secret.created_at, key=plain_key)


@router.get(
    "/secrets",
    response_model=list[SecretResponse],
    summary="[Admin] List API keys",
)
async def list_secrets(db: AsyncSession = Depends(get_db)):
    return await secret_service.list_secrets(db)
