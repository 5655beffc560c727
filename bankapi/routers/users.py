"""
Users router — user profile CRUD and account opening.

Endpoints (all require a valid API key):
  POST   /users                       — Create a user
  GET    /users                       — List users
  GET    /users/{user_id}             — Get one user
  PUT    /users/{user_id}             — Update first/last name
  DELETE /users/{user_id}             — Delete a user without accounts
  POST   /users/{user_id}/bankAccount — Open a bank account for the user
  GET    /users/{user_id}/bankAccounts — List the user's bank accounts
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from bankapi.database import get_db
from bankapi.dependencies import get_balance_engine
from bankapi.schemas.account import AccountCreateRequest, AccountResponse
from bankapi.schemas.user import UserCreateRequest, UserResponse, UserUpdateRequest
from bankapi.services import user_service
from bankapi.services.balance_service import BalanceEngine

router = APIRouter()


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
async def create_user(
    request: UserCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await user_service.create_user(
        db=db,
        first_name=request.first_name,
        last_name=request.last_name,
    )


@router.get(
    "",
    response_model=list[UserResponse],
    summary="List users",
)
async def list_users(db: AsyncSession = Depends(get_db)):
    return await user_service.list_users(db)


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get a user",
)
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    return await user_service.get_user(db, user_id)


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update a user",
)
async def update_user(
    user_id: int,
    updates: UserUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Update a user's profile.

    Only fields present in the body are changed.
    """
    return await user_service.update_user(
        db, user_id, updates.model_dump(exclude_unset=True, exclude_none=True)
    )


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a user",
)
async def delete_user(user_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a user. Returns 409 if the user still owns bank accounts."""
    await user_service.delete_user(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{user_id}/bankAccount",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a bank account",
)
async def open_account(
    user_id: int,
    request: AccountCreateRequest,
    engine: BalanceEngine = Depends(get_balance_engine),
):
    """
    Open a zero-balance account with a caller-chosen account number.

    Returns 404 if the user doesn't exist and 409 if the account number
    is already taken.
    """
    return await engine.open_account(
        user_id=user_id,
        account_number=request.account_number,
        display_name=request.name,
    )


@router.get(
    "/{user_id}/bankAccounts",
    response_model=list[AccountResponse],
    summary="List a user's bank accounts",
)
async def list_user_accounts(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    engine: BalanceEngine = Depends(get_balance_engine),
):
    await user_service.get_user(db, user_id)
    return await engine.store.list_for_user(user_id)
