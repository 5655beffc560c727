"""
Bank accounts router — reads, deletion, deposits and withdrawals.

Endpoints (all require a valid API key):
  GET    /bankAccounts                  — List all accounts
  GET    /bankAccounts/{id}             — Get one account
  DELETE /bankAccounts/{id}             — Close an empty account
  POST   /bankAccounts/{id}/deposit     — Deposit {amount}
  PUT    /bankAccounts/{id}/withdraw    — Withdraw {amount}

Deposits and withdrawals go through the balance engine, which serializes
them per account. This router never writes a balance itself.
"""

from fastapi import APIRouter, Depends, Response, status

from bankapi.dependencies import get_balance_engine
from bankapi.schemas.account import AccountResponse, AmountRequest
from bankapi.services.balance_service import BalanceEngine

router = APIRouter()


@router.get(
    "",
    response_model=list[AccountResponse],
    summary="List all bank accounts",
)
async def list_accounts(engine: BalanceEngine = Depends(get_balance_engine)):
    return await engine.store.list_all()


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Get a bank account",
)
async def get_account(
    account_id: int,
    engine: BalanceEngine = Depends(get_balance_engine),
):
    return await engine.store.get_by_id(account_id)


@router.delete(
    "/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a bank account",
)
async def delete_account(
    account_id: int,
    engine: BalanceEngine = Depends(get_balance_engine),
):
    """Close an account. Returns 409 while its balance is not zero."""
    await engine.close_account(account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{account_id}/deposit",
    response_model=AccountResponse,
    summary="Deposit into an account",
)
async def deposit(
    account_id: int,
    request: AmountRequest,
    engine: BalanceEngine = Depends(get_balance_engine),
):
    """
    Add `amount` to the account balance and return the updated account.

    - **amount**: Positive integer in the smallest currency unit
    """
    return await engine.deposit(account_id, request.amount)


@router.put(
    "/{account_id}/withdraw",
    response_model=AccountResponse,
    summary="Withdraw from an account",
)
async def withdraw(
    account_id: int,
    request: AmountRequest,
    engine: BalanceEngine = Depends(get_balance_engine),
):
    """
    Subtract `amount` from the account balance and return the updated account.

    Rejected with 422 and no change to the balance if funds are insufficient.
    """
    return await engine.withdraw(account_id, request.amount)
