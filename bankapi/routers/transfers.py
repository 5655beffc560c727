"""
Transfers router — atomic money transfers between accounts.

Endpoints:
  POST /transfers — Transfer money from one account number to another

Both balance changes are committed together or not at all. The response
carries both accounts as they stand after the transfer, so callers don't
need to re-fetch them.
"""

from fastapi import APIRouter, Depends

from bankapi.dependencies import get_balance_engine
from bankapi.schemas.account import AccountResponse
from bankapi.schemas.transfer import TransferRequest, TransferResponse
from bankapi.services.balance_service import BalanceEngine

router = APIRouter()


@router.post(
    "",
    response_model=TransferResponse,
    summary="Transfer money between accounts",
)
async def create_transfer(
    request: TransferRequest,
    engine: BalanceEngine = Depends(get_balance_engine),
):
    """
    Transfer money from one account to another.

    - **from**: Source account number
    - **to**: Destination account number (must differ from the source)
    - **amount**: Positive integer in the smallest currency unit
    """
    result = await engine.transfer(
        from_account_number=request.from_account_number,
        to_account_number=request.to_account_number,
        amount=request.amount,
    )

    return TransferResponse(
        amount=result.amount,
        from_account=AccountResponse.model_validate(result.from_account),
        to_account=AccountResponse.model_validate(result.to_account),
    )
