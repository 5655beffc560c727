"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (like InsufficientFundsError)
without importing HTTP concepts. The handlers registered here translate them
into HTTP responses with a consistent body:

    {"detail": "<message>", "error_type": "<kind>", ...extra fields}

Exception hierarchy:
    BankAPIError (base)
    ├── NotFoundError
    │   ├── AccountNotFoundError     — no account with that id / number
    │   └── UserNotFoundError        — no user with that id
    ├── ConflictError
    │   ├── DuplicateAccountNumberError — account number already taken
    │   ├── UserHasAccountsError     — deleting a user who still owns accounts
    │   ├── AccountNotEmptyError     — closing an account that still holds money
    │   └── BalanceLimitExceededError — a credit would exceed MAX_BALANCE
    ├── InvalidAmountError           — amount is not an integer in 1..MAX_BALANCE
    ├── InsufficientFundsError       — withdraw/transfer exceeds the balance
    ├── InvalidTransferError         — self-transfer or malformed pair
    ├── AccountBusyError             — account lock not acquired in time
    └── StorageFailureError          — the database raised an error

Retry policy (see services/balance_service.py): AccountBusyError and
StorageFailureError are transient; everything else is final.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class BankAPIError(Exception):
    """Base exception for all Bank API domain errors."""

    status_code = 500
    error_type = "bank_api_error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)

    def extra(self) -> dict:
        """Additional fields merged into the error response body."""
        return {}


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class NotFoundError(BankAPIError):
    status_code = 404
    error_type = "not_found"


class AccountNotFoundError(NotFoundError):
    """Raised when a requested account does not exist.

    `reference` is either the numeric account id or the account number,
    whichever the caller looked the account up by.
    """

    error_type = "account_not_found"

    def __init__(self, reference: int | str):
        self.reference = reference
        super().__init__(f"Account {reference} not found")


class UserNotFoundError(NotFoundError):
    error_type = "user_not_found"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class ConflictError(BankAPIError):
    status_code = 409
    error_type = "conflict"


class DuplicateAccountNumberError(ConflictError):
    """Raised when creating an account with an account number already in use."""

    error_type = "duplicate_account_number"

    def __init__(self, account_number: str):
        self.account_number = account_number
        super().__init__(f"Account number {account_number} already exists")


class UserHasAccountsError(ConflictError):
    error_type = "user_has_accounts"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} still owns bank accounts")


class AccountNotEmptyError(ConflictError):
    """Raised when closing an account whose balance is not zero."""

    error_type = "account_not_empty"

    def __init__(self, account_id: int, balance: int):
        self.account_id = account_id
        self.balance = balance
        super().__init__(
            f"Account {account_id} still holds {balance}; withdraw it before closing"
        )

    def extra(self) -> dict:
        return {"balance": self.balance}


class BalanceLimitExceededError(ConflictError):
    """
    Raised when a deposit or incoming transfer would push a balance past
    the largest value the store can hold.
    """

    error_type = "balance_limit_exceeded"

    def __init__(self, account_id: int, requested: int, limit: int):
        self.account_id = account_id
        self.requested = requested
        self.limit = limit
        super().__init__(
            f"Crediting {requested} to account {account_id} would exceed the balance limit"
        )

    def extra(self) -> dict:
        return {"requested": self.requested, "limit": self.limit}


class InvalidAmountError(BankAPIError):
    """Raised when an amount is zero, negative, too large, or not an integer."""

    status_code = 400
    error_type = "invalid_amount"

    def __init__(self, amount):
        self.amount = amount
        super().__init__(
            f"Amount must be a positive integer within the balance limit, got {amount!r}"
        )


class InsufficientFundsError(BankAPIError):
    """
    Raised when a withdrawal or transfer would cause a negative balance.

    Attributes:
        account_id: The account that lacks sufficient funds.
        requested: The amount the caller tried to take out.
        available: The balance at the time of the check.
    """

    status_code = 422  # the request was valid but business rules reject it
    error_type = "insufficient_funds"

    def __init__(self, account_id: int, requested: int, available: int):
        self.account_id = account_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds: requested {requested}, available {available}"
        )

    def extra(self) -> dict:
        return {"requested": self.requested, "available": self.available}


class InvalidTransferError(BankAPIError):
    status_code = 400
    error_type = "invalid_transfer"


class AccountBusyError(BankAPIError):
    """Raised when an account lock could not be acquired within the timeout."""

    status_code = 503
    error_type = "account_busy"

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"Account {account_id} is busy, try again later")


class StorageFailureError(BankAPIError):
    """Raised when the storage backend fails. Wraps the original error."""

    status_code = 500
    error_type = "storage_failure"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Storage failure during {operation}")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Each domain exception carries its own status code and error_type, so a
    single handler covers the whole hierarchy. Malformed request bodies are
    reported as 400 rather than FastAPI's default 422, which is reserved
    here for insufficient funds.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(BankAPIError)
    async def bank_api_error_handler(
        request: Request, exc: BankAPIError
    ) -> JSONResponse:
        headers = {"Retry-After": "1"} if isinstance(exc, AccountBusyError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type, **exc.extra()},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def malformed_request_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "detail": "Malformed request",
                "error_type": "malformed_request",
                "errors": [
                    {"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()
                ],
            },
        )
