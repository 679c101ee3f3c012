"""Exception hierarchy for ledger operations."""

from decimal import Decimal
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Stable error codes so callers can branch on every failure path"""
    INVALID_AMOUNT = "invalid_amount"
    INVALID_ARGUMENT = "invalid_argument"
    ACCOUNT_NOT_FOUND = "account_not_found"
    DUPLICATE_ACCOUNT = "duplicate_account"
    ACCOUNT_CLOSED = "account_closed"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    PERSISTENCE_UNAVAILABLE = "persistence_unavailable"


class BankingError(Exception):
    """Base exception for all ledger errors."""

    kind: ErrorKind

    def to_dict(self) -> dict:
        return {"error": self.kind.value, "message": str(self)}


class InvalidAmountError(BankingError, ValueError):
    """Non-positive or over-ceiling amount, or a transfer to the same account."""

    kind = ErrorKind.INVALID_AMOUNT

    def __init__(self, message: str, amount: Optional[Decimal] = None):
        super().__init__(message)
        self.amount = amount


class InvalidArgumentError(BankingError, ValueError):
    """Raised for malformed creation or threshold arguments."""

    kind = ErrorKind.INVALID_ARGUMENT


class AccountNotFoundError(BankingError, LookupError):
    """Raised when an operation references an unknown account number."""

    kind = ErrorKind.ACCOUNT_NOT_FOUND

    def __init__(self, account_number: str):
        super().__init__(f"Account not found: {account_number}")
        self.account_number = account_number

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["account_number"] = self.account_number
        return result


class DuplicateAccountError(BankingError):
    """Raised when creating an account whose number already exists."""

    kind = ErrorKind.DUPLICATE_ACCOUNT

    def __init__(self, account_number: str):
        super().__init__(f"Account number already exists: {account_number}")
        self.account_number = account_number

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["account_number"] = self.account_number
        return result


class AccountClosedError(BankingError):
    """Raised when money is moved into or out of a closed account."""

    kind = ErrorKind.ACCOUNT_CLOSED

    def __init__(self, account_number: str):
        super().__init__(f"Account is closed: {account_number}")
        self.account_number = account_number

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["account_number"] = self.account_number
        return result


class InsufficientFundsError(BankingError):
    """
    Raised when a withdrawal or transfer exceeds the available balance.

    Carries the figures callers need for display and overdraft alerting.
    """

    kind = ErrorKind.INSUFFICIENT_FUNDS

    def __init__(self, account_number: str, current_balance: Decimal, requested_amount: Decimal):
        self.account_number = account_number
        self.current_balance = current_balance
        self.requested_amount = requested_amount
        self.shortfall = requested_amount - current_balance
        super().__init__(
            f"Insufficient funds. Current balance: {current_balance:.2f}, "
            f"Requested: {requested_amount:.2f}, Shortfall: {self.shortfall:.2f}"
        )

    def to_dict(self) -> dict:
        result = super().to_dict()
        result.update({
            "account_number": self.account_number,
            "current_balance": str(self.current_balance),
            "requested_amount": str(self.requested_amount),
            "shortfall": str(self.shortfall),
        })
        return result


class PersistenceUnavailableError(BankingError):
    """Durable backend failed; in-memory state stays authoritative."""

    kind = ErrorKind.PERSISTENCE_UNAVAILABLE


def call_best_effort(logger, description: str, func, *args, **kwargs):
    """
    Run a collaborator call whose failure must never reach the caller

    Persistence and notification problems are logged with their traceback
    and swallowed; returns None when the call failed.
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        logger.error(f"{description} failed: {e}", exc_info=True)
        return None
