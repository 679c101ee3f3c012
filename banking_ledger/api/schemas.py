"""
Pydantic schemas for API requests and response serialization helpers
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from ..accounts import Account
from ..alerts import BalanceAlert
from ..ledger import Transaction


class CreateAccountRequest(BaseModel):
    account_number: str = Field(..., min_length=1)
    holder_name: str = Field(..., min_length=1)
    initial_balance: str = Field("0.00", description="Decimal amount as string")
    email: str = ""


class UpdateAccountRequest(BaseModel):
    holder_name: Optional[str] = None
    email: Optional[str] = None


class DepositRequest(BaseModel):
    account_number: str
    amount: str = Field(..., description="Decimal amount as string")
    description: Optional[str] = None


class WithdrawRequest(BaseModel):
    account_number: str
    amount: str = Field(..., description="Decimal amount as string")
    description: Optional[str] = None


class TransferRequest(BaseModel):
    from_account: str
    to_account: str
    amount: str = Field(..., description="Decimal amount as string")
    description: Optional[str] = None


class ThresholdRequest(BaseModel):
    threshold: str = Field(..., description="Low-balance threshold as decimal string")


def account_to_dict(account: Account) -> Dict[str, Any]:
    return {
        "account_number": account.account_number,
        "holder_name": account.holder_name,
        "balance": str(account.balance),
        "email": account.email,
        "is_active": account.is_active,
        "created_at": account.created_at.isoformat(),
        "updated_at": account.updated_at.isoformat(),
    }


def transaction_to_dict(transaction: Transaction) -> Dict[str, Any]:
    return transaction.to_dict()


def alert_to_dict(alert: BalanceAlert) -> Dict[str, Any]:
    return {
        "alert_id": alert.alert_id,
        "account_number": alert.account_number,
        "alert_type": alert.alert_type.value,
        "subject": alert.subject,
        "balance": str(alert.balance),
        "threshold": str(alert.threshold) if alert.threshold is not None else None,
        "created_at": alert.created_at.isoformat(),
    }
