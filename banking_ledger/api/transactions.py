"""
Transaction endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import get_banking_system
from .schemas import DepositRequest, TransferRequest, WithdrawRequest, transaction_to_dict
from ..system import BankingSystem


router = APIRouter()


@router.post("/deposit", status_code=status.HTTP_201_CREATED)
def deposit(request: DepositRequest, system: BankingSystem = Depends(get_banking_system)):
    """Make a deposit"""
    transaction = system.engine.deposit(
        request.account_number, request.amount, description=request.description
    )
    return {
        "transaction": transaction_to_dict(transaction),
        "balance": str(system.engine.get_balance(request.account_number)),
        "message": "Deposit processed successfully"
    }


@router.post("/withdraw", status_code=status.HTTP_201_CREATED)
def withdraw(request: WithdrawRequest, system: BankingSystem = Depends(get_banking_system)):
    """Make a withdrawal"""
    transaction = system.engine.withdraw(
        request.account_number, request.amount, description=request.description
    )
    return {
        "transaction": transaction_to_dict(transaction),
        "balance": str(system.engine.get_balance(request.account_number)),
        "message": "Withdrawal processed successfully"
    }


@router.post("/transfer", status_code=status.HTTP_201_CREATED)
def transfer(request: TransferRequest, system: BankingSystem = Depends(get_banking_system)):
    """Make a transfer between accounts"""
    transaction = system.engine.transfer(
        request.from_account, request.to_account, request.amount,
        description=request.description
    )
    return {
        "transaction": transaction_to_dict(transaction),
        "message": "Transfer processed successfully"
    }


@router.get("/statistics")
def statistics(system: BankingSystem = Depends(get_banking_system)):
    """Counts by type and status plus successful volume"""
    return {
        "statistics": system.engine.statistics().to_dict(),
        "total_volume": str(system.engine.total_volume())
    }
