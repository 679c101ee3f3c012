"""
Account management endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import get_banking_system
from .schemas import (
    CreateAccountRequest, UpdateAccountRequest, account_to_dict, transaction_to_dict
)
from ..system import BankingSystem


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_account(
    request: CreateAccountRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Open a new account"""
    account = system.engine.create_account(
        account_number=request.account_number,
        holder_name=request.holder_name,
        initial_balance=request.initial_balance,
        email=request.email
    )
    return {
        "account": account_to_dict(account),
        "message": "Account created successfully"
    }


@router.get("")
def list_accounts(system: BankingSystem = Depends(get_banking_system)):
    """List open accounts with aggregate figures"""
    store = system.account_store
    accounts = store.list_accounts()
    return {
        "accounts": [account_to_dict(a) for a in accounts],
        "total_accounts": len(accounts),
        "total_balance": str(store.total_balance()),
        "average_balance": str(store.average_balance()),
    }


@router.get("/search")
def search_accounts(q: str = "", system: BankingSystem = Depends(get_banking_system)):
    """Case-insensitive search on the holder name"""
    accounts = system.engine.search_accounts(q)
    return {"accounts": [account_to_dict(a) for a in accounts]}


@router.get("/{account_number}")
def get_account(account_number: str, system: BankingSystem = Depends(get_banking_system)):
    return account_to_dict(system.engine.get_account(account_number))


@router.patch("/{account_number}")
def update_account(
    account_number: str,
    request: UpdateAccountRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Change the holder name and/or contact address"""
    store = system.account_store
    account = store.get_account(account_number)
    if request.holder_name is not None:
        account = store.update_holder_name(account_number, request.holder_name)
    if request.email is not None:
        account = store.update_email(account_number, request.email)
    return account_to_dict(account)


@router.get("/{account_number}/balance")
def get_balance(account_number: str, system: BankingSystem = Depends(get_banking_system)):
    return {
        "account_number": account_number,
        "balance": str(system.engine.get_balance(account_number))
    }


@router.delete("/{account_number}")
def close_account(account_number: str, system: BankingSystem = Depends(get_banking_system)):
    """Soft-close an account; its history stays available"""
    account = system.account_store.close_account(account_number)
    return {"account": account_to_dict(account), "message": "Account closed"}


@router.get("/{account_number}/transactions")
def get_history(account_number: str, system: BankingSystem = Depends(get_banking_system)):
    """Transaction history, most recent first"""
    history = system.engine.history_for(account_number)
    return {
        "account_number": account_number,
        "transactions": [transaction_to_dict(t) for t in history]
    }
