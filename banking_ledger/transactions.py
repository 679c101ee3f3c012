"""
Transaction Engine Module

Deposits, withdrawals and transfers as short atomic units:
validate -> check funds -> mutate -> record. Every attempt, including one
declined for insufficient funds, is appended to the ledger exactly once.

Transfers lock both accounts (in lexical order of account number) for the
whole debit/credit, so no reader that takes account locks observes the debit
without the credit.
"""

from decimal import Decimal
from typing import Dict, List, Optional

from .accounts import Account, AccountStore
from .alerts import BalanceAlertMonitor
from .errors import (
    AccountClosedError, InsufficientFundsError, InvalidAmountError, call_best_effort
)
from .ledger import (
    LedgerStatistics, Transaction, TransactionLedger, TransactionStatus,
    TransactionType, generate_transaction_id
)
from .logging_config import get_logger, log_action
from .money import AmountLike, ZERO, format_amount, to_amount


DEFAULT_MAX_AMOUNT = Decimal("1000000.00")


class TransactionEngine:
    """
    Orchestrates validation, balance mutation and ledger append

    The engine is the only component that does balance arithmetic. The
    alert monitor is optional; when present it is told about declined
    attempts and re-checks accounts after successful mutations.
    """

    def __init__(
        self,
        store: AccountStore,
        ledger: TransactionLedger,
        monitor: Optional[BalanceAlertMonitor] = None,
        max_amount: Decimal = DEFAULT_MAX_AMOUNT,
        check_alerts_on_transaction: bool = True
    ):
        self.store = store
        self.ledger = ledger
        self.monitor = monitor
        self.max_amount = to_amount(max_amount)
        self.check_alerts_on_transaction = check_alerts_on_transaction
        self.logger = get_logger("banking_ledger.transactions")

    # Accounts

    def create_account(
        self,
        account_number: str,
        holder_name: str,
        initial_balance: AmountLike = ZERO,
        email: str = ""
    ) -> Account:
        """Open an account and let the monitor evaluate its opening balance"""
        account = self.store.create_account(account_number, holder_name, initial_balance, email)
        self._recheck(account_number)
        return account

    def get_account(self, account_number: str) -> Account:
        return self.store.get_account(account_number)

    def list_accounts(self) -> List[Account]:
        return self.store.list_accounts()

    def search_accounts(self, name_pattern: str) -> List[Account]:
        return self.store.search_accounts(name_pattern)

    def get_balance(self, account_number: str) -> Decimal:
        return self.store.get_balance(account_number)

    # Money movement

    def deposit(self, account_number: str, amount: AmountLike, description: Optional[str] = None) -> Transaction:
        """
        Credit an account

        Raises:
            InvalidAmountError: Amount not positive or above the ceiling
            AccountNotFoundError: Unknown account
            AccountClosedError: The account has been closed
        """
        value = self._validate_amount(amount)

        with self.store.lock_accounts(account_number):
            account = self._open_account(account_number)
            new_balance = account.balance + value
            self.store.update_balance(account_number, new_balance)
            transaction = self._record(
                TransactionType.DEPOSIT, TransactionStatus.SUCCESS, account_number, value,
                description or f"Deposit of {format_amount(value)} to account {account_number}"
            )

        self._log_success(transaction, {account_number: new_balance})
        self._recheck(account_number)
        return transaction

    def withdraw(self, account_number: str, amount: AmountLike, description: Optional[str] = None) -> Transaction:
        """
        Debit an account

        A withdrawal larger than the balance is recorded as a FAILED
        transaction, reported to the alert monitor and raised as
        InsufficientFundsError; the balance is left unchanged.

        Raises:
            InvalidAmountError: Amount not positive or above the ceiling
            AccountNotFoundError: Unknown account
            AccountClosedError: The account has been closed
            InsufficientFundsError: Balance lower than the amount
        """
        value = self._validate_amount(amount)

        with self.store.lock_accounts(account_number):
            account = self._open_account(account_number)
            current = account.balance

            if current < value:
                declined = self._record(
                    TransactionType.WITHDRAWAL, TransactionStatus.FAILED, account_number, value,
                    f"Withdrawal failed: Insufficient funds. Current: {format_amount(current)}, "
                    f"Requested: {format_amount(value)}, Shortfall: {format_amount(value - current)}"
                )
            else:
                declined = None
                new_balance = current - value
                self.store.update_balance(account_number, new_balance)
                transaction = self._record(
                    TransactionType.WITHDRAWAL, TransactionStatus.SUCCESS, account_number, value,
                    description or f"Withdrawal of {format_amount(value)} from account {account_number}"
                )

        if declined is not None:
            raise self._decline(declined, current)

        self._log_success(transaction, {account_number: new_balance})
        self._recheck(account_number)
        return transaction

    def transfer(
        self,
        from_account: str,
        to_account: str,
        amount: AmountLike,
        description: Optional[str] = None
    ) -> Transaction:
        """
        Move money between two accounts

        Raises:
            InvalidAmountError: Same source and target, or bad amount
            AccountNotFoundError: Either account is unknown
            AccountClosedError: Either account has been closed
            InsufficientFundsError: Source balance lower than the amount
        """
        if from_account == to_account:
            raise InvalidAmountError("Cannot transfer to self: source and target accounts are the same")
        value = self._validate_amount(amount)

        with self.store.lock_accounts(from_account, to_account):
            source = self._open_account(from_account)
            target = self._open_account(to_account)
            current = source.balance

            if current < value:
                declined = self._record(
                    TransactionType.TRANSFER, TransactionStatus.FAILED, from_account, value,
                    f"Transfer failed: Insufficient funds. Current: {format_amount(current)}, "
                    f"Requested: {format_amount(value)}, Shortfall: {format_amount(value - current)}",
                    target_account=to_account
                )
            else:
                declined = None
                new_source = current - value
                new_target = target.balance + value
                self.store.update_balance(from_account, new_source)
                self.store.update_balance(to_account, new_target)
                transaction = self._record(
                    TransactionType.TRANSFER, TransactionStatus.SUCCESS, from_account, value,
                    description or f"Transfer of {format_amount(value)} from {from_account} to {to_account}",
                    target_account=to_account
                )

        if declined is not None:
            raise self._decline(declined, current)

        self._log_success(transaction, {from_account: new_source, to_account: new_target})
        self._recheck(from_account, to_account)
        return transaction

    # Ledger queries

    def history_for(self, account_number: str) -> List[Transaction]:
        """Most-recent-first history; unknown accounts raise AccountNotFoundError"""
        self.store.get_account(account_number)
        return self.ledger.history_for(account_number)

    def statistics(self) -> LedgerStatistics:
        return self.ledger.statistics()

    def total_volume(self) -> Decimal:
        return self.ledger.total_successful_volume()

    # Internals

    def _validate_amount(self, amount: AmountLike) -> Decimal:
        value = to_amount(amount)
        if value <= ZERO:
            raise InvalidAmountError(
                f"Invalid amount: {value:.2f}. Amount must be positive.", amount=value
            )
        if value > self.max_amount:
            raise InvalidAmountError(
                f"Transaction amount exceeds maximum limit of {format_amount(self.max_amount)}",
                amount=value
            )
        return value

    def _open_account(self, account_number: str) -> Account:
        """Snapshot of an account that accepts money movement; caller holds its lock"""
        account = self.store.get_account(account_number)
        if not account.is_active:
            raise AccountClosedError(account_number)
        return account

    def _record(
        self,
        transaction_type: TransactionType,
        status: TransactionStatus,
        account_number: str,
        amount: Decimal,
        description: str,
        target_account: Optional[str] = None
    ) -> Transaction:
        transaction = Transaction(
            transaction_id=generate_transaction_id(),
            account_number=account_number,
            transaction_type=transaction_type,
            amount=amount,
            status=status,
            description=description,
            target_account=target_account,
        )
        self.ledger.append(transaction)
        return transaction

    def _decline(self, transaction: Transaction, current_balance: Decimal) -> InsufficientFundsError:
        """Log and report a declined attempt; returns the error to raise"""
        error = InsufficientFundsError(
            transaction.account_number, current_balance, transaction.amount
        )
        log_action(
            self.logger, "warning",
            f"{transaction.transaction_type.value} declined: insufficient funds",
            action=transaction.transaction_type.value.lower(),
            resource=f"transaction:{transaction.transaction_id}",
            extra={
                "account_number": transaction.account_number,
                "target_account": transaction.target_account,
                "current_balance": str(current_balance),
                "requested_amount": str(transaction.amount),
                "shortfall": str(error.shortfall),
            }
        )
        if self.monitor is not None:
            call_best_effort(
                self.logger, f"Reporting overdraft attempt on {transaction.account_number}",
                self.monitor.check_overdraft_attempt,
                transaction.account_number, transaction.amount, current_balance
            )
        return error

    def _log_success(self, transaction: Transaction, balances: Dict[str, Decimal]) -> None:
        log_action(
            self.logger, "info",
            f"{transaction.transaction_type.value} successful: {format_amount(transaction.amount)}",
            action=transaction.transaction_type.value.lower(),
            resource=f"transaction:{transaction.transaction_id}",
            extra={
                "account_number": transaction.account_number,
                "target_account": transaction.target_account,
                "amount": str(transaction.amount),
                "new_balances": {number: str(balance) for number, balance in balances.items()},
            }
        )

    def _recheck(self, *account_numbers: str) -> None:
        """Let the monitor re-evaluate touched accounts; runs outside account locks"""
        if self.monitor is None or not self.check_alerts_on_transaction:
            return
        for account_number in account_numbers:
            call_best_effort(
                self.logger, f"Alert check for {account_number}",
                self.monitor.check_account, account_number
            )
