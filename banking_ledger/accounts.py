"""
Account Store Module

Owns the authoritative in-memory mapping from account number to account
state. Each account has its own lock so the transaction engine can run
read-modify-write sections without lost updates; every mutation is written
through to the persistence collaborator on a best-effort basis.
"""

from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, TYPE_CHECKING
import threading

from .errors import (
    AccountNotFoundError, DuplicateAccountError, InvalidArgumentError, call_best_effort
)
from .logging_config import get_logger, log_action
from .money import ZERO, quantize, to_amount

if TYPE_CHECKING:
    from .persistence import Persistence


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Account:
    """
    Named balance holder with contact details

    The account number is immutable; everything else is mutated in place by
    the store under the account lock.
    """
    account_number: str
    holder_name: str
    balance: Decimal
    email: str = ""
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    is_active: bool = True

    def copy(self) -> 'Account':
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            "account_number": self.account_number,
            "holder_name": self.holder_name,
            "balance": str(self.balance),
            "email": self.email,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        """Create instance from a stored dictionary"""
        return cls(
            account_number=data["account_number"],
            holder_name=data["holder_name"],
            balance=Decimal(data["balance"]),
            email=data.get("email") or "",
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            is_active=data.get("is_active", True),
        )

    def __str__(self) -> str:
        return (
            f"Account(number={self.account_number!r}, holder={self.holder_name!r}, "
            f"balance={self.balance:.2f}, email={self.email!r})"
        )


class AccountStore:
    """
    Thread-safe account registry

    Readers always receive copies of the stored accounts. Balance arithmetic
    belongs to the transaction engine; ``update_balance`` only overwrites.
    """

    def __init__(self, persistence: Optional['Persistence'] = None):
        self.persistence = persistence
        self.logger = get_logger("banking_ledger.accounts")
        self._accounts: Dict[str, Account] = {}
        self._account_locks: Dict[str, threading.RLock] = {}
        self._lock = threading.RLock()

    # Internal helpers

    def _live(self, account_number: str) -> Account:
        with self._lock:
            account = self._accounts.get(account_number)
        if account is None:
            raise AccountNotFoundError(account_number)
        return account

    def _sync(self, account: Account) -> None:
        if self.persistence is None:
            return
        call_best_effort(
            self.logger, f"Syncing account {account.account_number}",
            self.persistence.sync_account, account.copy()
        )

    @contextmanager
    def lock_accounts(self, *account_numbers: str) -> Iterator[None]:
        """
        Hold the locks of the given accounts for a critical section

        Locks are taken in lexical order of account number so two sections
        over the same pair of accounts can never deadlock. Accounts are never
        removed, so a lock resolved here stays valid for the whole section.

        Raises:
            AccountNotFoundError: Any of the numbers is unknown; no lock is taken
        """
        with self._lock:
            locks = []
            for number in sorted(set(account_numbers)):
                lock = self._account_locks.get(number)
                if lock is None:
                    raise AccountNotFoundError(number)
                locks.append(lock)
        with ExitStack() as stack:
            for lock in locks:
                stack.enter_context(lock)
            yield

    # Lifecycle

    def create_account(
        self,
        account_number: str,
        holder_name: str,
        initial_balance: Decimal = ZERO,
        email: str = ""
    ) -> Account:
        """
        Create a new account

        Raises:
            InvalidArgumentError: Blank number or holder name, or negative balance
            DuplicateAccountError: The account number is already taken
        """
        if not account_number or not account_number.strip():
            raise InvalidArgumentError("Account number cannot be empty")
        if not holder_name or not holder_name.strip():
            raise InvalidArgumentError("Account holder name cannot be empty")

        balance = to_amount(initial_balance)
        if balance < ZERO:
            raise InvalidArgumentError("Initial balance cannot be negative")

        now = _utcnow()
        account = Account(
            account_number=account_number,
            holder_name=holder_name.strip(),
            balance=balance,
            email=email or "",
            created_at=now,
            updated_at=now,
        )

        with self._lock:
            if account_number in self._accounts:
                raise DuplicateAccountError(account_number)
            self._accounts[account_number] = account
            self._account_locks[account_number] = threading.RLock()
            self._sync(account)

        log_action(
            self.logger, "info", f"Account created: {account_number}",
            action="create_account", resource=f"account:{account_number}",
            extra={"holder_name": account.holder_name, "balance": str(balance)}
        )
        return account.copy()

    def load(self) -> int:
        """
        Populate the store from persistence

        Returns:
            Number of accounts loaded (0 when the backend is absent or failing)
        """
        if self.persistence is None:
            return 0

        accounts = call_best_effort(
            self.logger, "Loading accounts", self.persistence.load_all_accounts
        ) or []

        with self._lock:
            for account in accounts:
                self._accounts[account.account_number] = account
                self._account_locks.setdefault(account.account_number, threading.RLock())

        if accounts:
            self.logger.info(f"Loaded {len(accounts)} accounts from persistence")
        return len(accounts)

    # Queries

    def get_account(self, account_number: str) -> Account:
        """Get a snapshot of an account; raises AccountNotFoundError if absent"""
        account = self._live(account_number)
        with self.lock_accounts(account_number):
            return account.copy()

    def account_exists(self, account_number: str) -> bool:
        with self._lock:
            return account_number in self._accounts

    def get_balance(self, account_number: str) -> Decimal:
        return self.get_account(account_number).balance

    def list_accounts(self, include_closed: bool = False) -> List[Account]:
        """
        Consistent snapshot of all accounts

        Every account lock is held while copying, so a transfer is never seen
        half-applied.
        """
        with self._lock:
            numbers = list(self._accounts)
        with self.lock_accounts(*numbers):
            with self._lock:
                return [
                    account.copy() for account in self._accounts.values()
                    if include_closed or account.is_active
                ]

    def search_accounts(self, name_pattern: str, include_closed: bool = False) -> List[Account]:
        """Case-insensitive substring match on the holder name"""
        pattern = (name_pattern or "").lower()
        return [
            account for account in self.list_accounts(include_closed=include_closed)
            if pattern in account.holder_name.lower()
        ]

    def count(self) -> int:
        with self._lock:
            return sum(1 for account in self._accounts.values() if account.is_active)

    def total_balance(self) -> Decimal:
        return sum((a.balance for a in self.list_accounts()), ZERO)

    def average_balance(self) -> Decimal:
        accounts = self.list_accounts()
        if not accounts:
            return ZERO
        return quantize(sum((a.balance for a in accounts), ZERO) / len(accounts))

    def accounts_below(self, threshold: Decimal) -> List[Account]:
        limit = to_amount(threshold)
        return [a for a in self.list_accounts() if a.balance < limit]

    # Mutations

    def update_balance(self, account_number: str, new_balance: Decimal) -> Account:
        """Overwrite the balance; the caller owns the arithmetic"""
        with self.lock_accounts(account_number):
            account = self._live(account_number)
            account.balance = quantize(new_balance)
            account.updated_at = _utcnow()
            self._sync(account)
            return account.copy()

    def update_email(self, account_number: str, email: str) -> Account:
        with self.lock_accounts(account_number):
            account = self._live(account_number)
            account.email = email or ""
            account.updated_at = _utcnow()
            self._sync(account)
            return account.copy()

    def update_holder_name(self, account_number: str, holder_name: str) -> Account:
        if not holder_name or not holder_name.strip():
            raise InvalidArgumentError("Account holder name cannot be empty")
        with self.lock_accounts(account_number):
            account = self._live(account_number)
            account.holder_name = holder_name.strip()
            account.updated_at = _utcnow()
            self._sync(account)
            return account.copy()

    def close_account(self, account_number: str) -> Account:
        """Soft delete: the account stays addressable but is hidden from listings"""
        with self.lock_accounts(account_number):
            account = self._live(account_number)
            account.is_active = False
            account.updated_at = _utcnow()
            self._sync(account)
            snapshot = account.copy()

        log_action(
            self.logger, "info", f"Account closed: {account_number}",
            action="close_account", resource=f"account:{account_number}"
        )
        return snapshot

    def sync_all(self) -> int:
        """Push every account to persistence; returns the number pushed"""
        accounts = self.list_accounts(include_closed=True)
        for account in accounts:
            self._sync(account)
        self.logger.info(f"Synced {len(accounts)} accounts to persistence")
        return len(accounts)
