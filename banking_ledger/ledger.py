"""
Transaction Ledger Module

Append-only record of every attempted money movement, successful or not.
Recent history is served from memory; when an account has little in-memory
activity the ledger backfills from durable storage.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import threading
import time
import uuid

from .errors import call_best_effort
from .logging_config import get_logger
from .money import ZERO

if TYPE_CHECKING:
    from .persistence import Persistence


class TransactionType(Enum):
    """Kinds of money movement"""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"


class TransactionStatus(Enum):
    """Outcome of an attempt; failed attempts are kept for audit"""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


def generate_transaction_id() -> str:
    """Millisecond timestamp plus a random suffix, e.g. TXN1718000000000_9F2C41AB"""
    return f"TXN{int(time.time() * 1000)}_{uuid.uuid4().hex[:8].upper()}"


@dataclass(frozen=True)
class Transaction:
    """
    Immutable record of a requested money movement and its outcome

    ``account_number`` is the source (or the only) account; ``target_account``
    is set for transfers only.
    """
    transaction_id: str
    account_number: str
    transaction_type: TransactionType
    amount: Decimal
    status: TransactionStatus
    description: str = ""
    target_account: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_successful(self) -> bool:
        return self.status == TransactionStatus.SUCCESS

    def involves(self, account_number: str) -> bool:
        """Check if the account is the source or the target"""
        return account_number in (self.account_number, self.target_account)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "account_number": self.account_number,
            "transaction_type": self.transaction_type.value,
            "amount": str(self.amount),
            "status": self.status.value,
            "description": self.description,
            "target_account": self.target_account,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        return cls(
            transaction_id=data["transaction_id"],
            account_number=data["account_number"],
            transaction_type=TransactionType(data["transaction_type"]),
            amount=Decimal(data["amount"]),
            status=TransactionStatus(data["status"]),
            description=data.get("description") or "",
            target_account=data.get("target_account"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class LedgerStatistics:
    """Counts by type and by status"""
    total: int = 0
    by_type: Dict[TransactionType, int] = field(
        default_factory=lambda: {t: 0 for t in TransactionType}
    )
    by_status: Dict[TransactionStatus, int] = field(
        default_factory=lambda: {s: 0 for s in TransactionStatus}
    )

    def to_dict(self) -> Dict[str, int]:
        return {
            "TOTAL": self.total,
            "DEPOSITS": self.by_type[TransactionType.DEPOSIT],
            "WITHDRAWALS": self.by_type[TransactionType.WITHDRAWAL],
            "TRANSFERS": self.by_type[TransactionType.TRANSFER],
            "SUCCESSFUL": self.by_status[TransactionStatus.SUCCESS],
            "FAILED": self.by_status[TransactionStatus.FAILED],
        }


class TransactionLedger:
    """In-memory append-only transaction log with durable backfill"""

    def __init__(
        self,
        persistence: Optional['Persistence'] = None,
        backfill_threshold: int = 10
    ):
        self.persistence = persistence
        self.backfill_threshold = backfill_threshold
        self.logger = get_logger("banking_ledger.ledger")
        self._transactions: List[Transaction] = []
        self._lock = threading.Lock()

    def append(self, transaction: Transaction) -> None:
        """Record a transaction and forward it to persistence"""
        with self._lock:
            self._transactions.append(transaction)

        if self.persistence is not None:
            call_best_effort(
                self.logger, f"Persisting transaction {transaction.transaction_id}",
                self.persistence.append_transaction_record, transaction
            )

    def history_for(self, account_number: str) -> List[Transaction]:
        """
        Transactions where the account is source or target, most recent first

        With fewer than ``backfill_threshold`` in-memory matches, persisted
        history is merged in (deduplicated by transaction id) before sorting.
        """
        with self._lock:
            matches = [t for t in self._transactions if t.involves(account_number)]

        if len(matches) < self.backfill_threshold and self.persistence is not None:
            stored = call_best_effort(
                self.logger, f"Loading transaction history for {account_number}",
                self.persistence.load_transaction_history, account_number
            ) or []
            seen = {t.transaction_id for t in matches}
            for transaction in stored:
                if transaction.transaction_id not in seen:
                    seen.add(transaction.transaction_id)
                    matches.append(transaction)

        # Ties on timestamp keep append order, newest append first
        ordered = sorted(
            enumerate(matches), key=lambda item: (item[1].timestamp, item[0]), reverse=True
        )
        return [transaction for _, transaction in ordered]

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        with self._lock:
            for transaction in self._transactions:
                if transaction.transaction_id == transaction_id:
                    return transaction
        return None

    def all_transactions(self) -> List[Transaction]:
        with self._lock:
            return list(self._transactions)

    def count(self) -> int:
        with self._lock:
            return len(self._transactions)

    def statistics(self) -> LedgerStatistics:
        stats = LedgerStatistics()
        for transaction in self.all_transactions():
            stats.total += 1
            stats.by_type[transaction.transaction_type] += 1
            stats.by_status[transaction.status] += 1
        return stats

    def total_successful_volume(self) -> Decimal:
        """Sum of amounts of successful transactions"""
        return sum(
            (t.amount for t in self.all_transactions() if t.is_successful), ZERO
        )

    def clear(self) -> None:
        """Drop the in-memory log; durable history is untouched"""
        with self._lock:
            self._transactions.clear()
        self.logger.info("Transaction history cleared from memory")
