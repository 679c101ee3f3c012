"""
Persistence Collaborator Module

Durable side channel of the ledger core. The in-memory store and ledger stay
authoritative: every call here is best-effort, and callers log and swallow
failures. ``StoragePersistence`` maps the collaborator onto a document
storage backend; ``WriteBehindPersistence`` moves writes onto a background
worker so foreground operations never wait on the backend.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional
import queue
import sqlite3
import threading
import uuid

from .accounts import Account
from .errors import PersistenceUnavailableError
from .ledger import Transaction
from .logging_config import get_logger
from .storage import StorageInterface


class Persistence(ABC):
    """Durable backend consumed by the account store, ledger and alert monitor"""

    @abstractmethod
    def sync_account(self, account: Account) -> None:
        """Insert or update an account row"""

    @abstractmethod
    def append_transaction_record(self, transaction: Transaction) -> None:
        """Append an immutable transaction record"""

    @abstractmethod
    def append_alert_record(self, account_number: str, alert_type: Any, message: str) -> None:
        """Append a balance alert log entry"""

    @abstractmethod
    def load_all_accounts(self) -> List[Account]:
        """Load every stored account"""

    @abstractmethod
    def load_transaction_history(self, account_number: str) -> List[Transaction]:
        """Stored transactions touching the account, most recent first"""

    def load_alert_records(self, account_number: Optional[str] = None) -> List[Dict[str, Any]]:
        """Stored alert entries, oldest first"""
        return []

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for pending writes; True when nothing is left pending"""
        return True

    def close(self) -> None:
        """Release background resources"""


class StoragePersistence(Persistence):
    """Persistence over a StorageInterface document store"""

    ACCOUNTS_TABLE = "accounts"
    TRANSACTIONS_TABLE = "transactions"
    ALERTS_TABLE = "balance_alerts"

    def __init__(self, storage: StorageInterface, history_limit: int = 100):
        self.storage = storage
        self.history_limit = history_limit

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        """Surface backend failures as PersistenceUnavailableError"""
        try:
            yield
        except (sqlite3.Error, RuntimeError, OSError) as e:
            raise PersistenceUnavailableError(f"{operation}: {e}") from e

    def sync_account(self, account: Account) -> None:
        with self._guard("sync_account"):
            self.storage.save(self.ACCOUNTS_TABLE, account.account_number, account.to_dict())

    def append_transaction_record(self, transaction: Transaction) -> None:
        with self._guard("append_transaction_record"):
            self.storage.save(
                self.TRANSACTIONS_TABLE, transaction.transaction_id, transaction.to_dict()
            )

    def append_alert_record(self, account_number: str, alert_type: Any, message: str) -> None:
        alert_id = str(uuid.uuid4())
        record = {
            "alert_id": alert_id,
            "account_number": account_number,
            "alert_type": getattr(alert_type, "value", alert_type),
            "message": message,
            "alert_date": datetime.now(timezone.utc).isoformat(),
        }
        with self._guard("append_alert_record"):
            self.storage.save(self.ALERTS_TABLE, alert_id, record)

    def load_all_accounts(self) -> List[Account]:
        with self._guard("load_all_accounts"):
            rows = self.storage.load_all(self.ACCOUNTS_TABLE)
        return [Account.from_dict(row) for row in rows]

    def load_transaction_history(self, account_number: str) -> List[Transaction]:
        with self._guard("load_transaction_history"):
            rows = self.storage.find_any(
                self.TRANSACTIONS_TABLE, ["account_number", "target_account"], account_number
            )
        transactions = [Transaction.from_dict(row) for row in rows]
        transactions.sort(key=lambda t: t.timestamp, reverse=True)
        return transactions[:self.history_limit]

    def load_alert_records(self, account_number: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._guard("load_alert_records"):
            if account_number is None:
                return self.storage.load_all(self.ALERTS_TABLE)
            return self.storage.find(self.ALERTS_TABLE, {"account_number": account_number})


_STOP = object()


class WriteBehindPersistence(Persistence):
    """
    Queues writes for a single worker thread

    Writes are applied in submission order. Reads go straight to the
    delegate after draining pending writes, so a read never misses a write
    made before it.
    """

    def __init__(self, delegate: Persistence, flush_timeout: float = 5.0):
        self.delegate = delegate
        self.flush_timeout = flush_timeout
        self.logger = get_logger("banking_ledger.persistence")
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._closed = False
        self._lock = threading.Lock()
        self._worker = threading.Thread(
            target=self._run, name="persistence-writer", daemon=True
        )
        self._worker.start()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                if isinstance(item, threading.Event):
                    item.set()
                    continue
                description, func, args = item
                try:
                    func(*args)
                except Exception as e:
                    self.logger.error(f"{description} failed: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    def _submit(self, description: str, func: Callable[..., None], *args: Any) -> None:
        with self._lock:
            if not self._closed:
                self._queue.put((description, func, args))
                return
        # Worker is gone; fall back to a direct write
        func(*args)

    def sync_account(self, account: Account) -> None:
        self._submit(
            f"Syncing account {account.account_number}", self.delegate.sync_account, account
        )

    def append_transaction_record(self, transaction: Transaction) -> None:
        self._submit(
            f"Persisting transaction {transaction.transaction_id}",
            self.delegate.append_transaction_record, transaction
        )

    def append_alert_record(self, account_number: str, alert_type: Any, message: str) -> None:
        self._submit(
            f"Persisting alert for {account_number}",
            self.delegate.append_alert_record, account_number, alert_type, message
        )

    def load_all_accounts(self) -> List[Account]:
        self.flush(self.flush_timeout)
        return self.delegate.load_all_accounts()

    def load_transaction_history(self, account_number: str) -> List[Transaction]:
        self.flush(self.flush_timeout)
        return self.delegate.load_transaction_history(account_number)

    def load_alert_records(self, account_number: Optional[str] = None) -> List[Dict[str, Any]]:
        self.flush(self.flush_timeout)
        return self.delegate.load_alert_records(account_number)

    def pending(self) -> int:
        return self._queue.unfinished_tasks

    def flush(self, timeout: Optional[float] = None) -> bool:
        with self._lock:
            if self._closed:
                return True
            marker = threading.Event()
            self._queue.put(marker)
        return marker.wait(timeout)

    def close(self) -> None:
        """Drain pending writes and stop the worker"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_STOP)
        self._worker.join(self.flush_timeout)
        if self._worker.is_alive():
            self.logger.warning(
                f"Persistence writer still busy after {self.flush_timeout}s; "
                f"{self.pending()} writes abandoned"
            )
        self.delegate.close()
