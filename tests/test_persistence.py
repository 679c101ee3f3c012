"""
Tests for the persistence collaborator and write-behind queue
"""

import pytest
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from banking_ledger.accounts import Account
from banking_ledger.alerts import AlertType
from banking_ledger.errors import PersistenceUnavailableError
from banking_ledger.ledger import Transaction, TransactionStatus, TransactionType
from banking_ledger.persistence import (
    Persistence, StoragePersistence, WriteBehindPersistence
)
from banking_ledger.storage import InMemoryStorage, SQLiteStorage


def make_transaction(n, account="ACC001", target=None):
    return Transaction(
        transaction_id=f"TXN{n:04d}",
        account_number=account,
        transaction_type=TransactionType.TRANSFER if target else TransactionType.DEPOSIT,
        amount=Decimal("10.00"),
        status=TransactionStatus.SUCCESS,
        target_account=target,
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=n),
    )


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "ledger.db")
    yield backend
    backend.close()


class TestStoragePersistence:
    """Persistence over both storage backends"""

    def test_account_round_trip(self, storage):
        persistence = StoragePersistence(storage)
        account = Account("ACC001", "John Doe", Decimal("1250.50"), "john@example.com")

        persistence.sync_account(account)
        loaded = persistence.load_all_accounts()

        assert len(loaded) == 1
        assert loaded[0].account_number == account.account_number
        assert loaded[0].holder_name == account.holder_name
        assert loaded[0].balance == account.balance
        assert loaded[0].email == account.email

    def test_sync_updates_existing_row(self, storage):
        persistence = StoragePersistence(storage)
        account = Account("ACC001", "John Doe", Decimal("10"))
        persistence.sync_account(account)
        account.balance = Decimal("20.00")
        persistence.sync_account(account)

        loaded = persistence.load_all_accounts()
        assert len(loaded) == 1
        assert loaded[0].balance == Decimal("20.00")

    def test_history_newest_first_and_limited(self, storage):
        persistence = StoragePersistence(storage, history_limit=3)
        for n in range(1, 6):
            persistence.append_transaction_record(make_transaction(n))
        persistence.append_transaction_record(make_transaction(6, "ACC002", "ACC001"))
        persistence.append_transaction_record(make_transaction(7, "ACC002"))

        history = persistence.load_transaction_history("ACC001")
        assert [t.transaction_id for t in history] == ["TXN0006", "TXN0005", "TXN0004"]

    def test_alert_records(self, storage):
        persistence = StoragePersistence(storage)
        persistence.append_alert_record("ACC001", AlertType.LOW_BALANCE, "low")
        persistence.append_alert_record("ACC002", AlertType.OVERDRAFT_ATTEMPT, "declined")

        records = persistence.load_alert_records("ACC001")
        assert len(records) == 1
        assert records[0]["alert_type"] == "LOW_BALANCE"
        assert len(persistence.load_alert_records()) == 2

    def test_closed_backend_raises_unavailable(self, storage):
        persistence = StoragePersistence(storage)
        storage.close()
        with pytest.raises(PersistenceUnavailableError):
            persistence.sync_account(Account("ACC001", "John Doe", Decimal("1")))
        with pytest.raises(PersistenceUnavailableError):
            persistence.load_all_accounts()


class SlowPersistence(StoragePersistence):
    """Delegate whose writes wait for a gate"""

    def __init__(self):
        super().__init__(InMemoryStorage())
        self.gate = threading.Event()
        self.closed = False

    def sync_account(self, account):
        self.gate.wait(5)
        super().sync_account(account)

    def close(self):
        self.closed = True


class TestWriteBehindPersistence:
    """Background writer semantics"""

    def test_writes_do_not_block_caller(self):
        delegate = SlowPersistence()
        persistence = WriteBehindPersistence(delegate)
        try:
            persistence.sync_account(Account("ACC001", "John Doe", Decimal("1")))
            assert persistence.pending() >= 1

            delegate.gate.set()
            assert persistence.flush(5)
            assert persistence.pending() == 0
            assert delegate.storage.exists("accounts", "ACC001")
        finally:
            delegate.gate.set()
            persistence.close()

    def test_reads_see_earlier_writes(self):
        persistence = WriteBehindPersistence(StoragePersistence(InMemoryStorage()))
        try:
            persistence.append_transaction_record(make_transaction(1))
            persistence.append_transaction_record(make_transaction(2))
            history = persistence.load_transaction_history("ACC001")
            assert [t.transaction_id for t in history] == ["TXN0002", "TXN0001"]
        finally:
            persistence.close()

    def test_failed_write_does_not_stop_worker(self):
        storage = InMemoryStorage()

        class FlakyPersistence(StoragePersistence):
            calls = 0

            def append_transaction_record(self, transaction):
                FlakyPersistence.calls += 1
                if FlakyPersistence.calls == 1:
                    raise PersistenceUnavailableError("transient")
                super().append_transaction_record(transaction)

        persistence = WriteBehindPersistence(FlakyPersistence(storage))
        try:
            persistence.append_transaction_record(make_transaction(1))
            persistence.append_transaction_record(make_transaction(2))
            assert persistence.flush(5)
            assert storage.count("transactions") == 1
        finally:
            persistence.close()

    def test_close_drains_and_closes_delegate(self):
        delegate = SlowPersistence()
        delegate.gate.set()
        persistence = WriteBehindPersistence(delegate)
        persistence.sync_account(Account("ACC001", "John Doe", Decimal("1")))
        persistence.close()

        assert delegate.closed
        assert delegate.storage.exists("accounts", "ACC001")
        # Writes after close go straight to the delegate
        persistence.sync_account(Account("ACC002", "Jane Smith", Decimal("2")))
        assert delegate.storage.exists("accounts", "ACC002")
        assert persistence.flush() is True


def test_base_defaults():
    class Minimal(Persistence):
        def sync_account(self, account):
            pass

        def append_transaction_record(self, transaction):
            pass

        def append_alert_record(self, account_number, alert_type, message):
            pass

        def load_all_accounts(self):
            return []

        def load_transaction_history(self, account_number):
            return []

    minimal = Minimal()
    assert minimal.load_alert_records() == []
    assert minimal.flush() is True
    minimal.close()
