"""
Tests for the transaction ledger
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from banking_ledger.ledger import (
    Transaction, TransactionLedger, TransactionStatus, TransactionType,
    generate_transaction_id
)
from banking_ledger.persistence import StoragePersistence
from banking_ledger.storage import InMemoryStorage


BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_transaction(n, account="ACC001", target=None,
                     transaction_type=TransactionType.DEPOSIT,
                     status=TransactionStatus.SUCCESS, amount="10.00"):
    return Transaction(
        transaction_id=f"TXN{n:04d}",
        account_number=account,
        transaction_type=transaction_type,
        amount=Decimal(amount),
        status=status,
        target_account=target,
        timestamp=BASE_TIME + timedelta(minutes=n),
    )


class TestTransaction:
    """Test Transaction record"""

    def test_generate_transaction_id(self):
        first = generate_transaction_id()
        second = generate_transaction_id()
        assert first.startswith("TXN")
        assert first != second

    def test_involves_source_and_target(self):
        transfer = make_transaction(1, "ACC001", "ACC002", TransactionType.TRANSFER)
        assert transfer.involves("ACC001")
        assert transfer.involves("ACC002")
        assert not transfer.involves("ACC003")

    def test_dict_round_trip(self):
        transfer = make_transaction(1, "ACC001", "ACC002", TransactionType.TRANSFER,
                                    TransactionStatus.FAILED)
        assert Transaction.from_dict(transfer.to_dict()) == transfer
        assert not transfer.is_successful

    def test_is_immutable(self):
        transaction = make_transaction(1)
        with pytest.raises(AttributeError):
            transaction.amount = Decimal("1")


class TestTransactionLedger:
    """Test in-memory ledger behaviour"""

    def setup_method(self):
        self.ledger = TransactionLedger()

    def test_history_most_recent_first(self):
        for n in (1, 3, 2):
            self.ledger.append(make_transaction(n))
        self.ledger.append(make_transaction(4, account="ACC002"))

        history = self.ledger.history_for("ACC001")
        assert [t.transaction_id for t in history] == ["TXN0003", "TXN0002", "TXN0001"]

    def test_history_includes_incoming_transfers(self):
        self.ledger.append(make_transaction(1, "ACC002", "ACC001", TransactionType.TRANSFER))
        assert [t.transaction_id for t in self.ledger.history_for("ACC001")] == ["TXN0001"]

    def test_equal_timestamps_keep_latest_append_first(self):
        first = make_transaction(1)
        second = Transaction(
            transaction_id="TXN9999", account_number="ACC001",
            transaction_type=TransactionType.WITHDRAWAL, amount=Decimal("1.00"),
            status=TransactionStatus.SUCCESS, timestamp=first.timestamp
        )
        self.ledger.append(first)
        self.ledger.append(second)
        assert [t.transaction_id for t in self.ledger.history_for("ACC001")] == ["TXN9999", "TXN0001"]

    def test_statistics_and_volume(self):
        self.ledger.append(make_transaction(1, amount="100.00"))
        self.ledger.append(make_transaction(2, transaction_type=TransactionType.WITHDRAWAL,
                                            status=TransactionStatus.FAILED, amount="500.00"))
        self.ledger.append(make_transaction(3, "ACC001", "ACC002", TransactionType.TRANSFER,
                                            amount="25.50"))

        stats = self.ledger.statistics().to_dict()
        assert stats == {
            "TOTAL": 3, "DEPOSITS": 1, "WITHDRAWALS": 1, "TRANSFERS": 1,
            "SUCCESSFUL": 2, "FAILED": 1,
        }
        assert self.ledger.total_successful_volume() == Decimal("125.50")

    def test_get_transaction(self):
        self.ledger.append(make_transaction(1))
        assert self.ledger.get_transaction("TXN0001").amount == Decimal("10.00")
        assert self.ledger.get_transaction("missing") is None

    def test_clear(self):
        self.ledger.append(make_transaction(1))
        self.ledger.clear()
        assert self.ledger.count() == 0


class TestLedgerBackfill:
    """History backfill from persistence"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.persistence = StoragePersistence(self.storage)

    def test_backfills_and_deduplicates(self):
        # Older activity only in storage, newer activity both in memory and storage
        for n in (1, 2):
            self.persistence.append_transaction_record(make_transaction(n))
        ledger = TransactionLedger(self.persistence, backfill_threshold=10)
        ledger.append(make_transaction(3))

        history = ledger.history_for("ACC001")
        assert [t.transaction_id for t in history] == ["TXN0003", "TXN0002", "TXN0001"]

    def test_no_backfill_when_memory_has_enough(self):
        self.persistence.append_transaction_record(make_transaction(1))
        ledger = TransactionLedger(self.persistence, backfill_threshold=2)
        ledger.append(make_transaction(2))
        ledger.append(make_transaction(3))

        history = ledger.history_for("ACC001")
        assert [t.transaction_id for t in history] == ["TXN0003", "TXN0002"]

    def test_backfill_failure_falls_back_to_memory(self):
        ledger = TransactionLedger(self.persistence)
        ledger.append(make_transaction(1))
        self.storage.close()

        history = ledger.history_for("ACC001")
        assert [t.transaction_id for t in history] == ["TXN0001"]
