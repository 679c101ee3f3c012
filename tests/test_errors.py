"""
Tests for the error hierarchy and best-effort calls
"""

import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from banking_ledger.errors import (
    AccountClosedError, AccountNotFoundError, BankingError, DuplicateAccountError, ErrorKind,
    InsufficientFundsError, InvalidAmountError, PersistenceUnavailableError,
    call_best_effort
)


class TestErrors:

    def test_kinds(self):
        assert InvalidAmountError("bad").kind == ErrorKind.INVALID_AMOUNT
        assert AccountNotFoundError("A1").kind == ErrorKind.ACCOUNT_NOT_FOUND
        assert DuplicateAccountError("A1").kind == ErrorKind.DUPLICATE_ACCOUNT
        assert AccountClosedError("A1").kind == ErrorKind.ACCOUNT_CLOSED
        assert AccountClosedError("A1").to_dict()["account_number"] == "A1"
        assert PersistenceUnavailableError("down").kind == ErrorKind.PERSISTENCE_UNAVAILABLE

    def test_builtin_bases(self):
        assert isinstance(InvalidAmountError("bad"), ValueError)
        assert isinstance(AccountNotFoundError("A1"), LookupError)
        assert isinstance(DuplicateAccountError("A1"), BankingError)

    def test_insufficient_funds(self):
        error = InsufficientFundsError("A1", Decimal("1000.00"), Decimal("1500.00"))
        assert error.shortfall == Decimal("500.00")
        assert str(error) == (
            "Insufficient funds. Current balance: 1000.00, Requested: 1500.00, Shortfall: 500.00"
        )
        assert error.to_dict() == {
            "error": "insufficient_funds",
            "message": str(error),
            "account_number": "A1",
            "current_balance": "1000.00",
            "requested_amount": "1500.00",
            "shortfall": "500.00",
        }


class TestCallBestEffort:

    def test_returns_result(self):
        logger = MagicMock()
        assert call_best_effort(logger, "Adding", lambda a, b: a + b, 1, 2) == 3
        logger.error.assert_not_called()

    def test_swallows_and_logs(self):
        logger = MagicMock()

        def fail():
            raise PersistenceUnavailableError("database offline")

        assert call_best_effort(logger, "Syncing account A1", fail) is None
        message = logger.error.call_args[0][0]
        assert message == "Syncing account A1 failed: database offline"
        assert logger.error.call_args[1]["exc_info"] is True

    def test_does_not_swallow_keyboard_interrupt(self):
        def interrupt():
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            call_best_effort(MagicMock(), "Interrupted", interrupt)
