"""
Tests for configuration management
"""

import pytest
from decimal import Decimal

from banking_ledger import config as config_module
from banking_ledger.config import BankingConfig, get_config, reload_config


class TestBankingConfig:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("BANKING_LOW_BALANCE_THRESHOLD", raising=False)
        settings = BankingConfig(_env_file=None)

        assert settings.default_low_threshold == Decimal("100.0")
        assert settings.high_threshold == Decimal("10000.0")
        assert settings.max_amount == Decimal("1000000.00")
        assert settings.check_interval_seconds == 30
        assert settings.notification_channel == "log"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("BANKING_LOW_BALANCE_THRESHOLD", "250.5")
        monkeypatch.setenv("BANKING_DATABASE_URL", "memory://")
        monkeypatch.setenv("BANKING_PERSISTENCE_WRITE_BEHIND", "false")

        settings = BankingConfig(_env_file=None)
        assert settings.default_low_threshold == Decimal("250.5")
        assert settings.database_url == "memory://"
        assert settings.persistence_write_behind is False

    def test_reload_config(self, monkeypatch):
        original = get_config()
        monkeypatch.setenv("BANKING_API_PORT", "9100")
        try:
            assert reload_config().api_port == 9100
            assert get_config() is config_module.config
        finally:
            config_module.config = original


class TestFromProperties:
    """Dotted property names of the properties file"""

    def test_aliases(self):
        settings = BankingConfig.from_properties({
            "alert.low_balance_threshold": "50.0",
            "alert.high_balance_threshold": "20000",
            "alert.check_interval_seconds": "10",
            "transaction.max_amount": "5000.00",
            "database.url": "memory://",
            "email.log_directory": "/tmp/emails",
            "logging.level": "DEBUG",
        })

        assert settings.default_low_threshold == Decimal("50.0")
        assert settings.high_threshold == Decimal("20000.0")
        assert settings.check_interval_seconds == 10
        assert settings.max_amount == Decimal("5000.00")
        assert settings.database_url == "memory://"
        assert settings.email_log_directory == "/tmp/emails"
        assert settings.log_level == "DEBUG"

    def test_email_enabled_selects_file_channel(self):
        assert BankingConfig.from_properties({"email.enabled": "true"}).notification_channel == "file"
        assert BankingConfig.from_properties({"email.enabled": "false"}).notification_channel == "log"

    def test_unparsable_values_fall_back(self, monkeypatch):
        monkeypatch.delenv("BANKING_CHECK_INTERVAL_SECONDS", raising=False)
        monkeypatch.delenv("BANKING_MAX_TRANSACTION_AMOUNT", raising=False)
        settings = BankingConfig.from_properties({
            "alert.check_interval_seconds": "often",
            "transaction.max_amount": "a lot",
            "unknown.key": "ignored",
        })
        assert settings.check_interval_seconds == 30
        assert settings.max_amount == Decimal("1000000.00")

    def test_overrides_win(self):
        settings = BankingConfig.from_properties(
            {"alert.check_interval_seconds": "10"}, check_interval_seconds=1
        )
        assert settings.check_interval_seconds == 1
