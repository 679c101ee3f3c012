"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based
configuration. Settings can also be built from the dotted property names used
by the legacy properties file (``alert.low_balance_threshold`` and friends).
"""

from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


# Dotted property name -> settings field
PROPERTY_ALIASES: Dict[str, str] = {
    "alert.low_balance_threshold": "low_balance_threshold",
    "alert.high_balance_threshold": "high_balance_threshold",
    "alert.check_interval_seconds": "check_interval_seconds",
    "transaction.max_amount": "max_transaction_amount",
    "database.url": "database_url",
    "email.log_directory": "email_log_directory",
    "logging.level": "log_level",
}


class BankingConfig(BaseSettings):
    """Banking ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="BANKING_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Persistence configuration
    database_url: str = "sqlite:///banking_ledger.db"  # "memory://" or "" also accepted
    persistence_write_behind: bool = True
    history_backfill_threshold: int = 10
    history_db_limit: int = 100

    # Business rules configuration
    max_transaction_amount: str = "1000000.00"

    # Alert configuration
    low_balance_threshold: float = 100.0
    high_balance_threshold: float = 10000.0
    check_interval_seconds: int = 30
    monitor_stop_timeout_seconds: float = 5.0
    alert_check_on_transaction: bool = True

    # Notification configuration
    notification_channel: str = "log"  # log, file or webhook
    email_log_directory: str = "email_logs"
    webhook_url: str = ""
    webhook_timeout: float = 5.0

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Demo data
    seed_sample_accounts: bool = False

    @property
    def max_amount(self) -> Decimal:
        """Transaction ceiling as Decimal"""
        return Decimal(self.max_transaction_amount)

    @property
    def default_low_threshold(self) -> Decimal:
        return Decimal(str(self.low_balance_threshold))

    @property
    def high_threshold(self) -> Decimal:
        return Decimal(str(self.high_balance_threshold))

    @classmethod
    def from_properties(cls, properties: Mapping[str, Any], **overrides: Any) -> "BankingConfig":
        """
        Build settings from a read-only key/value source.

        Unknown keys are ignored and values that cannot be parsed fall back to
        the field default, mirroring the lenient getters of the properties file.

        Args:
            properties: Mapping of dotted property names to raw values
            **overrides: Explicit field values applied last

        Returns:
            BankingConfig instance
        """
        values: Dict[str, Any] = {}
        for key, raw in properties.items():
            if key == "email.enabled":
                if str(raw).strip().lower() == "true":
                    values["notification_channel"] = "file"
                continue

            field_name = PROPERTY_ALIASES.get(key)
            if field_name is None:
                continue

            parsed = _parse_property(cls, field_name, raw)
            if parsed is not None:
                values[field_name] = parsed

        values.update(overrides)
        return cls(**values)


def _parse_property(config_cls, field_name: str, raw: Any) -> Any:
    """Coerce a raw property value to the field's type, or None if unparsable"""
    annotation = config_cls.model_fields[field_name].annotation
    text = str(raw).strip()
    try:
        if annotation is float:
            return float(text)
        if annotation is int:
            return int(text)
        if field_name == "max_transaction_amount":
            return str(Decimal(text))
    except (ValueError, ArithmeticError):
        return None
    return text


# Global configuration instance
config = BankingConfig()


def get_config() -> BankingConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BankingConfig:
    """Reload configuration from environment"""
    global config
    config = BankingConfig()
    return config
