"""
Banking System Composition

Builds every component once, in dependency order, and passes references
explicitly: storage -> persistence -> account store / ledger -> alert
monitor -> transaction engine.
"""

from typing import Optional

from .accounts import AccountStore
from .alerts import BalanceAlertMonitor
from .config import BankingConfig, get_config
from .ledger import TransactionLedger
from .logging_config import get_logger
from .notifications import Notifier, create_notifier
from .persistence import Persistence, StoragePersistence, WriteBehindPersistence
from .storage import StorageInterface, create_storage
from .transactions import TransactionEngine


SAMPLE_ACCOUNTS = [
    ("ACC001", "John Doe", "1000.00", "john.doe@email.com"),
    ("ACC002", "Jane Smith", "2500.00", "jane.smith@email.com"),
    ("ACC003", "Bob Johnson", "500.00", "bob.johnson@email.com"),
    ("ACC004", "Alice Brown", "7500.00", "alice.brown@email.com"),
    ("ACC005", "Charlie Wilson", "300.00", "charlie.wilson@email.com"),
]


class BankingSystem:
    """Ledger core with all components initialized"""

    def __init__(
        self,
        config: Optional[BankingConfig] = None,
        storage: Optional[StorageInterface] = None,
        notifier: Optional[Notifier] = None
    ):
        self.config = config or get_config()
        self.logger = get_logger("banking_ledger.system")

        # Persistence is optional; without it the core runs in memory only
        self.storage = storage if storage is not None else create_storage(self.config.database_url)
        self.persistence = self._create_persistence()

        self.account_store = AccountStore(self.persistence)
        self.ledger = TransactionLedger(
            self.persistence, backfill_threshold=self.config.history_backfill_threshold
        )
        self.notifier = notifier or create_notifier(self.config)
        self.alert_monitor = BalanceAlertMonitor(
            self.account_store,
            notifier=self.notifier,
            persistence=self.persistence,
            low_threshold=self.config.default_low_threshold,
            high_threshold=self.config.high_threshold,
            check_interval=self.config.check_interval_seconds,
            stop_timeout=self.config.monitor_stop_timeout_seconds,
        )
        self.engine = TransactionEngine(
            self.account_store,
            self.ledger,
            monitor=self.alert_monitor,
            max_amount=self.config.max_amount,
            check_alerts_on_transaction=self.config.alert_check_on_transaction,
        )

        loaded = self.account_store.load()
        if not loaded and self.config.seed_sample_accounts:
            self._seed_sample_accounts()

    def _create_persistence(self) -> Optional[Persistence]:
        if self.storage is None:
            self.logger.warning("No persistence backend configured; continuing in memory only")
            return None

        persistence: Persistence = StoragePersistence(
            self.storage, history_limit=self.config.history_db_limit
        )
        if self.config.persistence_write_behind:
            persistence = WriteBehindPersistence(persistence)
        return persistence

    def _seed_sample_accounts(self) -> None:
        for account_number, holder, balance, email in SAMPLE_ACCOUNTS:
            self.account_store.create_account(account_number, holder, balance, email)
        self.logger.info(f"Created {len(SAMPLE_ACCOUNTS)} sample accounts")

    def start(self) -> None:
        """Start background balance monitoring"""
        self.alert_monitor.start()

    def shutdown(self) -> None:
        """Stop monitoring, drain persistence writes and close storage"""
        self.alert_monitor.stop()
        if self.persistence is not None:
            self.persistence.close()
        if self.storage is not None:
            self.storage.close()
        self.logger.info("Banking system shut down")

    def __enter__(self) -> 'BankingSystem':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
