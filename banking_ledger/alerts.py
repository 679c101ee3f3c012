"""
Balance Alert Monitor Module

Scans account balances against a per-account low threshold and a global
high threshold. Each (account, alert type) pair is either inactive or
active: crossing into a breach sends exactly one notification and writes one
alert record, staying in breach sends nothing, and returning to range clears
the pair silently. Declined withdrawals and transfers are always reported.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Deque, Dict, List, Optional, Set, Tuple, TYPE_CHECKING
import threading
import uuid

from .accounts import Account, AccountStore
from .errors import InvalidAmountError, InvalidArgumentError, call_best_effort
from .logging_config import get_logger, log_action
from .money import format_amount, to_amount
from .notifications import LogNotifier, Notifier

if TYPE_CHECKING:
    from .persistence import Persistence


class AlertType(Enum):
    """Kinds of balance alert"""
    LOW_BALANCE = "LOW_BALANCE"
    THRESHOLD_BREACH = "THRESHOLD_BREACH"    # Above the global high threshold
    OVERDRAFT_ATTEMPT = "OVERDRAFT_ATTEMPT"  # Declined for insufficient funds


@dataclass(frozen=True)
class BalanceAlert:
    """A notification that was raised for an account"""
    account_number: str
    alert_type: AlertType
    subject: str
    message: str
    balance: Decimal
    threshold: Optional[Decimal] = None
    alert_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class BalanceAlertMonitor:
    """
    Threshold tracker with a periodic background check

    Thresholds and alert state are guarded by one lock. Account snapshots
    are taken while holding it, so an evaluation never acts on a balance
    older than the one a previous evaluation saw. Notifications go out after
    the lock is released.
    """

    def __init__(
        self,
        store: AccountStore,
        notifier: Optional[Notifier] = None,
        persistence: Optional['Persistence'] = None,
        low_threshold: Decimal = Decimal("100.00"),
        high_threshold: Decimal = Decimal("10000.00"),
        check_interval: float = 30,
        stop_timeout: float = 5.0,
        history_size: int = 1000
    ):
        self.store = store
        self.notifier = notifier or LogNotifier()
        self.persistence = persistence
        self.default_low_threshold = to_amount(low_threshold)
        self.high_threshold = to_amount(high_threshold)
        self.check_interval = check_interval
        self.stop_timeout = stop_timeout
        self.logger = get_logger("banking_ledger.alerts")

        self._thresholds: Dict[str, Decimal] = {}
        self._active: Set[Tuple[str, AlertType]] = set()
        self._history: Deque[BalanceAlert] = deque(maxlen=history_size)
        self._lock = threading.RLock()

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # Thresholds

    def set_threshold(self, account_number: str, value) -> List[BalanceAlert]:
        """
        Set an account's low-balance threshold and re-check it immediately

        Both alert flags of the account are cleared first, so a threshold
        that is already breached raises a fresh alert right away.

        Raises:
            InvalidArgumentError: Threshold is negative or not a number
            AccountNotFoundError: Unknown account
        """
        try:
            threshold = to_amount(value)
        except InvalidAmountError:
            raise InvalidArgumentError(f"Invalid threshold: {value!r}")
        if threshold < 0:
            raise InvalidArgumentError("Threshold cannot be negative")

        with self._lock:
            account = self.store.get_account(account_number)
            self._thresholds[account_number] = threshold
            self._active.discard((account_number, AlertType.LOW_BALANCE))
            self._active.discard((account_number, AlertType.THRESHOLD_BREACH))
            alerts = self._evaluate(account)

        log_action(
            self.logger, "info", f"Threshold for {account_number} set to {format_amount(threshold)}",
            action="set_threshold", resource=f"account:{account_number}",
            extra={"threshold": str(threshold)}
        )
        self._dispatch_all(alerts, account)
        return alerts

    def get_threshold(self, account_number: str) -> Decimal:
        with self._lock:
            return self._thresholds.get(account_number, self.default_low_threshold)

    def get_all_thresholds(self) -> Dict[str, Decimal]:
        """Explicitly set thresholds; other accounts use the default"""
        with self._lock:
            return dict(self._thresholds)

    # Checks

    def check_all(self) -> List[BalanceAlert]:
        """Evaluate every open account; returns the alerts newly raised"""
        raised: List[Tuple[BalanceAlert, Account]] = []
        with self._lock:
            for account in self.store.list_accounts(include_closed=True):
                if not account.is_active:
                    self._clear(account.account_number)
                    continue
                raised.extend((alert, account) for alert in self._evaluate(account))

        for alert, account in raised:
            self._dispatch(alert, account)
        return [alert for alert, _ in raised]

    def check_account(self, account_number: str) -> List[BalanceAlert]:
        """Evaluate one account; returns the alerts newly raised"""
        with self._lock:
            account = self.store.get_account(account_number)
            if not account.is_active:
                self._clear(account_number)
                return []
            alerts = self._evaluate(account)

        self._dispatch_all(alerts, account)
        return alerts

    def check_overdraft_attempt(
        self,
        account_number: str,
        attempted_amount: Decimal,
        current_balance: Decimal
    ) -> BalanceAlert:
        """Report a declined withdrawal or transfer; never suppressed"""
        account = self.store.get_account(account_number)
        shortfall = attempted_amount - current_balance
        alert = BalanceAlert(
            account_number=account_number,
            alert_type=AlertType.OVERDRAFT_ATTEMPT,
            subject=self._subject(AlertType.OVERDRAFT_ATTEMPT),
            message=(
                f"Dear {account.holder_name},\n\n"
                f"An attempt was made to withdraw {format_amount(attempted_amount)} from your "
                f"account {account_number}, but was declined due to insufficient funds.\n"
                f"Current balance: {format_amount(current_balance)}\n"
                f"Attempted amount: {format_amount(attempted_amount)}\n"
                f"Shortfall: {format_amount(shortfall)}\n\n"
                "Please ensure sufficient funds are available for transactions.\n\n"
                "Best regards,\nBanking System"
            ),
            balance=current_balance,
        )
        self._dispatch(alert, account)
        return alert

    def is_alert_active(self, account_number: str, alert_type: AlertType) -> bool:
        with self._lock:
            return (account_number, alert_type) in self._active

    def reset_notifications(self) -> None:
        """Forget every active flag; breaches will be reported again"""
        with self._lock:
            self._active.clear()
        self.logger.info("Notification tracking reset")

    def recent_alerts(self, account_number: Optional[str] = None) -> List[BalanceAlert]:
        """Alerts raised since start-up, oldest first"""
        with self._lock:
            alerts = list(self._history)
        if account_number is not None:
            alerts = [a for a in alerts if a.account_number == account_number]
        return alerts

    def _clear(self, account_number: str) -> None:
        self._active.discard((account_number, AlertType.LOW_BALANCE))
        self._active.discard((account_number, AlertType.THRESHOLD_BREACH))

    def _evaluate(self, account: Account) -> List[BalanceAlert]:
        """Apply the inactive/active transitions; caller holds the lock"""
        number = account.account_number
        low = self._thresholds.get(number, self.default_low_threshold)
        checks = (
            (AlertType.LOW_BALANCE, account.balance < low, low),
            (AlertType.THRESHOLD_BREACH, account.balance > self.high_threshold, self.high_threshold),
        )

        alerts = []
        for alert_type, breached, threshold in checks:
            key = (number, alert_type)
            if not breached:
                self._active.discard(key)
            elif key not in self._active:
                self._active.add(key)
                alerts.append(self._build_alert(account, alert_type, threshold))
        return alerts

    def _build_alert(self, account: Account, alert_type: AlertType, threshold: Decimal) -> BalanceAlert:
        if alert_type == AlertType.LOW_BALANCE:
            message = (
                f"Dear {account.holder_name},\n\n"
                f"Your account {account.account_number} has a low balance of "
                f"{format_amount(account.balance)}, which is below the threshold of "
                f"{format_amount(threshold)}.\n"
                "Please consider depositing funds to avoid any inconvenience.\n\n"
                "Best regards,\nBanking System"
            )
        else:
            message = (
                f"Dear {account.holder_name},\n\n"
                f"Your account {account.account_number} has a high balance of "
                f"{format_amount(account.balance)}.\n"
                "This is for your information. If this is unexpected, please contact "
                "customer support.\n\n"
                "Best regards,\nBanking System"
            )
        return BalanceAlert(
            account_number=account.account_number,
            alert_type=alert_type,
            subject=self._subject(alert_type),
            message=message,
            balance=account.balance,
            threshold=threshold,
        )

    @staticmethod
    def _subject(alert_type: AlertType) -> str:
        return "Banking System Alert - " + alert_type.value.replace("_", " ")

    def _dispatch_all(self, alerts: List[BalanceAlert], account: Account) -> None:
        for alert in alerts:
            self._dispatch(alert, account)

    def _dispatch(self, alert: BalanceAlert, account: Account) -> None:
        """Notify, record and log one alert; collaborator failures are swallowed"""
        with self._lock:
            self._history.append(alert)

        delivered = call_best_effort(
            self.logger, f"Sending {alert.alert_type.value} notification for {alert.account_number}",
            self.notifier.send, account.email, alert.subject, alert.message
        )
        # None means the send raised and was already logged
        if delivered is not None and not delivered:
            log_action(
                self.logger, "warning",
                f"{alert.alert_type.value} notification for {alert.account_number} was not delivered",
                action="send_notification", resource=f"account:{alert.account_number}",
                extra={"alert_id": alert.alert_id, "channel": type(self.notifier).__name__}
            )
        if self.persistence is not None:
            call_best_effort(
                self.logger, f"Recording {alert.alert_type.value} alert for {alert.account_number}",
                self.persistence.append_alert_record,
                alert.account_number, alert.alert_type, alert.message
            )

        log_action(
            self.logger, "warning", f"Balance alert: {alert.alert_type.value} for {alert.account_number}",
            action="balance_alert", resource=f"account:{alert.account_number}",
            extra={
                "alert_id": alert.alert_id,
                "balance": str(alert.balance),
                "threshold": str(alert.threshold) if alert.threshold is not None else None,
            }
        )

    # Background monitoring

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Check immediately, then every ``check_interval`` seconds"""
        if self.is_running:
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop_event,), name="balance-monitor", daemon=True
        )
        self._thread.start()
        self.logger.info(f"Balance monitoring started (interval: {self.check_interval} seconds)")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self.check_all()
            except Exception as e:
                self.logger.error(f"Error in balance monitoring: {e}", exc_info=True)
            if stop_event.wait(self.check_interval):
                break

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Signal the monitor loop and wait for an in-flight check

        Returns:
            True if the thread finished within the timeout. A thread still
            busy afterwards is abandoned; it is a daemon and dies with the
            process.
        """
        thread = self._thread
        if thread is None:
            return True

        self._stop_event.set()
        thread.join(self.stop_timeout if timeout is None else timeout)
        if thread.is_alive():
            self.logger.warning("Balance monitor did not stop in time; abandoning thread")
            self._thread = None
            return False

        self._thread = None
        self.logger.info("Balance monitoring stopped")
        return True
