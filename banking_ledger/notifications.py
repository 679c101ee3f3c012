"""
Notification Channels Module

Fire-and-forget delivery of balance alerts. Real email delivery is not
supported: the email channels either log the message or write it to an
email log directory, and the webhook channel posts JSON to an HTTP endpoint.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union
import threading
import uuid

import requests

from .config import BankingConfig
from .logging_config import get_logger


class Notifier(ABC):
    """Abstract base class for notification channels"""

    @abstractmethod
    def send(self, address: str, subject: str, body: str) -> bool:
        """Deliver a message. Returns True if successful."""


class LogNotifier(Notifier):
    """Simulated email: the message only goes to the log"""

    def __init__(self, logger=None):
        self.logger = logger or get_logger("banking_ledger.notifications")

    def send(self, address: str, subject: str, body: str) -> bool:
        self.logger.info(
            f"EMAIL ALERT (simulated) to {address or '<no address>'}: {subject}",
            extra={"action": "send_notification", "extra": {"body": body}}
        )
        return True


class FileEmailNotifier(Notifier):
    """
    Simulated email written to disk

    Each message gets its own file in ``directory`` and a one-line entry in
    ``all_emails.log``.
    """

    INDEX_FILE = "all_emails.log"

    def __init__(self, directory: Union[str, Path] = "email_logs"):
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def send(self, address: str, subject: str, body: str) -> bool:
        now = datetime.now(timezone.utc)
        stamp = now.strftime("%Y%m%d_%H%M%S")

        with self._lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            message_file = self.directory / f"email_{stamp}_{uuid.uuid4().hex[:6]}.txt"
            message_file.write_text(
                "\n".join([
                    f"Email Log - {now.strftime('%Y-%m-%d %H:%M:%S')}",
                    "=" * 42,
                    f"To: {address}",
                    f"Subject: {subject}",
                    "-" * 42,
                    body,
                    "=" * 42,
                    "",
                ]),
                encoding="utf-8"
            )
            with open(self.directory / self.INDEX_FILE, "a", encoding="utf-8") as index:
                index.write(f"[{stamp}] TO: {address} | SUBJECT: {subject}\n")

        return True


class WebhookNotifier(Notifier):
    """Webhook channel for external integrations"""

    def __init__(self, url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, address: str, subject: str, body: str) -> bool:
        payload = {
            "notification_id": str(uuid.uuid4()),
            "recipient": address,
            "subject": subject,
            "body": body,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        response = self.session.post(
            self.url,
            json=payload,
            timeout=self.timeout,
            headers={"Content-Type": "application/json"}
        )
        return 200 <= response.status_code < 300


def create_notifier(config: BankingConfig) -> Notifier:
    """Pick the notification channel named by the configuration"""
    channel = config.notification_channel.lower()
    if channel == "file":
        return FileEmailNotifier(config.email_log_directory)
    if channel == "webhook":
        if not config.webhook_url:
            raise ValueError("notification_channel 'webhook' requires webhook_url")
        return WebhookNotifier(config.webhook_url, timeout=config.webhook_timeout)
    if channel == "log":
        return LogNotifier()
    raise ValueError(f"Unknown notification channel: {config.notification_channel}")
