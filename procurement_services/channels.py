"""
Delivery channels -- outbound email and real-time push.

Responsibility:
    Interfaces for the two best-effort notification channels plus one
    production implementation of each:

    * ``SmtpEmailChannel`` -- ``smtplib`` with STARTTLS and login, sending a
      multipart text/HTML ``email.message.EmailMessage``.
    * ``InProcessPushChannel`` -- per-user subscriber callbacks.  A user with
      no subscribers is offline and publishing to them is a silent no-op.

Invariants enforced:
    - ``EmailChannel.send`` never raises.  Transport failures come back as
      ``DeliveryResult(sent=False, error=...)``.
    - ``PushChannel.publish`` never raises for offline users.

Non-goals:
    - No retries.  A higher layer may re-deliver from persisted
      notifications.
"""

from __future__ import annotations

import smtplib
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable
from email.message import EmailMessage as MIMEMessage
from typing import Any

from procurement_config.schema import SmtpConfig
from procurement_kernel.domain.dtos import DeliveryResult, EmailMessage
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.channels")

PushCallback = Callable[[dict[str, Any]], None]


class EmailChannel(ABC):
    """Outbound email capability."""

    @abstractmethod
    def send(self, message: EmailMessage) -> DeliveryResult:
        """Send one message.  Must not raise."""
        ...


class PushChannel(ABC):
    """Real-time push capability.  No delivery acknowledgement."""

    @abstractmethod
    def publish(self, user_id: str, payload: dict[str, Any]) -> None:
        ...


class DisabledEmailChannel(EmailChannel):
    """Used when ``notifications.email_enabled`` is false."""

    def send(self, message: EmailMessage) -> DeliveryResult:
        return DeliveryResult(sent=False, error="email disabled")


class SmtpEmailChannel(EmailChannel):
    """
    SMTP transport.

    Args:
        config: SMTP section of ProcurementConfig.
        smtp_factory: Callable returning an ``smtplib.SMTP``-like context
            manager.  Replaced in tests.
        timeout: Socket timeout in seconds.
    """

    def __init__(
        self,
        config: SmtpConfig,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
        timeout: float = 10,
    ):
        self._config = config
        self._smtp_factory = smtp_factory
        self._timeout = timeout

    def _build(self, message: EmailMessage) -> MIMEMessage:
        mime = MIMEMessage()
        mime["Subject"] = message.subject
        mime["From"] = self._config.from_address
        mime["To"] = message.to
        mime.set_content(message.text)
        mime.add_alternative(message.html, subtype="html")
        return mime

    def send(self, message: EmailMessage) -> DeliveryResult:
        try:
            mime = self._build(message)
            with self._smtp_factory(
                self._config.host, self._config.port, timeout=self._timeout
            ) as smtp:
                if self._config.use_tls:
                    smtp.starttls()
                if self._config.username and self._config.password:
                    smtp.login(self._config.username, self._config.password)
                smtp.send_message(mime)
        except Exception as exc:
            logger.warning(
                "email_send_failed",
                extra={"to": message.to, "subject": message.subject, "error": str(exc)},
            )
            return DeliveryResult(sent=False, error=str(exc))

        logger.info("email_sent", extra={"to": message.to, "subject": message.subject})
        return DeliveryResult(sent=True)


class InProcessPushChannel(PushChannel):
    """
    Subscriber registry keyed by user id (one "room" per user).

    Guarantees:
        - publish() to a user with no subscribers does nothing.
        - A failing subscriber is logged and does not stop the others.
        - subscribe/unsubscribe/publish are safe across threads.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[PushCallback]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, user_id: str, callback: PushCallback) -> Callable[[], None]:
        """Register ``callback`` for ``user_id``.  Returns an unsubscribe function."""
        key = str(user_id)
        with self._lock:
            self._subscribers[key].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(key, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(key, None)

        return unsubscribe

    def is_connected(self, user_id: str) -> bool:
        with self._lock:
            return bool(self._subscribers.get(str(user_id)))

    def publish(self, user_id: str, payload: dict[str, Any]) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(str(user_id), ()))
        if not callbacks:
            logger.debug("push_skipped_offline", extra={"user_id": str(user_id)})
            return
        for callback in callbacks:
            try:
                callback(payload)
            except Exception as exc:
                logger.warning(
                    "push_subscriber_failed",
                    extra={"user_id": str(user_id), "error": str(exc)},
                )
