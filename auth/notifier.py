"""
auth/notifier.py -- Outbound message delivery for welcome mails, 2FA codes,
reset tokens, and password-change confirmations.

Two implementations share one interface, send(to_address, subject, body):

  SmtpNotifier   Delivers through an SMTP relay. Port 465 uses implicit TLS,
                 any other port upgrades with STARTTLS. Every connection has a
                 socket timeout so a dead relay cannot hang a request.

  OutboxNotifier Local fallback used when SMTP_HOST/SMTP_USER are not set.
                 Appends each message to an mbox file so a developer can read
                 the 2FA code or reset token without a mail server.

Both raise NotificationError on failure. The service calls send() only after
the state change is committed, and maps NotificationError to
DeliveryFailedError.

Log lines name the recipient and subject only. Message bodies contain codes
and tokens and are never logged.

Layer rule: no imports from api/. build_notifier() takes the Settings object
as an argument rather than importing core.config.
"""

from __future__ import annotations

import logging
import mailbox
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from pathlib import Path
from typing import Protocol

logger = logging.getLogger("authgate.notify")


class NotificationError(Exception):
    """Raised when a message could not be delivered or recorded."""


class Notifier(Protocol):
    def send(self, to_address: str, subject: str, body: str) -> None: ...


def _build_message(sender: str, to_address: str, subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = to_address
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=False)
    msg["Message-ID"] = make_msgid(domain=sender.rpartition("@")[2] or None)
    msg.set_content(body)
    return msg


class SmtpNotifier:
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self._password = password
        self.sender = sender
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.port == 465:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context)
        client = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        client.starttls(context=context)
        return client

    def send(self, to_address: str, subject: str, body: str) -> None:
        msg = _build_message(self.sender, to_address, subject, body)
        try:
            with self._connect() as client:
                client.login(self.username, self._password)
                client.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP delivery to %s failed (%s): %s", to_address, subject, type(exc).__name__)
            raise NotificationError(f"SMTP delivery failed: {type(exc).__name__}") from exc
        logger.info("Sent email to %s (%s)", to_address, subject)


class OutboxNotifier:
    def __init__(self, path: str | Path, sender: str) -> None:
        self.path = Path(path)
        self.sender = sender

    def send(self, to_address: str, subject: str, body: str) -> None:
        msg = _build_message(self.sender, to_address, subject, body)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            box = mailbox.mbox(self.path)
            box.lock()
            try:
                box.add(msg)
                box.flush()
            finally:
                box.unlock()
                box.close()
        except (OSError, mailbox.Error) as exc:
            logger.error("Could not record message to %s in %s: %s", to_address, self.path, type(exc).__name__)
            raise NotificationError(f"Outbox write failed: {type(exc).__name__}") from exc
        logger.info("SMTP not configured; recorded email to %s (%s) in %s", to_address, subject, self.path)


def build_notifier(settings) -> Notifier:
    """Return an SmtpNotifier if a relay is configured, else the local outbox."""
    if settings.smtp_configured:
        logger.info("Outbound mail via SMTP %s:%d", settings.smtp_host, settings.smtp_port)
        return SmtpNotifier(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.from_email,
            timeout=settings.smtp_timeout,
        )
    logger.warning("SMTP_HOST/SMTP_USER not set -- messages will be recorded to %s", settings.outbox_path)
    return OutboxNotifier(settings.outbox_path, sender=settings.from_email)
