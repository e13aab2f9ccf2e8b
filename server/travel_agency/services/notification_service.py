"""Outgoing notifications: message templates and delivery backends."""

import asyncio
import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Protocol

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..core.config import Settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

ROOM_AVAILABLE = "room_available"
PAYMENT_CONFIRMATION = "payment_confirmation"
TRIP_REMINDER = "trip_reminder"

_environment = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    undefined=StrictUndefined,
    keep_trailing_newline=True,
    autoescape=False,
)


class NotificationSender(Protocol):
    """Delivers a message to a single recipient."""

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        """Return True if the message was handed over for delivery."""
        ...


def render_message(template_name: str, **context: Any) -> tuple[str, str]:
    """
    Render the subject and body of a message template.

    Args:
        template_name: Base name of the template pair in the templates directory
        **context: Template variables

    Returns:
        tuple[str, str]: Subject line and plain-text body
    """
    subject = _environment.get_template(f"{template_name}_subject.txt").render(**context).strip()
    body = _environment.get_template(f"{template_name}.txt").render(**context)
    return subject, body


async def deliver(sender: NotificationSender, recipient: str | None, subject: str, body: str) -> bool:
    """
    Send a message without letting delivery problems reach the caller.

    Args:
        sender: Delivery backend
        recipient: Address to send to; nothing is sent when empty
        subject: Subject line
        body: Message body

    Returns:
        bool: True if the sender accepted the message
    """
    if not recipient:
        logger.warning("Notification skipped - no recipient address", extra={"subject": subject})
        return False

    try:
        delivered = await sender.send(recipient, subject, body)
    except Exception as e:
        logger.warning(
            "Notification delivery failed",
            extra={"recipient": recipient, "subject": subject, "error": str(e)},
            exc_info=True,
        )
        return False

    if not delivered:
        logger.warning(
            "Notification was not accepted by sender",
            extra={"recipient": recipient, "subject": subject},
        )
    return bool(delivered)


class LoggingNotificationSender:
    """Sender that only logs messages; used when no SMTP server is configured."""

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        logger.info(
            "Notification logged instead of sent",
            extra={"recipient": recipient, "subject": subject, "body_length": len(body)},
        )
        return True


class SmtpNotificationSender:
    """Sender that delivers plain-text email through an SMTP server."""

    def __init__(
        self,
        host: str,
        port: int,
        mail_from: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.mail_from = mail_from
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _build_message(self, recipient: str, subject: str, body: str) -> MIMEText:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.mail_from
        msg["To"] = recipient
        return msg

    def _send_sync(self, recipient: str, subject: str, body: str) -> None:
        msg = self._build_message(recipient, subject, body)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls(context=ssl.create_default_context())
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        """
        Send an email on a worker thread.

        Returns:
            bool: True if the SMTP server accepted the message, False on SMTP or
            connection errors
        """
        try:
            await asyncio.to_thread(self._send_sync, recipient, subject, body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "SMTP delivery failed",
                extra={"recipient": recipient, "smtp_host": self.host, "error": str(e)},
            )
            return False

        logger.info("Email sent", extra={"recipient": recipient, "subject": subject})
        return True


def build_notification_sender(settings: Settings) -> NotificationSender:
    """Create the sender configured by the settings."""
    if settings.smtp_host:
        return SmtpNotificationSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            mail_from=settings.mail_from,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
        )
    return LoggingNotificationSender()
