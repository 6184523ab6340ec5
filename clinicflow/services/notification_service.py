"""Email notification delivery."""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import structlog

from clinicflow.config import Settings
from clinicflow.domain.ports import ContactDirectory, NotificationSender

logger = structlog.get_logger(__name__)


class SmtpEmailSender:
    """Sends plain-text email over SMTP."""

    def __init__(
        self,
        host: str,
        port: int,
        from_email: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
    ):
        """Initialize sender with SMTP connection settings."""
        self.host = host
        self.port = port
        self.from_email = from_email
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def _build_message(self, to: str, subject: str, body: str) -> MIMEMultipart:
        message = MIMEMultipart()
        message["From"] = self.from_email
        message["To"] = to
        message["Subject"] = subject
        message.attach(MIMEText(body, "plain"))
        return message

    def _send_sync(self, to: str, subject: str, body: str) -> None:
        message = self._build_message(to, subject, body)
        with smtplib.SMTP(self.host, self.port, timeout=10) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(message)

    async def send_email(self, to: str, subject: str, body: str) -> None:
        """Send an email without blocking the event loop."""
        await asyncio.to_thread(self._send_sync, to, subject, body)
        logger.info("email_sent", to=to, subject=subject)


class LoggingEmailSender:
    """Logs outgoing email instead of delivering it (SMTP not configured)."""

    async def send_email(self, to: str, subject: str, body: str) -> None:
        logger.info("email_not_delivered_smtp_disabled", to=to, subject=subject)


def build_email_sender(settings: Settings) -> NotificationSender:
    """Create the email sender matching the current configuration."""
    if not settings.smtp_configured:
        return LoggingEmailSender()
    return SmtpEmailSender(
        host=settings.smtp_host or "",
        port=settings.smtp_port,
        from_email=settings.smtp_from_email,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
    )


class PatientNotifier:
    """
    Best-effort notifications to patients and staff.

    Delivery is at-most-once: failures are logged and never raised or retried.
    """

    def __init__(self, sender: NotificationSender, contacts: ContactDirectory):
        """Initialize notifier with sender and contact lookup."""
        self.sender = sender
        self.contacts = contacts

    async def notify(self, user_id: str, subject: str, body: str) -> bool:
        """
        Email a user by id.

        Returns:
            True when the sender accepted the message
        """
        try:
            contact = await self.contacts.get_contact(user_id)
            if contact is None or not contact.email:
                logger.info("notification_skipped_no_email", user_id=user_id, subject=subject)
                return False

            await self.sender.send_email(contact.email, subject, body)
            return True
        except Exception as e:
            # Log error but don't fail the request
            logger.warning("notification_failed", user_id=user_id, subject=subject, error=str(e))
            return False
