"""OTP delivery over email.

``SmtpNotifier`` sends the code through an SMTP relay; the blocking smtplib
session runs in a worker thread so the event loop is never held. The
``ConsoleNotifier`` only logs the code and is meant for development and
tests. ``build_notifier`` picks a backend from settings and rejects an
unusable SMTP configuration at startup.
"""

import asyncio
import smtplib
from collections import deque
from email.message import EmailMessage
from typing import Protocol

from loguru import logger

from brgy_api.core.config import Settings
from brgy_api.core.errors import EmailNotConfiguredError, NotificationFailureError

OTP_SUBJECT = "Your OTP Code - BrgyKonek"

_OTP_TEXT = """Your BrgyKonek OTP code is: {code}

This code will expire in {minutes} minutes.

If you didn't request this code, please ignore this email.
"""

_OTP_HTML = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h2 style="color: #333; text-align: center;">BrgyKonek OTP Verification</h2>
  <div style="background-color: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
    <p style="margin: 0; font-size: 16px; color: #555;">Your OTP code is:</p>
    <h1 style="text-align: center; color: #007bff; font-size: 32px; margin: 10px 0; letter-spacing: 5px;">{code}</h1>
    <p style="margin: 0; font-size: 14px; color: #666;">This code will expire in {minutes} minutes.</p>
  </div>
  <p style="font-size: 14px; color: #666; text-align: center;">
    If you didn't request this code, please ignore this email.
  </p>
</div>
"""


class Notifier(Protocol):
    """Delivers one-time codes to users."""

    async def send_otp(self, email: str, code: str) -> None:
        """Send ``code`` to ``email``.

        Raises:
            NotificationFailureError: If the message could not be delivered.
        """
        ...


def build_otp_message(sender: str, recipient: str, code: str, ttl_minutes: int) -> EmailMessage:
    """Compose the OTP email with plain-text and HTML alternatives."""
    msg = EmailMessage()
    msg["Subject"] = OTP_SUBJECT
    msg["From"] = sender
    msg["To"] = recipient
    msg.set_content(_OTP_TEXT.format(code=code, minutes=ttl_minutes))
    msg.add_alternative(_OTP_HTML.format(code=code, minutes=ttl_minutes), subtype="html")
    return msg


class SmtpNotifier:
    """Send OTP emails through an SMTP relay.

    Args:
        host: SMTP server host.
        port: SMTP server port.
        user: Login user; also the default sender.
        password: Login password.
        sender: From address.
        use_tls: Issue STARTTLS before authenticating.
        timeout: Connection timeout in seconds.
        ttl_minutes: Code validity stated in the message body.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int,
        user: str,
        password: str,
        sender: str,
        use_tls: bool = True,
        timeout: float = 10.0,
        ttl_minutes: int = 10,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self._password = password
        self.sender = sender
        self.use_tls = use_tls
        self.timeout = timeout
        self.ttl_minutes = ttl_minutes

    async def send_otp(self, email: str, code: str) -> None:
        message = build_otp_message(self.sender, email, code, self.ttl_minutes)
        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(f"OTP email to {email} failed via {self.host}:{self.port}: {exc}")
            raise NotificationFailureError from exc
        logger.info(f"OTP email sent to {email}")

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            server.ehlo()
            if self.use_tls:
                server.starttls()
                server.ehlo()
            if self.user and self._password:
                server.login(self.user, self._password)
            server.send_message(message)


class ConsoleNotifier:
    """Log OTP codes instead of emailing them.

    The most recent ``history_size`` deliveries are kept in ``sent``.
    """

    def __init__(self, history_size: int = 100) -> None:
        self.sent: deque[tuple[str, str]] = deque(maxlen=history_size)

    async def send_otp(self, email: str, code: str) -> None:
        self.sent.append((email, code))
        logger.info(f"[console email] OTP {code} sent to {email}")


def build_notifier(settings: Settings) -> Notifier:
    """Create the configured OTP notifier.

    Args:
        settings: Application settings.

    Returns:
        A notifier instance.

    Raises:
        EmailNotConfiguredError: If the SMTP backend is selected without
            credentials or a sender address.
    """
    if settings.email_backend == "console":
        logger.warning("Using console email backend; OTP codes are logged, not sent")
        return ConsoleNotifier()

    if not settings.email_user or not settings.email_sender:
        raise EmailNotConfiguredError
    return SmtpNotifier(
        host=settings.email_host,
        port=settings.email_port,
        user=settings.email_user,
        password=settings.email_password,
        sender=settings.email_sender,
        use_tls=settings.email_use_tls,
        timeout=settings.email_timeout,
        ttl_minutes=settings.otp_ttl_minutes,
    )
