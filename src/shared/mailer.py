"""Outbound transactional email.

``EmailSender`` is the capability the auth workflows depend on. Production
uses ``SmtpEmailSender``; without an SMTP host the application falls back to
``LoggingEmailSender``. ``NoOpEmailSender`` is the null object.
"""

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

import aiosmtplib

from src.config.logging_config import redact_email
from src.config.settings import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the mail server."""


class EmailSender(Protocol):
    async def send_email_verification(self, to_email: str, to_name: str, otp_code: str) -> None: ...

    async def send_password_reset(self, to_email: str, to_name: str, otp_code: str) -> None: ...

    async def send_welcome(self, to_email: str, to_name: str) -> None: ...


def render_email_verification(to_name: str, otp_code: str, validity_minutes: int) -> tuple[str, str, str]:
    subject = f"Verify your email - {settings.email_from_name}"
    html = f"""<html>
<body>
    <h2>Welcome, {to_name}!</h2>
    <p>Please verify your email address by entering this code:</p>
    <h1 style="letter-spacing: 8px; font-family: monospace;">{otp_code}</h1>
    <p>This code will expire in {validity_minutes} minutes.</p>
    <p>If you didn't create this account, please ignore this email.</p>
</body>
</html>"""
    text = (
        f"Welcome, {to_name}!\n\nYour verification code is {otp_code}.\n"
        f"It expires in {validity_minutes} minutes.\n"
    )
    return subject, html, text


def render_password_reset(to_name: str, otp_code: str, validity_minutes: int) -> tuple[str, str, str]:
    subject = f"Reset your password - {settings.email_from_name}"
    html = f"""<html>
<body>
    <h2>Password reset request</h2>
    <p>Hello {to_name},</p>
    <p>We received a request to reset your password. Enter this code to proceed:</p>
    <h1 style="letter-spacing: 8px; font-family: monospace;">{otp_code}</h1>
    <p>This code will expire in {validity_minutes} minutes.</p>
    <p>If you didn't request a password reset, ignore this email and your password will remain unchanged.</p>
</body>
</html>"""
    text = (
        f"Hello {to_name},\n\nYour password reset code is {otp_code}.\n"
        f"It expires in {validity_minutes} minutes.\n"
    )
    return subject, html, text


def render_welcome(to_name: str) -> tuple[str, str, str]:
    subject = f"Welcome to {settings.email_from_name}!"
    html = f"""<html>
<body>
    <h2>Welcome, {to_name}!</h2>
    <p>Your email has been successfully verified.</p>
</body>
</html>"""
    text = f"Welcome, {to_name}!\n\nYour email has been successfully verified.\n"
    return subject, html, text


class _TemplatedSender:
    """Renders the templates and delegates delivery to ``_deliver``."""

    def __init__(self, otp_validity_minutes: int | None = None):
        self.otp_validity_minutes = otp_validity_minutes or settings.otp_validity_minutes

    async def _deliver(self, to_email: str, to_name: str, subject: str, html_body: str, text_body: str) -> None:
        raise NotImplementedError

    async def send_email_verification(self, to_email: str, to_name: str, otp_code: str) -> None:
        subject, html, text = render_email_verification(to_name, otp_code, self.otp_validity_minutes)
        await self._deliver(to_email, to_name, subject, html, text)

    async def send_password_reset(self, to_email: str, to_name: str, otp_code: str) -> None:
        subject, html, text = render_password_reset(to_name, otp_code, self.otp_validity_minutes)
        await self._deliver(to_email, to_name, subject, html, text)

    async def send_welcome(self, to_email: str, to_name: str) -> None:
        subject, html, text = render_welcome(to_name)
        await self._deliver(to_email, to_name, subject, html, text)


class SmtpEmailSender(_TemplatedSender):
    """Deliver through an SMTP server using STARTTLS (or implicit TLS)."""

    def __init__(
        self,
        *,
        smtp_host: str,
        smtp_port: int = 587,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        smtp_use_tls: bool = True,
        from_address: str,
        from_name: str,
        timeout: float = 30,
        otp_validity_minutes: int | None = None,
    ):
        super().__init__(otp_validity_minutes)
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.from_address = from_address
        self.from_name = from_name
        self.timeout = timeout

    def _build_message(self, to_email: str, to_name: str, subject: str, html_body: str, text_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = f"{to_name} <{to_email}>"
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg

    async def _deliver(self, to_email: str, to_name: str, subject: str, html_body: str, text_body: str) -> None:
        msg = self._build_message(to_email, to_name, subject, html_body, text_body)
        try:
            # smtp_use_tls selects STARTTLS on a plain connection, otherwise implicit TLS
            async with aiosmtplib.SMTP(
                hostname=self.smtp_host,
                port=self.smtp_port,
                use_tls=not self.smtp_use_tls,
                start_tls=self.smtp_use_tls,
                timeout=self.timeout,
            ) as smtp:
                if self.smtp_user and self.smtp_password:
                    await smtp.login(self.smtp_user, self.smtp_password)
                await smtp.send_message(msg)
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.error(f"Failed to send email to {redact_email(to_email)}: {type(exc).__name__}: {exc}")
            raise EmailDeliveryError(str(exc)) from exc

        logger.info(f"Email sent to {redact_email(to_email)}: {subject}")


class LoggingEmailSender(_TemplatedSender):
    """Development sender: logs that an email would have been sent."""

    async def _deliver(self, to_email: str, to_name: str, subject: str, html_body: str, text_body: str) -> None:
        logger.info(f"Email delivery disabled (no SMTP host); would send '{subject}' to {redact_email(to_email)}")


class NoOpEmailSender:
    """Sends nothing."""

    async def send_email_verification(self, to_email: str, to_name: str, otp_code: str) -> None:
        return None

    async def send_password_reset(self, to_email: str, to_name: str, otp_code: str) -> None:
        return None

    async def send_welcome(self, to_email: str, to_name: str) -> None:
        return None


def get_email_sender() -> EmailSender:
    """FastAPI dependency choosing the sender from settings."""
    if settings.smtp_host:
        return SmtpEmailSender(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_password=settings.smtp_password,
            smtp_use_tls=settings.smtp_use_tls,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
        )
    return LoggingEmailSender()
