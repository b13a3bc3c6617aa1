"""Tests for outbound email senders."""

import logging

import aiosmtplib
import pytest

from src.shared.mailer import (
    EmailDeliveryError,
    LoggingEmailSender,
    NoOpEmailSender,
    SmtpEmailSender,
    render_email_verification,
    render_password_reset,
)


def make_smtp_sender() -> SmtpEmailSender:
    return SmtpEmailSender(
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="mailer",
        smtp_password="secret",
        from_address="no-reply@example.com",
        from_name="SessionGuard",
        otp_validity_minutes=10,
    )


class TestTemplates:
    def test_verification_contains_code_and_validity(self):
        subject, html, text = render_email_verification("Ada", "482913", 10)
        assert "Verify" in subject
        assert "482913" in html and "482913" in text
        assert "10 minutes" in text

    def test_password_reset_contains_code(self):
        _, html, text = render_password_reset("Ada", "482913", 10)
        assert "482913" in html and "482913" in text


class FakeSMTP:
    """Stands in for ``aiosmtplib.SMTP`` and records the session."""

    sessions: list["FakeSMTP"] = []

    def __init__(self, **kwargs):
        self.options = kwargs
        self.logins: list[tuple[str, str]] = []
        self.messages = []
        FakeSMTP.sessions.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def login(self, username, password):
        self.logins.append((username, password))

    async def send_message(self, message):
        self.messages.append(message)
        return {}, "OK"


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.sessions = []
    monkeypatch.setattr(aiosmtplib, "SMTP", FakeSMTP)
    return FakeSMTP


class TestSmtpEmailSender:
    async def test_delivers_with_starttls(self, fake_smtp):
        await make_smtp_sender().send_password_reset("ada@example.com", "Ada", "482913")

        session = fake_smtp.sessions[0]
        assert session.options["hostname"] == "smtp.example.com"
        assert session.options["start_tls"] is True
        assert session.options["use_tls"] is False
        assert session.logins == [("mailer", "secret")]
        message = session.messages[0]
        assert message["To"] == "Ada <ada@example.com>"
        assert "Reset your password" in message["Subject"]

    async def test_implicit_tls_without_credentials(self, fake_smtp):
        sender = SmtpEmailSender(
            smtp_host="smtp.example.com",
            smtp_port=465,
            smtp_use_tls=False,
            from_address="no-reply@example.com",
            from_name="SessionGuard",
        )
        await sender.send_welcome("ada@example.com", "Ada")

        session = fake_smtp.sessions[0]
        assert session.options["use_tls"] is True
        assert session.options["start_tls"] is False
        assert session.logins == []

    async def test_smtp_failure_raises_delivery_error(self, monkeypatch):
        def refuse(**kwargs):
            raise aiosmtplib.SMTPConnectError("Service not available")

        monkeypatch.setattr(aiosmtplib, "SMTP", refuse)

        with pytest.raises(EmailDeliveryError):
            await make_smtp_sender().send_email_verification("ada@example.com", "Ada", "482913")

    async def test_network_failure_raises_delivery_error(self, monkeypatch):
        def unreachable(**kwargs):
            raise ConnectionRefusedError("connection refused")

        monkeypatch.setattr(aiosmtplib, "SMTP", unreachable)

        with pytest.raises(EmailDeliveryError):
            await make_smtp_sender().send_welcome("ada@example.com", "Ada")


class TestLoggingEmailSender:
    async def test_logs_redacted_recipient_without_code(self, caplog):
        with caplog.at_level(logging.INFO, logger="src.shared.mailer"):
            await LoggingEmailSender(otp_validity_minutes=10).send_email_verification(
                "ada.lovelace@example.com", "Ada", "482913"
            )
        assert "ad***@example.com" in caplog.text
        assert "482913" not in caplog.text


class TestNoOpEmailSender:
    async def test_sends_nothing(self):
        sender = NoOpEmailSender()
        assert await sender.send_welcome("ada@example.com", "Ada") is None
