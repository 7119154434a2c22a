"""Tests for best-effort password reset mail delivery."""

import logging
import smtplib

import pytest

from todolist.config import Settings
from todolist.services import mailer as mailer_module
from todolist.services.mailer import ResetMailer


class FakeSMTP:
    """Records the SMTP conversation instead of opening a socket."""

    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls = []
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def send_message(self, message):
        self.messages.append(message)


class BrokenSMTP(FakeSMTP):
    def login(self, user, password):
        raise smtplib.SMTPAuthenticationError(535, b"bad credentials")


@pytest.fixture(autouse=True)
def reset_fake_smtp():
    FakeSMTP.instances = []


@pytest.fixture
def configured():
    return ResetMailer("http://localhost:3000/", host="smtp.test", port=2525, user="app@test", password="pw")


def test_reset_url():
    """Test the link points at the frontend reset page."""
    mailer = ResetMailer("https://app.example.com/")
    assert mailer.reset_url("abc") == "https://app.example.com/reset-password?token=abc"


def test_from_settings():
    settings = Settings(jwt_secret="s", frontend_url="https://todo.test", email_user="u", email_pass="p")
    mailer = ResetMailer.from_settings(settings)

    assert mailer.enabled
    assert mailer.reset_url("t") == "https://todo.test/reset-password?token=t"


def test_unconfigured_mailer_logs_link(caplog, monkeypatch):
    """Test that without credentials the link is logged and nothing is sent."""
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", FakeSMTP)
    mailer = ResetMailer("http://localhost:3000")

    with caplog.at_level(logging.WARNING, logger="todolist.services.mailer"):
        assert mailer.send_password_reset("alice@example.com", "tok123") is False

    assert FakeSMTP.instances == []
    assert "http://localhost:3000/reset-password?token=tok123" in caplog.text


def test_send_success(configured, monkeypatch):
    """Test a configured mailer logs in over STARTTLS and sends the link."""
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", FakeSMTP)

    assert configured.send_password_reset("alice@example.com", "tok123") is True

    smtp = FakeSMTP.instances[0]
    assert (smtp.host, smtp.port) == ("smtp.test", 2525)
    assert smtp.calls == ["starttls", ("login", "app@test", "pw")]
    message = smtp.messages[0]
    assert message["To"] == "alice@example.com"
    assert message["Subject"] == "Password Reset Request - Todo List App"
    assert "reset-password?token=tok123" in message.get_body(("plain",)).get_content()
    assert "reset-password?token=tok123" in message.get_body(("html",)).get_content()


def test_smtp_failure_is_swallowed(configured, monkeypatch, caplog):
    """Test that a delivery failure is logged, not raised."""
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", BrokenSMTP)

    with caplog.at_level(logging.WARNING, logger="todolist.services.mailer"):
        assert configured.send_password_reset("alice@example.com", "tok123") is False

    assert "reset-password?token=tok123" in caplog.text


def test_connection_error_is_swallowed(configured, monkeypatch):
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("no server")

    monkeypatch.setattr(mailer_module.smtplib, "SMTP", refuse)
    assert configured.send_password_reset("alice@example.com", "tok123") is False
