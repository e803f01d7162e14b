# tests/test_smtp.py

from __future__ import annotations

import smtplib

import pytest

import openimap
from openimap.config import Settings, SMTPConfig, configure


class FakeSMTP:
    """Stands in for smtplib.SMTP / SMTP_SSL and records the conversation."""

    instances = []
    login_error = None
    send_error = None
    connect_error = None

    def __init__(self, host, port, timeout=None, context=None):
        if FakeSMTP.connect_error:
            raise FakeSMTP.connect_error
        self.host = host
        self.port = port
        self.timeout = timeout
        self.ssl = context is not None
        self.calls = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def ehlo(self):
        self.calls.append("ehlo")

    def starttls(self, context=None):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user, password))
        if FakeSMTP.login_error:
            raise FakeSMTP.login_error

    def send_message(self, msg, from_addr=None, to_addrs=None):
        self.calls.append("send")
        if FakeSMTP.send_error:
            raise FakeSMTP.send_error
        self.sent.append((msg, from_addr, list(to_addrs)))

    def quit(self):
        self.calls.append("quit")


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.login_error = None
    FakeSMTP.send_error = None
    FakeSMTP.connect_error = None
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTP)
    configure(
        Settings(
            smtp=SMTPConfig(
                host="smtp.example.com",
                port=587,
                username="mailer",
                password="pw",
                use_starttls=True,
                from_email="noreply@example.com",
            )
        )
    )
    return FakeSMTP


def _only(fake):
    (server,) = fake.instances
    return server


# ---------------------------------------------------------------------------
# Sending
# ---------------------------------------------------------------------------


def test_mail_sends_to_every_recipient(fake_smtp):
    ok = openimap.mail(
        "bob@example.com, Carol <carol@example.org>",
        "Quarterly report",
        "Numbers attached.",
        cc="dave@example.com",
        bcc="eve@example.com",
    )

    assert ok is True
    server = _only(fake_smtp)
    assert (server.host, server.port, server.ssl) == ("smtp.example.com", 587, False)
    assert server.calls == ["ehlo", "starttls", "ehlo", ("login", "mailer", "pw"), "send", "quit"]
    msg, envelope_from, recipients = server.sent[0]
    assert envelope_from == "noreply@example.com"
    assert recipients == ["bob@example.com", "carol@example.org", "dave@example.com", "eve@example.com"]
    assert msg["From"] == "noreply@example.com"
    assert msg["Cc"] == "dave@example.com"
    assert msg["Bcc"] is None
    assert msg["Subject"] == "Quarterly report"
    assert msg["Message-ID"]
    assert msg.get_content().strip() == "Numbers attached."


def test_headers_from_string(fake_smtp):
    ok = openimap.mail(
        "bob@example.com",
        "Hi",
        "Body",
        additional_headers="From: Alice <alice@example.com>\r\nX-Tag: one\r\n two\r\n",
    )

    assert ok is True
    msg, envelope_from, _ = _only(fake_smtp).sent[0]
    assert msg["From"] == "Alice <alice@example.com>"
    assert msg["X-Tag"] == "one two"
    assert envelope_from == "alice@example.com"


def test_headers_from_mapping_and_return_path(fake_smtp):
    ok = openimap.mail(
        "bob@example.com",
        "Hi",
        "Body",
        additional_headers={"Reply-To": "help@example.com"},
        return_path="bounce@example.com",
    )

    assert ok is True
    msg, envelope_from, _ = _only(fake_smtp).sent[0]
    assert msg["Reply-To"] == "help@example.com"
    assert msg["From"] == "noreply@example.com"
    assert envelope_from == "bounce@example.com"


def test_ssl_connection(fake_smtp):
    configure(Settings(smtp=SMTPConfig(host="smtp.example.com", port=465, use_ssl=True, from_email="a@example.com")))

    assert openimap.mail("bob@example.com", "s", "m") is True

    server = _only(fake_smtp)
    assert server.ssl is True
    assert "starttls" not in server.calls
    assert not any(isinstance(c, tuple) for c in server.calls)


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


def test_malformed_header_line(fake_smtp):
    assert openimap.mail("bob@example.com", "s", "m", additional_headers="NoColonHere") is False
    assert "malformed header line" in openimap.last_error()
    assert fake_smtp.instances == []


def test_no_recipients(fake_smtp):
    assert openimap.mail("", "s", "m") is False
    assert "No recipients" in openimap.last_error()


def test_no_sender(fake_smtp):
    configure(Settings(smtp=SMTPConfig(host="smtp.example.com")))

    assert openimap.mail("bob@example.com", "s", "m") is False
    assert "No From header" in openimap.last_error()


def test_authentication_failure(fake_smtp):
    fake_smtp.login_error = smtplib.SMTPAuthenticationError(535, b"bad credentials")

    assert openimap.mail("bob@example.com", "s", "m") is False
    assert openimap.last_error().startswith("SMTP authentication failed")


def test_send_failure_still_quits(fake_smtp):
    fake_smtp.send_error = smtplib.SMTPRecipientsRefused({"bob@example.com": (550, b"no such user")})

    assert openimap.mail("bob@example.com", "s", "m") is False
    assert openimap.last_error().startswith("SMTP send failed")
    assert _only(fake_smtp).calls[-1] == "quit"


def test_network_failure(fake_smtp):
    fake_smtp.connect_error = ConnectionRefusedError("connection refused")

    assert openimap.mail("bob@example.com", "s", "m") is False
    assert openimap.last_error().startswith("SMTP network error")
