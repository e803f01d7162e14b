from __future__ import annotations

import pytest

import openimap
from openimap import diagnostics
from openimap.config import Settings, configure
from openimap.imap import connection as connection_module
from tests.fake_imap import FakeIMAPServer

PLAIN_MESSAGE = (
    b"Date: Tue, 02 Jan 2024 09:30:00 +0000\r\n"
    b"From: Alice Example <alice@example.com>\r\n"
    b"To: Bob <bob@example.com>\r\n"
    b"Subject: Quarterly report\r\n"
    b"Message-ID: <m1@example.com>\r\n"
    b"\r\n"
    b"Numbers attached.\r\n"
)

REPLY_MESSAGE = (
    b"Date: Wed, 03 Jan 2024 11:00:00 +0000\r\n"
    b"From: Bob <bob@example.com>\r\n"
    b"To: Alice Example <alice@example.com>\r\n"
    b"Subject: Re: Quarterly report\r\n"
    b"Message-ID: <m2@example.com>\r\n"
    b"In-Reply-To: <m1@example.com>\r\n"
    b"References: <m1@example.com>\r\n"
    b"\r\n"
    b"Thanks, looks good.\r\n"
)

MULTIPART_MESSAGE = (
    b"Date: Mon, 01 Jan 2024 08:00:00 +0000\r\n"
    b"From: carol@example.org\r\n"
    b"To: alice@example.com\r\n"
    b"Subject: =?utf-8?q?Caf=C3=A9_menu?=\r\n"
    b"Message-ID: <m3@example.org>\r\n"
    b"MIME-Version: 1.0\r\n"
    b'Content-Type: multipart/mixed; boundary="XYZ"\r\n'
    b"\r\n"
    b"--XYZ\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"\r\n"
    b"See the menu.\r\n"
    b"--XYZ\r\n"
    b'Content-Type: application/pdf; name="menu.pdf"\r\n'
    b"Content-Transfer-Encoding: base64\r\n"
    b'Content-Disposition: attachment; filename="menu.pdf"\r\n'
    b"\r\n"
    b"JVBERi0xLjQK\r\n"
    b"--XYZ--\r\n"
)


# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def settings():
    """Fresh process-wide settings and an empty diagnostics log for every test."""
    current = configure(Settings(retry_backoff=0))
    diagnostics.reset()
    yield current
    configure(Settings())
    diagnostics.reset()


@pytest.fixture
def server(monkeypatch) -> FakeIMAPServer:
    srv = FakeIMAPServer()
    srv.add_mailbox("INBOX", subscribed=True)
    srv.add_mailbox("Archive", subscribed=False)
    srv.add_mailbox("Sent", subscribed=True)
    monkeypatch.setattr(connection_module, "create_transport", srv.transport_factory())
    return srv


@pytest.fixture
def seeded(server: FakeIMAPServer) -> FakeIMAPServer:
    server.add_message("INBOX", PLAIN_MESSAGE, flags={"\\Seen"}, internaldate="02-Jan-2024 09:30:05 +0000", uid=101)
    server.add_message("INBOX", REPLY_MESSAGE, flags={"\\Recent"}, internaldate="03-Jan-2024 11:00:07 +0000", uid=102)
    server.add_message(
        "INBOX", MULTIPART_MESSAGE, flags={"\\Flagged", "$Work"}, internaldate="01-Jan-2024 08:00:09 +0000", uid=105
    )
    return server


@pytest.fixture
def conn(seeded: FakeIMAPServer):
    c = openimap.open("{imap.example.com:143/notls}INBOX", "alice", "secret")
    assert c is not False, openimap.errors()
    yield c
    if not c.closed:
        openimap.close(c)
