# tests/test_mime.py

from __future__ import annotations

import email

import openimap
from openimap import MimeHeaderPart


def _parse(text: str):
    return email.message_from_string(text)


# ---------------------------------------------------------------------------
# Transfer encodings
# ---------------------------------------------------------------------------


def test_base64_decodes_and_skips_noise():
    assert openimap.base64(b"SGVs\r\nbG8=") == b"Hello"
    assert openimap.base64("SGVsbG8=") == b"Hello"


def test_base64_bad_padding_is_recorded():
    assert openimap.base64(b"SGVsbG8") is False
    assert "base64" in openimap.last_error()


def test_qprint():
    assert openimap.qprint(b"Caf=C3=A9 =\r\nmenu") == "Café menu".encode("utf-8")


def test_eight_bit_uses_crlf():
    assert openimap.eight_bit(b"a\xe9\nb") == b"a=E9\r\nb"


def test_binary_wraps_lines():
    encoded = openimap.binary(b"\x00" * 60)

    lines = encoded.split(b"\r\n")
    assert len(lines[0]) == 76
    assert encoded.endswith(b"\r\n")
    assert openimap.base64(encoded) == b"\x00" * 60


# ---------------------------------------------------------------------------
# Encoded words
# ---------------------------------------------------------------------------


def test_utf8_decodes_encoded_words():
    assert openimap.utf8("=?utf-8?q?Caf=C3=A9?= menu") == "Café menu"
    assert openimap.utf8(b"=?iso-8859-1?q?Andr=E9?=") == "André"
    assert openimap.utf8("plain text") == "plain text"


def test_mime_header_decode_runs():
    parts = openimap.mime_header_decode("Hello =?utf-8?q?Caf=C3=A9?=")

    assert [p.charset for p in parts] == ["default", "utf-8"]
    assert parts[0].text.strip() == "Hello"
    assert parts[1].text == "Café"


def test_mime_header_decode_plain_text():
    assert openimap.mime_header_decode("just ascii") == [MimeHeaderPart(charset="default", text="just ascii")]


# ---------------------------------------------------------------------------
# Composing
# ---------------------------------------------------------------------------


def test_compose_single_text_part():
    text = openimap.mail_compose(
        {"from": "alice@example.com", "to": "bob@example.com", "subject": "Hi"},
        [{"type": openimap.TYPETEXT, "subtype": "plain", "charset": "utf-8", "contents.data": "Hello"}],
    )

    assert text.startswith("From: alice@example.com\r\nSubject: Hi\r\nTo: bob@example.com\r\nMIME-Version: 1.0\r\n")
    assert "\n" not in text.replace("\r\n", "")
    msg = _parse(text)
    assert msg.get_content_type() == "text/plain"
    assert msg.get_param("charset") == "utf-8"
    assert "Content-Transfer-Encoding" not in msg
    assert msg.get_payload() == "Hello"


def test_compose_multipart_with_binary_attachment():
    text = openimap.mail_compose(
        {"from": "alice@example.com", "subject": "Data"},
        [
            {"type": openimap.TYPEMULTIPART},
            {"type": openimap.TYPETEXT, "contents.data": "See attached.\r\n"},
            {
                "type": openimap.TYPEAPPLICATION,
                "subtype": "octet-stream",
                "encoding": openimap.ENCBINARY,
                "disposition.type": "attachment",
                "disposition": {"filename": "data.bin"},
                "contents.data": b"\x00\xff\x10",
            },
        ],
    )

    msg = _parse(text)
    assert msg.get_content_type() == "multipart/mixed"
    body, attachment = msg.get_payload()
    assert body.get_payload().rstrip() == "See attached."
    assert attachment.get_content_type() == "application/octet-stream"
    assert attachment["Content-Transfer-Encoding"] == "base64"
    assert attachment.get_filename() == "data.bin"
    assert attachment.get_payload(decode=True) == b"\x00\xff\x10"


def test_compose_wraps_non_multipart_first_body():
    text = openimap.mail_compose(
        {"from": "alice@example.com"},
        [
            {"type": openimap.TYPETEXT, "contents.data": "one"},
            {"type": openimap.TYPETEXT, "subtype": "html", "contents.data": "<p>two</p>"},
        ],
    )

    msg = _parse(text)
    assert msg.get_content_type() == "multipart/mixed"
    assert [p.get_content_type() for p in msg.get_payload()] == ["text/plain", "text/html"]


def test_compose_8bit_becomes_quoted_printable():
    text = openimap.mail_compose(
        {"subject": "Café menu"},
        [{"type": openimap.TYPETEXT, "charset": "utf-8", "encoding": openimap.ENC8BIT, "contents.data": "Café"}],
    )

    assert text.isascii()
    msg = _parse(text)
    assert openimap.utf8(msg["Subject"]) == "Café menu"
    assert msg["Content-Transfer-Encoding"] == "quoted-printable"
    assert msg.get_payload(decode=True) == "Café".encode("utf-8")


def test_compose_custom_headers_and_remail():
    text = openimap.mail_compose(
        {
            "from": "alice@example.com",
            "custom_headers": ["X-Mailer: openimap", "X-Priority:1"],
            "remail": "Received: from relay.example.com\n",
        },
        [{"contents.data": "body"}],
    )

    assert text.startswith("Received: from relay.example.com\r\nFrom: alice@example.com\r\n")
    msg = _parse(text)
    assert msg["X-Mailer"] == "openimap"
    assert msg["X-Priority"] == "1"


def test_compose_rejects_bad_input():
    assert openimap.mail_compose({"from": "a@b"}, []) is False
    assert openimap.mail_compose({"frm": "a@b"}, [{"contents.data": "x"}]) is False
    assert openimap.mail_compose({}, [{"contents": "x"}]) is False
    assert openimap.mail_compose({"custom_headers": ["NoColon"]}, [{"contents.data": "x"}]) is False

    logged = openimap.errors()
    assert "at least one body part" in logged[0]
    assert "unknown envelope key(s) frm" in logged[1]
    assert "unknown body key(s) contents" in logged[2]
    assert "malformed custom header" in logged[3]
