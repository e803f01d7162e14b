from __future__ import annotations

import re
from email.parser import HeaderParser
from email.policy import compat32
from email.utils import getaddresses
from typing import List, Optional, Tuple, Union

from openimap.diagnostics import record_error, returns_false_on_failure
from openimap.imap.envelope import decode_header_value
from openimap.models import Address, Envelope
from openimap.models.message import quote_phrase

_DOT_ATOM_RE = re.compile(r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*$")
_QUOTED_PAIR_RE = re.compile(r"\\(.)", re.DOTALL)


def _split_addr(addr: str, default_hostname: str) -> Tuple[str, str]:
    mailbox, sep, host = addr.rpartition("@")
    if not sep:
        return addr, default_hostname
    return mailbox, host


def _parse_addresses(values: List[str], default_hostname: str) -> Tuple[Address, ...]:
    out: List[Address] = []
    for name, addr in getaddresses(values):
        if not addr:
            continue
        mailbox, host = _split_addr(addr, default_hostname)
        if mailbox.startswith('"') and mailbox.endswith('"') and len(mailbox) > 1:
            mailbox = _QUOTED_PAIR_RE.sub(r"\1", mailbox[1:-1])
        out.append(Address(mailbox=mailbox, host=host, personal=decode_header_value(name) or None))
    return tuple(out)


def rfc822_parse_adrlist(string: str, default_hostname: str) -> List[Address]:
    """Parse an address list; bare local parts get ``default_hostname``."""
    addrs = list(_parse_addresses([string], default_hostname))
    if not addrs and string.strip() and not string.strip().endswith(";"):
        record_error(f"rfc822_parse_adrlist: no address could be parsed from {string!r}")
    return addrs


@returns_false_on_failure
def rfc822_write_address(mailbox: str, hostname: Optional[str], personal: Optional[str]) -> Union[str, bool]:
    """Format one address the way it would appear in a header."""
    if not mailbox:
        raise ValueError("rfc822_write_address: mailbox is required")
    if _DOT_ATOM_RE.match(mailbox):
        local = mailbox
    else:
        escaped = mailbox.replace("\\", "\\\\").replace('"', '\\"')
        local = f'"{escaped}"'
    addr = f"{local}@{hostname}" if hostname else local
    if personal:
        return f"{quote_phrase(personal)} <{addr}>"
    return addr


def rfc822_parse_headers(headers: Union[str, bytes], default_hostname: str = "UNKNOWN") -> Envelope:
    """Build an :class:`Envelope` from a raw header block."""
    if isinstance(headers, (bytes, bytearray)):
        headers = bytes(headers).decode("utf-8", errors="surrogateescape")
    msg = HeaderParser(policy=compat32).parsestr(headers)

    def addrs(name: str) -> Tuple[Address, ...]:
        return _parse_addresses(msg.get_all(name, []), default_hostname)

    def text(name: str) -> Optional[str]:
        value = msg.get(name)
        return " ".join(str(value).split()) if value is not None else None

    from_ = addrs("From")
    return Envelope(
        date=text("Date"),
        subject=decode_header_value(text("Subject")),
        from_=from_,
        sender=addrs("Sender") or from_,
        reply_to=addrs("Reply-To") or from_,
        to=addrs("To"),
        cc=addrs("Cc"),
        bcc=addrs("Bcc"),
        in_reply_to=text("In-Reply-To"),
        message_id=text("Message-ID"),
        references=text("References"),
        newsgroups=text("Newsgroups"),
        followup_to=text("Followup-To"),
        return_path=addrs("Return-Path"),
    )
