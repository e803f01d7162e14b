from __future__ import annotations

from email.header import decode_header, make_header
from typing import Any, List, Optional, Tuple

from openimap.errors import ParseError
from openimap.imap.response import as_text
from openimap.models import Address, Envelope


def decode_header_value(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return str(make_header(decode_header(value)))
    except (ValueError, LookupError, UnicodeDecodeError):
        return value


def parse_envelope_addresses(node: Any) -> Tuple[Address, ...]:
    """ENVELOPE address list: ((name adl mailbox host) ...) or NIL.

    RFC 3501 group markers (host NIL) are dropped; only member addresses
    are returned.
    """
    if node is None:
        return ()
    if not isinstance(node, list):
        raise ParseError(f"Bad ENVELOPE address list: {node!r}")
    out: List[Address] = []
    for entry in node:
        if not isinstance(entry, list) or len(entry) != 4:
            raise ParseError(f"Bad ENVELOPE address: {entry!r}")
        name, adl, mailbox, host = (as_text(x) for x in entry)
        if host is None:
            continue
        out.append(
            Address(
                mailbox=mailbox or "",
                host=host,
                personal=decode_header_value(name) or None,
                adl=adl,
            )
        )
    return tuple(out)


def parse_envelope(node: Any) -> Envelope:
    if not isinstance(node, list) or len(node) < 10:
        raise ParseError(f"Bad ENVELOPE: {node!r}")
    date, subject, from_, sender, reply_to, to, cc, bcc, in_reply_to, message_id = node[:10]
    return Envelope(
        date=as_text(date),
        subject=decode_header_value(as_text(subject)),
        from_=parse_envelope_addresses(from_),
        sender=parse_envelope_addresses(sender),
        reply_to=parse_envelope_addresses(reply_to),
        to=parse_envelope_addresses(to),
        cc=parse_envelope_addresses(cc),
        bcc=parse_envelope_addresses(bcc),
        in_reply_to=as_text(in_reply_to),
        message_id=as_text(message_id),
    )


def header_field_value(raw: Optional[bytes]) -> Optional[str]:
    """Unfolded value of the single field in a ``HEADER.FIELDS`` payload."""
    if not raw:
        return None
    text = raw.decode("latin-1")
    _, sep, value = text.partition(":")
    if not sep:
        return None
    return " ".join(value.split()) or None
