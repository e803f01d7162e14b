from __future__ import annotations

import os
import re
from typing import BinaryIO, List, Optional, Union

from openimap.constants import FetchFlag, GCFlag
from openimap.diagnostics import returns_false_on_failure
from openimap.errors import IMAPError, ParseError
from openimap.imap.bodystructure import find_section, parse_bodystructure
from openimap.imap.connection import Connection, Element
from openimap.imap.envelope import header_field_value, parse_envelope
from openimap.imap.response import FetchItem
from openimap.imap.sorting import parse_internaldate
from openimap.models import BodyStructure, Envelope, HeaderInfo, Overview
from openimap.types import check_flags, message_set

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# Upper bound for headerinfo() from/subject lengths
_MAX_FIELD_LENGTH = 1024

_SECTION_RE = re.compile(
    r"^(?:[1-9]\d*(?:\.[1-9]\d*)*(?:\.(?:HEADER|TEXT|MIME))?|HEADER|TEXT)?$",
    re.IGNORECASE,
)

_SUMMARY_ITEMS = "(UID FLAGS INTERNALDATE RFC822.SIZE ENVELOPE)"
_OVERVIEW_ITEMS = "(UID FLAGS RFC822.SIZE ENVELOPE BODY.PEEK[HEADER.FIELDS (REFERENCES)])"


# -----------------------
# Helpers
# -----------------------


def _check_msgno(conn: Connection, number: int) -> int:
    if isinstance(number, bool) or not isinstance(number, int) or not 1 <= number <= conn.nmsgs:
        raise ValueError(f"Bad message number {number!r}")
    return number


def _check_uid(number: int) -> int:
    if isinstance(number, bool) or not isinstance(number, int) or number < 1:
        raise ValueError(f"Bad UID {number!r}")
    return number


def _normalize_section(section: str) -> str:
    section = (section or "").strip()
    if section == "0":
        return "HEADER"
    if not _SECTION_RE.match(section):
        raise ValueError(f"Invalid body section {section!r}")
    return section.upper()


def _fetch_one(conn: Connection, imap, number: int, items: str, uid: bool) -> FetchItem:
    for item in conn.fetch(imap, str(number), items, uid=uid):
        if (item.uid if uid else item.msgno) == number:
            return item
    raise IMAPError(f"No message with {'UID' if uid else 'sequence number'} {number}")


def _fetch_text(conn: Connection, imap, number: int, section: str, *, uid: bool, peek: bool) -> bytes:
    conn.require_selected()
    msgno = conn.msgno_for_uid(_check_uid(number)) if uid else _check_msgno(conn, number)
    key = (msgno, section)
    if peek and msgno is not None and key in conn.texts:
        return conn.texts[key]

    attr = "BODY.PEEK" if peek else "BODY"
    item = _fetch_one(conn, imap, number, f"(UID {attr}[{section}])", uid=uid)
    payload = item.section(section)
    if payload is None:
        raise IMAPError(f"Server returned no BODY[{section}] for message {number}")
    conn.texts[(item.msgno, section)] = payload
    if not peek:
        # \Seen may have changed
        conn.elements.pop(item.msgno, None)
    return payload


def _envelope_for(conn: Connection, item: FetchItem) -> Envelope:
    env = conn.envelopes.get(item.msgno)
    if env is None:
        raw = item.attrs.get("ENVELOPE")
        if raw is None:
            raise ParseError(f"FETCH for message {item.msgno} carried no ENVELOPE")
        env = conn.envelopes[item.msgno] = parse_envelope(raw)
    return env


def _fixed(text: str, length: int, pad: bool) -> str:
    text = text[:length]
    return text.ljust(length) if pad else text


def _fetchfrom(env: Envelope, length: int) -> str:
    text = ""
    if env.from_:
        first = env.from_[0]
        text = first.personal or first.email
    return _fixed(text, length, pad=True)


def _fetchsubject(env: Envelope, length: int) -> str:
    return _fixed(env.subject or "", length, pad=False)


def _summary_line(el: Element, env: Envelope) -> str:
    flags = {f.upper() for f in el.flags or ()}
    recent = "\\RECENT" in flags
    seen = "\\SEEN" in flags
    line = "".join(
        (
            ("R" if seen else "N") if recent else " ",
            " " if recent or seen else "U",
            "F" if "\\FLAGGED" in flags else " ",
            "A" if "\\ANSWERED" in flags else " ",
            "D" if "\\DELETED" in flags else " ",
            "X" if "\\DRAFT" in flags else " ",
        )
    )
    line += f"{el.msgno:4d}) "
    date = parse_internaldate(el.internaldate)
    line += f"{date.day:2d}-{_MONTHS[date.month - 1]}-{date.year}" if date else " " * 11
    line += " " + _fetchfrom(env, 20) + " "
    keywords = [f for f in el.flags or () if not f.startswith("\\")]
    if keywords:
        line += "{" + " ".join(keywords) + "} "
    line += _fetchsubject(env, 25)
    line += f" ({el.size or 0} chars)"
    return line


# -----------------------
# Headers
# -----------------------


@returns_false_on_failure
def headers(conn: Connection) -> Union[List[str], bool]:
    """One ``imap_headers``-style summary line per message in the mailbox."""
    conn.check_open()

    def _impl(imap) -> List[str]:
        conn.require_selected()
        if conn.nmsgs == 0:
            return []
        lines = []
        for item in sorted(conn.fetch(imap, "1:*", _SUMMARY_ITEMS), key=lambda i: i.msgno):
            if "ENVELOPE" not in item.attrs:
                continue
            lines.append(_summary_line(conn.elements[item.msgno], _envelope_for(conn, item)))
        return lines

    return conn.run(_impl)


@returns_false_on_failure
def headerinfo(
    conn: Connection, msgno: int, from_length: int = 0, subject_length: int = 0
) -> Union[HeaderInfo, bool]:
    conn.check_open()
    for name, value in (("from_length", from_length), ("subject_length", subject_length)):
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _MAX_FIELD_LENGTH:
            raise ValueError(f"headerinfo: {name} must be between 0 and {_MAX_FIELD_LENGTH}")

    def _impl(imap) -> HeaderInfo:
        conn.require_selected()
        _check_msgno(conn, msgno)
        el = conn.elements.get(msgno)
        env = conn.envelopes.get(msgno)
        if el is None or not el.complete or env is None:
            env = _envelope_for(conn, _fetch_one(conn, imap, msgno, _SUMMARY_ITEMS, uid=False))
            el = conn.elements[msgno]

        flags = {f.upper() for f in el.flags or ()}
        return HeaderInfo(
            envelope=env,
            msgno=msgno,
            size=el.size or 0,
            recent="\\RECENT" in flags,
            seen="\\SEEN" in flags,
            flagged="\\FLAGGED" in flags,
            answered="\\ANSWERED" in flags,
            deleted="\\DELETED" in flags,
            draft="\\DRAFT" in flags,
            internal_date=parse_internaldate(el.internaldate),
            fetchfrom=_fetchfrom(env, from_length) if from_length else "",
            fetchsubject=_fetchsubject(env, subject_length) if subject_length else "",
        )

    return conn.run(_impl)


@returns_false_on_failure
def fetchheader(conn: Connection, msgno: int, flags: int = 0) -> Union[bytes, bool]:
    conn.check_open()
    flags = check_flags(flags, FetchFlag.UID | FetchFlag.INTERNAL | FetchFlag.PREFETCHTEXT, "fetchheader")
    uid = bool(flags & FetchFlag.UID)

    def _impl(imap) -> bytes:
        header = _fetch_text(conn, imap, msgno, "HEADER", uid=uid, peek=True)
        if flags & FetchFlag.PREFETCHTEXT:
            _fetch_text(conn, imap, msgno, "TEXT", uid=uid, peek=False)
        return header

    return conn.run(_impl)


# -----------------------
# Bodies
# -----------------------


@returns_false_on_failure
def body(conn: Connection, msgno: int, flags: int = 0) -> Union[bytes, bool]:
    """The message text (everything after the header block)."""
    conn.check_open()
    flags = check_flags(flags, FetchFlag.UID | FetchFlag.PEEK | FetchFlag.INTERNAL, "body")
    return conn.run(
        lambda imap: _fetch_text(
            conn, imap, msgno, "TEXT", uid=bool(flags & FetchFlag.UID), peek=bool(flags & FetchFlag.PEEK)
        )
    )


@returns_false_on_failure
def fetchbody(conn: Connection, msgno: int, section: str, flags: int = 0) -> Union[bytes, bool]:
    conn.check_open()
    flags = check_flags(flags, FetchFlag.UID | FetchFlag.PEEK | FetchFlag.INTERNAL, "fetchbody")
    section = _normalize_section(section)
    return conn.run(
        lambda imap: _fetch_text(
            conn, imap, msgno, section, uid=bool(flags & FetchFlag.UID), peek=bool(flags & FetchFlag.PEEK)
        )
    )


@returns_false_on_failure
def fetchmime(conn: Connection, msgno: int, section: str, flags: int = 0) -> Union[bytes, bool]:
    """MIME header of ``section``; the message header for ``""``."""
    conn.check_open()
    flags = check_flags(flags, FetchFlag.UID | FetchFlag.PEEK | FetchFlag.INTERNAL, "fetchmime")
    section = _normalize_section(section)
    if section in ("", "HEADER"):
        mime_section = "HEADER"
    elif section[0].isdigit() and section.split(".")[-1].isdigit():
        mime_section = f"{section}.MIME"
    else:
        raise ValueError(f"fetchmime: {section!r} is not a body part section")
    return conn.run(
        lambda imap: _fetch_text(
            conn, imap, msgno, mime_section, uid=bool(flags & FetchFlag.UID), peek=bool(flags & FetchFlag.PEEK)
        )
    )


@returns_false_on_failure
def savebody(
    conn: Connection,
    file: Union[str, "os.PathLike[str]", BinaryIO],
    msgno: int,
    section: str = "",
    flags: int = 0,
) -> bool:
    """Write a body section to a path or a writable binary file object."""
    conn.check_open()
    flags = check_flags(flags, FetchFlag.UID | FetchFlag.PEEK | FetchFlag.INTERNAL, "savebody")
    section = _normalize_section(section)
    payload = conn.run(
        lambda imap: _fetch_text(
            conn, imap, msgno, section, uid=bool(flags & FetchFlag.UID), peek=bool(flags & FetchFlag.PEEK)
        )
    )
    if isinstance(file, (str, os.PathLike)):
        with open(file, "wb") as fh:
            fh.write(payload)
    else:
        file.write(payload)
    return True


# -----------------------
# Structure
# -----------------------


def _structure(conn: Connection, imap, number: int, uid: bool) -> BodyStructure:
    conn.require_selected()
    msgno = conn.msgno_for_uid(_check_uid(number)) if uid else _check_msgno(conn, number)
    if msgno is not None and msgno in conn.structures:
        return conn.structures[msgno]

    item = _fetch_one(conn, imap, number, "(UID BODYSTRUCTURE)", uid=uid)
    raw = item.attrs.get("BODYSTRUCTURE")
    if raw is None:
        raise ParseError(f"FETCH for message {number} carried no BODYSTRUCTURE")
    structure = conn.structures[item.msgno] = parse_bodystructure(raw)
    return structure


@returns_false_on_failure
def fetchstructure(conn: Connection, msgno: int, flags: int = 0) -> Union[BodyStructure, bool]:
    conn.check_open()
    flags = check_flags(flags, FetchFlag.UID, "fetchstructure")
    return conn.run(lambda imap: _structure(conn, imap, msgno, bool(flags & FetchFlag.UID)))


@returns_false_on_failure
def bodystruct(conn: Connection, msgno: int, section: str) -> Union[BodyStructure, bool]:
    conn.check_open()
    root = conn.run(lambda imap: _structure(conn, imap, msgno, False))
    node = find_section(root, section)
    if node is None:
        raise ValueError(f"Message {msgno} has no body section {section!r}")
    return node


# -----------------------
# Overview / UID mapping
# -----------------------


def _overview(conn: Connection, item: FetchItem) -> Overview:
    env = _envelope_for(conn, item)
    flags = {f.upper() for f in item.flags}
    return Overview(
        msgno=item.msgno,
        uid=item.uid or 0,
        size=item.size or 0,
        subject=env.subject,
        from_=env.fromaddress or None,
        to=env.toaddress or None,
        date=env.date,
        message_id=env.message_id,
        references=header_field_value(item.section("HEADER.FIELDS (REFERENCES)")),
        in_reply_to=env.in_reply_to,
        recent="\\RECENT" in flags,
        flagged="\\FLAGGED" in flags,
        answered="\\ANSWERED" in flags,
        deleted="\\DELETED" in flags,
        seen="\\SEEN" in flags,
        draft="\\DRAFT" in flags,
        keywords=tuple(f for f in item.flags if not f.startswith("\\")),
    )


@returns_false_on_failure
def fetch_overview(conn: Connection, sequence, flags: int = 0) -> Union[List[Overview], bool]:
    conn.check_open()
    flags = check_flags(flags, FetchFlag.UID, "fetch_overview")
    seq = message_set(sequence)

    def _impl(imap) -> List[Overview]:
        conn.require_selected()
        if conn.nmsgs == 0:
            return []
        items = conn.fetch(imap, seq, _OVERVIEW_ITEMS, uid=bool(flags & FetchFlag.UID))
        return [_overview(conn, i) for i in sorted(items, key=lambda i: i.msgno) if "ENVELOPE" in i.attrs]

    return conn.run(_impl)


@returns_false_on_failure
def uid(conn: Connection, msgno: int) -> Union[int, bool]:
    conn.check_open()

    def _impl(imap) -> int:
        conn.require_selected()
        _check_msgno(conn, msgno)
        el = conn.elements.get(msgno)
        if el is not None and el.uid is not None:
            return el.uid
        item = _fetch_one(conn, imap, msgno, "(UID)", uid=False)
        if item.uid is None:
            raise ParseError(f"FETCH for message {msgno} carried no UID")
        return item.uid

    return conn.run(_impl)


@returns_false_on_failure
def msgno(conn: Connection, uid: int) -> Union[int, bool]:
    """Sequence number for ``uid``; 0 when the mailbox holds no such UID."""
    conn.check_open()
    _check_uid(uid)

    def _impl(imap) -> int:
        conn.require_selected()
        cached = conn.msgno_for_uid(uid)
        if cached is not None:
            return cached
        for item in conn.fetch(imap, str(uid), "(UID)", uid=True):
            if item.uid == uid:
                return item.msgno
        return 0

    return conn.run(_impl)


@returns_false_on_failure
def gc(conn: Connection, flags: int) -> bool:
    """Drop cached message data: ``IMAP_GC_ELT``, ``IMAP_GC_ENV``, ``IMAP_GC_TEXTS``.

    Fetched body sections stay cached until this, an expunge or a reselect,
    so long-lived sessions should call it now and then.
    """
    conn.check_open()
    flags = check_flags(flags, GCFlag.ELT | GCFlag.ENV | GCFlag.TEXTS, "gc")
    conn.invalidate(flags)
    return True


fetchtext = body
