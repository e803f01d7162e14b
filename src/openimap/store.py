from __future__ import annotations

import imaplib
import re
from datetime import datetime
from typing import Optional, Union

from loguru import logger

from openimap.constants import CopyFlag, FetchFlag, StoreFlag
from openimap.diagnostics import returns_false_on_failure
from openimap.imap.connection import Connection
from openimap.imap.sorting import parse_internaldate
from openimap.types import MessageSetLike, check_flags, message_set

_FLAG_RE = re.compile(r"^\\?[^\s(){%*\"\\\]]+$")


def _flag_list(flags: str) -> str:
    """Validate a space separated flag string and wrap it as an IMAP list."""
    text = (flags or "").strip()
    if text.startswith("(") and text.endswith(")"):
        text = text[1:-1].strip()
    tokens = text.split()
    if not tokens:
        raise ValueError("Empty flag list")
    for tok in tokens:
        if not _FLAG_RE.match(tok):
            raise ValueError(f"Invalid flag {tok!r}")
    return "(" + " ".join(tokens) + ")"


def _store(conn: Connection, seq: str, mode: str, flag_list: str, uid: bool) -> None:
    def _impl(imap) -> None:
        conn.require_writable()
        logger.debug("imap store {}{} {} {}", "UID " if uid else "", seq, mode, flag_list)
        if uid:
            typ, data = imap.uid("STORE", seq, mode, flag_list)
        else:
            typ, data = imap.store(seq, mode, flag_list)
        conn.check_response(typ, data, f"STORE {seq} {mode}")
        conn.elements.clear()

    conn.run(_impl)


# -----------------------
# Deletion marks
# -----------------------


@returns_false_on_failure
def delete(conn: Connection, message_nums: MessageSetLike, flags: int = 0) -> bool:
    """Mark messages ``\\Deleted``; they go away on expunge or close with ``CL_EXPUNGE``."""
    conn.check_open()
    flags = check_flags(flags, FetchFlag.UID, "delete")
    _store(conn, message_set(message_nums), "+FLAGS.SILENT", "(\\Deleted)", bool(flags & FetchFlag.UID))
    return True


@returns_false_on_failure
def undelete(conn: Connection, message_nums: MessageSetLike, flags: int = 0) -> bool:
    conn.check_open()
    flags = check_flags(flags, FetchFlag.UID, "undelete")
    _store(conn, message_set(message_nums), "-FLAGS.SILENT", "(\\Deleted)", bool(flags & FetchFlag.UID))
    return True


@returns_false_on_failure
def expunge(conn: Connection) -> bool:
    conn.check_open()

    def _impl(imap) -> None:
        conn.require_writable()
        typ, data = imap.expunge()
        conn.check_response(typ, data, "EXPUNGE")
        removed = conn.apply_expunge(data)
        logger.debug("imap expunge removed {} message(s) from {!r}", removed, conn.mailbox)

    conn.run(_impl)
    return True


# -----------------------
# Flags
# -----------------------


@returns_false_on_failure
def setflag_full(conn: Connection, sequence: MessageSetLike, flag: str, options: int = 0) -> bool:
    conn.check_open()
    options = check_flags(options, StoreFlag.UID | StoreFlag.SILENT, "setflag_full")
    mode = "+FLAGS.SILENT" if options & StoreFlag.SILENT else "+FLAGS"
    _store(conn, message_set(sequence), mode, _flag_list(flag), bool(options & StoreFlag.UID))
    return True


@returns_false_on_failure
def clearflag_full(conn: Connection, sequence: MessageSetLike, flag: str, options: int = 0) -> bool:
    conn.check_open()
    options = check_flags(options, StoreFlag.UID | StoreFlag.SILENT, "clearflag_full")
    mode = "-FLAGS.SILENT" if options & StoreFlag.SILENT else "-FLAGS"
    _store(conn, message_set(sequence), mode, _flag_list(flag), bool(options & StoreFlag.UID))
    return True


# -----------------------
# Copy / move / append
# -----------------------


@returns_false_on_failure
def mail_copy(conn: Connection, message_nums: MessageSetLike, mailbox: str, flags: int = 0) -> bool:
    """COPY to ``mailbox``; with ``CP_MOVE`` the source messages are also marked ``\\Deleted``."""
    conn.check_open()
    flags = check_flags(flags, CopyFlag.UID | CopyFlag.MOVE, "mail_copy")
    seq = message_set(message_nums)
    uid = bool(flags & CopyFlag.UID)
    move = bool(flags & CopyFlag.MOVE)
    dest = conn.quote_mailbox(mailbox)

    def _impl(imap) -> None:
        if move:
            conn.require_writable()
        else:
            conn.require_selected()
        if uid:
            typ, data = imap.uid("COPY", seq, dest)
        else:
            typ, data = imap.copy(seq, dest)
        conn.check_response(typ, data, f"COPY {seq} {mailbox!r}")

        if move:
            if uid:
                typ, data = imap.uid("STORE", seq, "+FLAGS.SILENT", "(\\Deleted)")
            else:
                typ, data = imap.store(seq, "+FLAGS.SILENT", "(\\Deleted)")
            conn.check_response(typ, data, f"STORE {seq} +FLAGS.SILENT (\\Deleted)")
            conn.elements.clear()

    conn.run(_impl)
    return True


@returns_false_on_failure
def mail_move(conn: Connection, message_nums: MessageSetLike, mailbox: str, flags: int = 0) -> bool:
    conn.check_open()
    flags = check_flags(flags, CopyFlag.UID, "mail_move")
    return mail_copy(conn, message_nums, mailbox, flags | CopyFlag.MOVE)


def _internal_date_arg(value: Union[str, datetime]) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.astimezone()
        return imaplib.Time2Internaldate(value)
    text = str(value).strip().strip('"')
    if parse_internaldate(text) is None:
        raise ValueError(f"append: {value!r} is not an IMAP date-time (dd-Mon-yyyy hh:mm:ss +zzzz)")
    return f'"{text}"'


@returns_false_on_failure
def append(
    conn: Connection,
    folder: str,
    message: Union[str, bytes],
    options: Optional[str] = None,
    internal_date: Optional[Union[str, datetime]] = None,
) -> bool:
    """APPEND ``message`` to ``folder``; ``options`` is a flag string like ``"\\Seen \\Draft"``."""
    conn.check_open()
    flags_arg = _flag_list(options) if options and options.strip("() ") else None
    date_arg = _internal_date_arg(internal_date) if internal_date is not None else None
    raw = message.encode("utf-8") if isinstance(message, str) else bytes(message)
    dest = conn.quote_mailbox(folder)

    def _impl(imap) -> None:
        typ, data = imap.append(dest, flags_arg, date_arg, raw)
        conn.check_response(typ, data, f"APPEND {folder!r}")

    conn.run(_impl)
    return True
