from __future__ import annotations

import re
from typing import List, Optional, Sequence, Tuple, Union

from loguru import logger

from openimap.constants import SearchFlag, SortKey
from openimap.diagnostics import returns_false_on_failure
from openimap.imap.connection import Connection
from openimap.imap.envelope import header_field_value, parse_envelope
from openimap.imap.response import parse_numbers, tokenize_line
from openimap.imap.sorting import SortRecord, sort_records, thread_from_tokens, thread_records
from openimap.models import ThreadNode
from openimap.types import check_flags, compact_message_set

_SORT_ATOMS = {
    SortKey.DATE: "DATE",
    SortKey.ARRIVAL: "ARRIVAL",
    SortKey.FROM: "FROM",
    SortKey.SUBJECT: "SUBJECT",
    SortKey.TO: "TO",
    SortKey.CC: "CC",
    SortKey.SIZE: "SIZE",
}

_TRAILING_QUOTED_RE = re.compile(r'^(.*?)\s*"((?:[^"\\]|\\.)*)"\s*$', re.DOTALL)
_UNESCAPE_RE = re.compile(r"\\(.)")

_SORT_FETCH_ITEMS = "(UID ENVELOPE INTERNALDATE RFC822.SIZE)"
_THREAD_FETCH_ITEMS = "(UID ENVELOPE INTERNALDATE RFC822.SIZE BODY.PEEK[HEADER.FIELDS (REFERENCES)])"


def criteria_args(criteria: str, charset: Optional[str]) -> Tuple[List[str], Optional[bytes], Optional[str]]:
    """Split search criteria into (args, literal, charset) for imaplib.

    imaplib sends arguments as ASCII. Non-ASCII text is only accepted as the
    final quoted string, which is then sent as a literal in ``charset``.
    """
    criteria = criteria.strip()
    if not criteria:
        raise ValueError("Empty search criteria")
    if criteria.isascii():
        return [criteria], None, charset or None

    m = _TRAILING_QUOTED_RE.match(criteria)
    if not m or not m.group(1).isascii() or not m.group(1):
        raise ValueError("Non-ASCII search text must be the final, quoted argument")
    text = _UNESCAPE_RE.sub(r"\1", m.group(2))
    charset = charset or "UTF-8"
    return [m.group(1)], text.encode(charset), charset


def _search(conn: Connection, imap, criteria: str, charset: Optional[str], uid: bool) -> List[int]:
    conn.require_selected()
    args, literal, charset = criteria_args(criteria, charset)
    charset_args = ["CHARSET", charset] if charset else []
    if literal is not None:
        imap.literal = literal
    logger.debug("imap search {}{}", "UID " if uid else "", criteria)
    if uid:
        typ, data = imap.uid("SEARCH", *charset_args, *args)
    else:
        typ, data = imap.search(charset, *args)
    conn.check_response(typ, data, "SEARCH")
    return parse_numbers(data)


@returns_false_on_failure
def search(conn: Connection, criteria: str, flags: int = SearchFlag.FREE, charset: str = "") -> Union[List[int], bool]:
    """Sequence numbers (UIDs with ``SE_UID``) matching ``criteria``; ``[]`` when none do."""
    conn.check_open()
    flags = check_flags(flags, SearchFlag.UID | SearchFlag.FREE | SearchFlag.NOPREFETCH, "search")
    return conn.run(lambda imap: _search(conn, imap, criteria, charset, bool(flags & SearchFlag.UID)))


def _records(conn: Connection, imap, msgnos: Sequence[int], items: str, uid: bool) -> List[SortRecord]:
    if not msgnos:
        return []
    records: List[SortRecord] = []
    for item in conn.fetch(imap, compact_message_set(msgnos), items):
        if "ENVELOPE" not in item.attrs:
            continue
        envelope = conn.envelopes.get(item.msgno)
        if envelope is None:
            envelope = conn.envelopes[item.msgno] = parse_envelope(item.attrs["ENVELOPE"])
        references = item.section("HEADER.FIELDS (REFERENCES)")
        records.append(
            SortRecord(
                ident=item.uid if uid and item.uid is not None else item.msgno,
                msgno=item.msgno,
                envelope=envelope,
                internaldate=item.internaldate,
                size=item.size or 0,
                references=header_field_value(references),
            )
        )
    return records


@returns_false_on_failure
def sort(
    conn: Connection,
    criteria: int,
    reverse: bool,
    flags: int = 0,
    search_criteria: Optional[str] = None,
    charset: Optional[str] = None,
) -> Union[List[int], bool]:
    conn.check_open()
    flags = check_flags(flags, SearchFlag.UID | SearchFlag.NOPREFETCH | SearchFlag.SORT_FREE, "sort")
    key = SortKey(criteria)
    uid = bool(flags & SearchFlag.UID)
    # SO_NOSERVER shares its bit with SO_FREE
    use_server = conn.has_capability("SORT") and not flags & SearchFlag.SORT_FREE
    program = f"(REVERSE {_SORT_ATOMS[key]})" if reverse else f"({_SORT_ATOMS[key]})"
    search_criteria = search_criteria or "ALL"

    def _server(imap) -> List[int]:
        conn.require_selected()
        args, literal, cs = criteria_args(search_criteria, charset)
        if literal is not None:
            imap.literal = literal
        cs = cs or "UTF-8"
        if uid:
            typ, data = imap.uid("SORT", program, cs, *args)
        else:
            typ, data = imap.sort(program, cs, *args)
        conn.check_response(typ, data, "SORT")
        return parse_numbers(data)

    def _client(imap) -> List[int]:
        msgnos = _search(conn, imap, search_criteria, charset, uid=False)
        records = _records(conn, imap, msgnos, _SORT_FETCH_ITEMS, uid)
        return sort_records(records, key, bool(reverse))

    return conn.run(_server if use_server else _client)


@returns_false_on_failure
def thread(conn: Connection, flags: int = SearchFlag.FREE) -> Union[List[ThreadNode], bool]:
    """Thread the selected mailbox by References; nodes hold msgnos (UIDs with ``SE_UID``)."""
    conn.check_open()
    flags = check_flags(flags, SearchFlag.UID | SearchFlag.FREE | SearchFlag.NOPREFETCH, "thread")
    uid = bool(flags & SearchFlag.UID)

    def _server(imap) -> List[ThreadNode]:
        conn.require_selected()
        if uid:
            typ, data = imap.uid("THREAD", "REFERENCES", "UTF-8", "ALL")
        else:
            typ, data = imap.thread("REFERENCES", "UTF-8", "ALL")
        conn.check_response(typ, data, "THREAD")
        nodes: List[ThreadNode] = []
        for raw in data or []:
            if raw:
                nodes.extend(thread_from_tokens(tokenize_line(raw)))
        return nodes

    def _client(imap) -> List[ThreadNode]:
        conn.require_selected()
        if conn.nmsgs == 0:
            return []
        records = _records(conn, imap, range(1, conn.nmsgs + 1), _THREAD_FETCH_ITEMS, uid)
        return thread_records(records)

    return conn.run(_server if conn.has_capability("THREAD=REFERENCES") else _client)
