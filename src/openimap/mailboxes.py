from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Union

from loguru import logger

from openimap.constants import LIST_ATTRIBUTE_NAMES, MailboxAttribute, StatusFlag
from openimap.diagnostics import returns_false_on_failure
from openimap.imap.connection import Connection
from openimap.imap.response import ListEntry, parse_acl, parse_list, parse_quota, parse_status
from openimap.models import MailboxInfo, MailboxMsgInfo, QuotaResource, StatusInfo
from openimap.search import criteria_args
from openimap.types import check_flags
from openimap.utf7 import encode as utf7_encode

_STATUS_ITEMS = (
    (StatusFlag.MESSAGES, "MESSAGES"),
    (StatusFlag.RECENT, "RECENT"),
    (StatusFlag.UNSEEN, "UNSEEN"),
    (StatusFlag.UIDNEXT, "UIDNEXT"),
    (StatusFlag.UIDVALIDITY, "UIDVALIDITY"),
)


# -----------------------
# Counters and status
# -----------------------


def num_msg(conn: Connection) -> int:
    """Messages in the selected mailbox; 0 on a half-open handle."""
    conn.check_open()
    return conn.nmsgs


def num_recent(conn: Connection) -> int:
    conn.check_open()
    return conn.recent


@returns_false_on_failure
def status(conn: Connection, mailbox: str, flags: int) -> Union[StatusInfo, bool]:
    """STATUS for ``mailbox``; ``flags`` is a mask of ``SA_*`` bits."""
    conn.check_open()
    wanted = StatusFlag(check_flags(flags, StatusFlag.ALL, "status"))
    items = [name for bit, name in _STATUS_ITEMS if wanted & bit]
    if not items:
        raise ValueError("status: no SA_* item requested")

    def _impl(imap) -> Dict[str, int]:
        typ, data = imap.status(conn.quote_mailbox(mailbox), "(" + " ".join(items) + ")")
        conn.check_response(typ, data, f"STATUS {mailbox!r}")
        return parse_status(data)

    values = conn.run(_impl)
    returned = StatusFlag(0)
    counters: Dict[str, int] = {}
    for bit, name in _STATUS_ITEMS:
        if wanted & bit and name in values:
            returned |= bit
            counters[name.lower()] = values[name]
    return StatusInfo(flags=returned, **counters)


@returns_false_on_failure
def mailboxmsginfo(conn: Connection) -> Union[MailboxMsgInfo, bool]:
    conn.check_open()

    def _impl(imap) -> MailboxMsgInfo:
        conn.require_selected()
        unread = deleted = size = 0
        if conn.nmsgs:
            for item in conn.fetch(imap, "1:*", "(FLAGS RFC822.SIZE)"):
                flags = {f.upper() for f in item.flags}
                if "\\SEEN" not in flags:
                    unread += 1
                if "\\DELETED" in flags:
                    deleted += 1
                size += item.size or 0
        return MailboxMsgInfo(
            date=datetime.now().astimezone(),
            driver=conn.driver,
            mailbox=conn.qualified_mailbox,
            nmsgs=conn.nmsgs,
            recent=conn.recent,
            unread=unread,
            deleted=deleted,
            size=size,
        )

    return conn.run(_impl)


# -----------------------
# LIST / LSUB
# -----------------------


def _attributes(names) -> MailboxAttribute:
    mask = MailboxAttribute(0)
    for name in names:
        mask |= LIST_ATTRIBUTE_NAMES.get(name.upper(), MailboxAttribute(0))
    return mask


def _list(conn: Connection, command: str, reference: str, pattern: str) -> List[ListEntry]:
    ref = conn.quote(conn.strip_server(reference))
    pat = conn.quote(pattern if pattern.isascii() else utf7_encode(pattern))

    def _impl(imap) -> List[ListEntry]:
        if command == "LSUB":
            typ, data = imap.lsub(ref, pat)
        else:
            typ, data = imap.list(ref, pat)
        conn.check_response(typ, data, f"{command} {reference!r} {pattern!r}")
        return parse_list(data)

    return conn.run(_impl)


@returns_false_on_failure
def listmailbox(conn: Connection, reference: str, pattern: str) -> Union[List[str], bool]:
    conn.check_open()
    return [conn.spec.qualify(e.name) for e in _list(conn, "LIST", reference, pattern)]


@returns_false_on_failure
def getmailboxes(conn: Connection, reference: str, pattern: str) -> Union[List[MailboxInfo], bool]:
    conn.check_open()
    return [
        MailboxInfo(name=conn.spec.qualify(e.name), attributes=_attributes(e.attributes), delimiter=e.delimiter)
        for e in _list(conn, "LIST", reference, pattern)
    ]


@returns_false_on_failure
def lsub(conn: Connection, reference: str, pattern: str) -> Union[List[str], bool]:
    conn.check_open()
    return [conn.spec.qualify(e.name) for e in _list(conn, "LSUB", reference, pattern)]


@returns_false_on_failure
def getsubscribed(conn: Connection, reference: str, pattern: str) -> Union[List[MailboxInfo], bool]:
    conn.check_open()
    return [
        MailboxInfo(name=conn.spec.qualify(e.name), attributes=_attributes(e.attributes), delimiter=e.delimiter)
        for e in _list(conn, "LSUB", reference, pattern)
    ]


@returns_false_on_failure
def listscan(conn: Connection, reference: str, pattern: str, content: str) -> Union[List[str], bool]:
    """LIST restricted to mailboxes where a TEXT search for ``content`` matches."""
    conn.check_open()
    entries = _list(conn, "LIST", reference, pattern)
    args, literal, charset = criteria_args(f"TEXT {conn.quote(content)}", None)

    def _impl(imap) -> List[str]:
        previous, previous_readonly = conn.mailbox, conn.readonly
        matches: List[str] = []
        try:
            for entry in entries:
                if _attributes(entry.attributes) & MailboxAttribute.NOSELECT:
                    continue
                conn.select(imap, entry.name, True)
                if literal is not None:
                    imap.literal = literal
                typ, data = imap.search(charset, *args)
                conn.check_response(typ, data, f"SEARCH in {entry.name!r}")
                if any(d and d.split() for d in data or []):
                    matches.append(conn.spec.qualify(entry.name))
        finally:
            if previous is not None:
                conn.select(imap, previous, previous_readonly)
            else:
                conn.unselect(imap)
        logger.debug("imap listscan {!r}: {} of {} mailboxes match", content, len(matches), len(entries))
        return matches

    return conn.run(_impl)


# -----------------------
# Create / rename / delete / subscribe
# -----------------------


def _simple(conn: Connection, what: str, call) -> bool:
    conn.check_open()

    def _impl(imap) -> None:
        typ, data = call(imap)
        conn.check_response(typ, data, what)

    conn.run(_impl)
    return True


@returns_false_on_failure
def createmailbox(conn: Connection, mailbox: str) -> bool:
    return _simple(conn, f"CREATE {mailbox!r}", lambda imap: imap.create(conn.quote_mailbox(mailbox)))


@returns_false_on_failure
def renamemailbox(conn: Connection, from_: str, to: str) -> bool:
    return _simple(
        conn,
        f"RENAME {from_!r} {to!r}",
        lambda imap: imap.rename(conn.quote_mailbox(from_), conn.quote_mailbox(to)),
    )


@returns_false_on_failure
def deletemailbox(conn: Connection, mailbox: str) -> bool:
    return _simple(conn, f"DELETE {mailbox!r}", lambda imap: imap.delete(conn.quote_mailbox(mailbox)))


@returns_false_on_failure
def subscribe(conn: Connection, mailbox: str) -> bool:
    return _simple(conn, f"SUBSCRIBE {mailbox!r}", lambda imap: imap.subscribe(conn.quote_mailbox(mailbox)))


@returns_false_on_failure
def unsubscribe(conn: Connection, mailbox: str) -> bool:
    return _simple(conn, f"UNSUBSCRIBE {mailbox!r}", lambda imap: imap.unsubscribe(conn.quote_mailbox(mailbox)))


# -----------------------
# QUOTA / ACL
# -----------------------


def _resources(data) -> Dict[str, QuotaResource]:
    out: Dict[str, QuotaResource] = {}
    for resources in parse_quota(data).values():
        for name, (usage, limit) in resources.items():
            out[name] = QuotaResource(usage=usage, limit=limit)
    return out


@returns_false_on_failure
def get_quota(conn: Connection, quota_root: str) -> Union[Dict[str, QuotaResource], bool]:
    conn.check_open()
    conn.require_capability("QUOTA")

    def _impl(imap) -> Dict[str, QuotaResource]:
        typ, data = imap.getquota(conn.quote(quota_root))
        conn.check_response(typ, data, f"GETQUOTA {quota_root!r}")
        return _resources(data)

    return conn.run(_impl)


@returns_false_on_failure
def get_quotaroot(conn: Connection, mailbox: str) -> Union[Dict[str, QuotaResource], bool]:
    conn.check_open()
    conn.require_capability("QUOTA")

    def _impl(imap) -> Dict[str, QuotaResource]:
        typ, data = imap.getquotaroot(conn.quote_mailbox(mailbox))
        # imaplib answers [QUOTAROOT lines, QUOTA lines]
        if typ != "OK":
            conn.check_response(typ, data[0] if data else None, f"GETQUOTAROOT {mailbox!r}")
        return _resources(data[1] if len(data) > 1 else None)

    return conn.run(_impl)


@returns_false_on_failure
def set_quota(conn: Connection, quota_root: str, mailbox_size: int) -> bool:
    conn.check_open()
    conn.require_capability("QUOTA")
    if isinstance(mailbox_size, bool) or not isinstance(mailbox_size, int) or mailbox_size < 0:
        raise ValueError(f"set_quota: mailbox_size must be a non-negative int, got {mailbox_size!r}")
    return _simple(
        conn,
        f"SETQUOTA {quota_root!r}",
        lambda imap: imap.setquota(conn.quote(quota_root), f"(STORAGE {mailbox_size})"),
    )


@returns_false_on_failure
def setacl(conn: Connection, mailbox: str, user_id: str, rights: str) -> bool:
    conn.check_open()
    conn.require_capability("ACL")
    return _simple(
        conn,
        f"SETACL {mailbox!r} {user_id!r}",
        lambda imap: imap.setacl(conn.quote_mailbox(mailbox), conn.quote(user_id), conn.quote(rights)),
    )


@returns_false_on_failure
def getacl(conn: Connection, mailbox: str) -> Union[Dict[str, str], bool]:
    conn.check_open()
    conn.require_capability("ACL")

    def _impl(imap) -> Dict[str, str]:
        typ, data = imap.getacl(conn.quote_mailbox(mailbox))
        conn.check_response(typ, data, f"GETACL {mailbox!r}")
        return parse_acl(data)

    return conn.run(_impl)


listsubscribed = lsub
scan = listscan
scanmailbox = listscan
create = createmailbox
rename = renamemailbox
