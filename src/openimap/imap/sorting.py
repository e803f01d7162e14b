"""Client-side SORT and THREAD for servers that lack the extensions.

Ordering follows RFC 5256 where it is cheap to do so: base-subject
extraction, first-address mailbox comparison, sent date falling back to the
internal date, and message number as the final tie breaker.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Sequence

from openimap.constants import SortKey
from openimap.errors import ParseError
from openimap.models import Envelope, ThreadNode

_MSGID_RE = re.compile(r"<[^<>\s]+>")
_LEADER_RE = re.compile(r"^(?:re|fwd?)\s*(?:\[[^\[\]]*\])?\s*:\s*", re.IGNORECASE)
_BLOB_RE = re.compile(r"^\[[^\[\]]*\]\s*")
_TRAILER_RE = re.compile(r"\s*\(fwd\)$", re.IGNORECASE)


def base_subject(subject: Optional[str]) -> str:
    s = " ".join((subject or "").split())
    while True:
        before = s
        while True:
            trimmed = _TRAILER_RE.sub("", s)
            if trimmed == s:
                break
            s = trimmed
        while True:
            m = _LEADER_RE.match(s)
            if m:
                s = s[m.end():]
                continue
            m = _BLOB_RE.match(s)
            # A blob is only stripped when something remains after it
            if m and s[m.end():]:
                s = s[m.end():]
                continue
            break
        if s[:5].lower() == "[fwd:" and s.endswith("]"):
            s = s[5:-1].strip()
        if s == before:
            return s.lower()


def parse_internaldate(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.strptime(raw.strip().strip('"').strip(), "%d-%b-%Y %H:%M:%S %z")
    except ValueError:
        return None


def _timestamp(dt: Optional[datetime]) -> float:
    if dt is None:
        return 0.0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def _sent_date(envelope: Optional[Envelope]) -> Optional[datetime]:
    if envelope is None or not envelope.date:
        return None
    try:
        return parsedate_to_datetime(envelope.date)
    except (TypeError, ValueError, IndexError):
        return None


@dataclass
class SortRecord:
    ident: int
    msgno: int
    envelope: Optional[Envelope] = None
    internaldate: Optional[str] = None
    size: int = 0
    references: Optional[str] = None

    def date_ts(self) -> float:
        sent = _sent_date(self.envelope)
        if sent is not None:
            return _timestamp(sent)
        return _timestamp(parse_internaldate(self.internaldate))

    def key(self, criteria: SortKey) -> Any:
        env = self.envelope
        if criteria == SortKey.DATE:
            return self.date_ts()
        if criteria == SortKey.ARRIVAL:
            return _timestamp(parse_internaldate(self.internaldate))
        if criteria == SortKey.SIZE:
            return self.size
        if criteria == SortKey.SUBJECT:
            return base_subject(env.subject if env else None)
        addrs = ()
        if env is not None:
            if criteria == SortKey.FROM:
                addrs = env.from_
            elif criteria == SortKey.TO:
                addrs = env.to
            elif criteria == SortKey.CC:
                addrs = env.cc
        return addrs[0].mailbox.lower() if addrs else ""


def sort_records(records: Sequence[SortRecord], criteria: SortKey, reverse: bool) -> List[int]:
    ordered = sorted(records, key=lambda r: r.msgno)
    # Stable second pass: REVERSE applies to the key only, ties stay ascending
    ordered.sort(key=lambda r: r.key(criteria), reverse=reverse)
    return [r.ident for r in ordered]


# -----------------------
# THREAD
# -----------------------


def thread_from_tokens(tokens: Sequence[Any]) -> List[ThreadNode]:
    """Convert a tokenized THREAD response into :class:`ThreadNode` trees."""
    return [_thread_list(t) for t in tokens if isinstance(t, list) and t]


def _thread_list(items: Sequence[Any]) -> ThreadNode:
    root: Optional[ThreadNode] = None
    cur: Optional[ThreadNode] = None
    for it in items:
        if isinstance(it, list):
            child = _thread_list(it)
            if cur is None:
                root = cur = ThreadNode(msgno=None)
            cur.children.append(child)
            continue
        node = ThreadNode(msgno=int(it))
        if cur is None:
            root = node
        else:
            cur.children.append(node)
        cur = node
    if root is None:
        raise ParseError("Empty THREAD list")
    return root


def _message_ids(raw: Optional[str]) -> List[str]:
    return _MSGID_RE.findall(raw or "")


@dataclass
class _Container:
    record: SortRecord
    parent: Optional["_Container"] = None
    children: List["_Container"] = field(default_factory=list)


def thread_records(records: Sequence[SortRecord]) -> List[ThreadNode]:
    """REFERENCES-style threading over Message-ID, References and In-Reply-To."""
    by_id: Dict[str, _Container] = {}
    containers: List[_Container] = []
    for rec in records:
        c = _Container(record=rec)
        containers.append(c)
        ids = _message_ids(rec.envelope.message_id if rec.envelope else None)
        if ids and ids[0] not in by_id:
            by_id[ids[0]] = c

    for c in containers:
        env = c.record.envelope
        chain = _message_ids(c.record.references)
        for ref in _message_ids(env.in_reply_to if env else None):
            if ref not in chain:
                chain.append(ref)
        for ref in reversed(chain):
            parent = by_id.get(ref)
            if parent is None or parent is c or _is_ancestor(c, parent):
                continue
            c.parent = parent
            parent.children.append(c)
            break

    def order(cs: List[_Container]) -> List[_Container]:
        return sorted(cs, key=lambda x: (x.record.date_ts(), x.record.msgno))

    def build(c: _Container) -> ThreadNode:
        return ThreadNode(msgno=c.record.ident, children=[build(ch) for ch in order(c.children)])

    return [build(c) for c in order([c for c in containers if c.parent is None])]


def _is_ancestor(node: _Container, candidate: _Container) -> bool:
    """True when ``node`` is already an ancestor of ``candidate``."""
    cur: Optional[_Container] = candidate
    while cur is not None:
        if cur is node:
            return True
        cur = cur.parent
    return False
