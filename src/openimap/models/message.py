from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Optional, Sequence, Tuple

# RFC 822 specials that force a phrase into a quoted-string.
_PHRASE_SPECIALS_RE = re.compile(r'[()<>@,;:\\".\[\]]')


def quote_phrase(personal: str) -> str:
    if not personal or not _PHRASE_SPECIALS_RE.search(personal):
        return personal
    escaped = personal.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@dataclass(frozen=True)
class Address:
    mailbox: str
    host: Optional[str] = None
    personal: Optional[str] = None
    adl: Optional[str] = None

    @property
    def email(self) -> str:
        if self.host:
            return f"{self.mailbox}@{self.host}"
        return self.mailbox

    @property
    def display(self) -> str:
        route = f"@{self.adl}:" if self.adl else ""
        addr = f"{route}{self.email}"
        if self.personal:
            return f"{quote_phrase(self.personal)} <{addr}>"
        if route:
            return f"<{addr}>"
        return addr

    def __str__(self) -> str:
        return self.display

    def to_dict(self) -> dict:
        return {
            "mailbox": self.mailbox,
            "host": self.host,
            "personal": self.personal,
            "adl": self.adl,
        }


def format_address_list(addrs: Sequence[Address]) -> str:
    return ", ".join(a.display for a in addrs)


def _parse_date(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        return None


@dataclass(frozen=True)
class Envelope:
    date: Optional[str] = None
    subject: Optional[str] = None
    from_: Tuple[Address, ...] = ()
    sender: Tuple[Address, ...] = ()
    reply_to: Tuple[Address, ...] = ()
    to: Tuple[Address, ...] = ()
    cc: Tuple[Address, ...] = ()
    bcc: Tuple[Address, ...] = ()
    in_reply_to: Optional[str] = None
    message_id: Optional[str] = None
    # Only filled when parsed from a header block (ENVELOPE does not carry them)
    references: Optional[str] = None
    newsgroups: Optional[str] = None
    followup_to: Optional[str] = None
    return_path: Tuple[Address, ...] = ()
    remail: Optional[str] = None

    @property
    def parsed_date(self) -> Optional[datetime]:
        return _parse_date(self.date)

    @property
    def fromaddress(self) -> str:
        return format_address_list(self.from_)

    @property
    def toaddress(self) -> str:
        return format_address_list(self.to)

    @property
    def ccaddress(self) -> str:
        return format_address_list(self.cc)

    @property
    def bccaddress(self) -> str:
        return format_address_list(self.bcc)

    @property
    def reply_toaddress(self) -> str:
        return format_address_list(self.reply_to)

    @property
    def senderaddress(self) -> str:
        return format_address_list(self.sender)

    @property
    def return_pathaddress(self) -> str:
        return format_address_list(self.return_path)

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "subject": self.subject,
            "from": [a.to_dict() for a in self.from_],
            "sender": [a.to_dict() for a in self.sender],
            "reply_to": [a.to_dict() for a in self.reply_to],
            "to": [a.to_dict() for a in self.to],
            "cc": [a.to_dict() for a in self.cc],
            "bcc": [a.to_dict() for a in self.bcc],
            "in_reply_to": self.in_reply_to,
            "message_id": self.message_id,
            "references": self.references,
            "newsgroups": self.newsgroups,
            "followup_to": self.followup_to,
            "return_path": [a.to_dict() for a in self.return_path],
            "remail": self.remail,
        }


@dataclass(frozen=True)
class HeaderInfo:
    envelope: Envelope
    msgno: int
    size: int = 0
    recent: bool = False
    seen: bool = False
    flagged: bool = False
    answered: bool = False
    deleted: bool = False
    draft: bool = False
    internal_date: Optional[datetime] = None
    fetchfrom: str = ""
    fetchsubject: str = ""

    @property
    def unseen(self) -> bool:
        return not self.seen

    @property
    def maildate(self) -> str:
        if self.internal_date is None:
            return ""
        return self.internal_date.strftime("%d-%b-%Y %H:%M:%S %z")

    @property
    def udate(self) -> Optional[int]:
        if self.internal_date is None:
            return None
        return int(self.internal_date.timestamp())

    def __repr__(self) -> str:
        return (
            f"HeaderInfo(msgno={self.msgno}, "
            f"subject={self.envelope.subject!r}, "
            f"from={self.envelope.fromaddress!r}, "
            f"size={self.size})"
        )

    def to_dict(self) -> dict:
        return {
            "envelope": self.envelope.to_dict(),
            "msgno": self.msgno,
            "size": self.size,
            "recent": self.recent,
            "seen": self.seen,
            "flagged": self.flagged,
            "answered": self.answered,
            "deleted": self.deleted,
            "draft": self.draft,
            "maildate": self.maildate,
            "udate": self.udate,
            "fetchfrom": self.fetchfrom,
            "fetchsubject": self.fetchsubject,
        }


@dataclass(frozen=True)
class Overview:
    msgno: int
    uid: int
    size: int = 0
    subject: Optional[str] = None
    from_: Optional[str] = None
    to: Optional[str] = None
    date: Optional[str] = None
    message_id: Optional[str] = None
    references: Optional[str] = None
    in_reply_to: Optional[str] = None
    recent: bool = False
    flagged: bool = False
    answered: bool = False
    deleted: bool = False
    seen: bool = False
    draft: bool = False
    keywords: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def udate(self) -> Optional[int]:
        dt = _parse_date(self.date)
        return int(dt.timestamp()) if dt else None

    def to_dict(self) -> dict:
        return {
            "msgno": self.msgno,
            "uid": self.uid,
            "size": self.size,
            "subject": self.subject,
            "from": self.from_,
            "to": self.to,
            "date": self.date,
            "message_id": self.message_id,
            "references": self.references,
            "in_reply_to": self.in_reply_to,
            "recent": self.recent,
            "flagged": self.flagged,
            "answered": self.answered,
            "deleted": self.deleted,
            "seen": self.seen,
            "draft": self.draft,
            "keywords": list(self.keywords),
            "udate": self.udate,
        }
