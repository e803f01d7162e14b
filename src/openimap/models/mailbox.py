from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from openimap.constants import MailboxAttribute, StatusFlag


@dataclass(frozen=True)
class MailboxInfo:
    name: str
    attributes: MailboxAttribute
    delimiter: Optional[str]

    def to_dict(self) -> dict:
        return {"name": self.name, "attributes": int(self.attributes), "delimiter": self.delimiter}


@dataclass(frozen=True)
class StatusInfo:
    """STATUS result; ``flags`` says which of the counters were requested and returned."""

    flags: StatusFlag
    messages: Optional[int] = None
    recent: Optional[int] = None
    unseen: Optional[int] = None
    uidnext: Optional[int] = None
    uidvalidity: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "flags": int(self.flags),
            "messages": self.messages,
            "recent": self.recent,
            "unseen": self.unseen,
            "uidnext": self.uidnext,
            "uidvalidity": self.uidvalidity,
        }


@dataclass(frozen=True)
class CheckInfo:
    date: datetime
    driver: str
    mailbox: str
    nmsgs: int
    recent: int


@dataclass(frozen=True)
class MailboxMsgInfo:
    date: datetime
    driver: str
    mailbox: str
    nmsgs: int
    recent: int
    unread: int
    deleted: int
    size: int


@dataclass(frozen=True)
class QuotaResource:
    usage: int
    limit: int


@dataclass(frozen=True)
class MimeHeaderPart:
    charset: str
    text: str


@dataclass
class ThreadNode:
    msgno: Optional[int]
    children: List["ThreadNode"] = field(default_factory=list)

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> dict:
        return {"msgno": self.msgno, "children": [c.to_dict() for c in self.children]}
