from openimap.models.mailbox import (
    CheckInfo,
    MailboxInfo,
    MailboxMsgInfo,
    MimeHeaderPart,
    QuotaResource,
    StatusInfo,
    ThreadNode,
)
from openimap.models.message import Address, Envelope, HeaderInfo, Overview
from openimap.models.structure import BodyStructure

__all__ = [
    "Address",
    "Envelope",
    "HeaderInfo",
    "Overview",
    "BodyStructure",
    "MailboxInfo",
    "StatusInfo",
    "CheckInfo",
    "MailboxMsgInfo",
    "QuotaResource",
    "MimeHeaderPart",
    "ThreadNode",
]
