from __future__ import annotations

from enum import IntEnum, IntFlag

# Values match UW c-client (mail.h). Callers persist and compare them as
# plain ints, so do not renumber.

NIL = 0


class TimeoutType(IntEnum):
    OPEN = 1
    READ = 2
    WRITE = 3
    CLOSE = 4


class OpenFlag(IntFlag):
    DEBUG = 1
    READONLY = 2
    ANONYMOUS = 4
    SHORTCACHE = 8
    SILENT = 16
    PROTOTYPE = 32
    HALFOPEN = 64
    EXPUNGE = 128
    SECURE = 256


class CloseFlag(IntFlag):
    EXPUNGE = 32768


class FetchFlag(IntFlag):
    UID = 1
    PEEK = 2
    NOT = 4
    INTERNAL = 8
    PREFETCHTEXT = 32


class StoreFlag(IntFlag):
    UID = 1
    SILENT = 2
    SET = 4


class CopyFlag(IntFlag):
    UID = 1
    MOVE = 2


class SearchFlag(IntFlag):
    UID = 1
    FREE = 2
    NOPREFETCH = 4
    SORT_FREE = 8


class StatusFlag(IntFlag):
    MESSAGES = 1
    RECENT = 2
    UNSEEN = 4
    UIDNEXT = 8
    UIDVALIDITY = 16
    ALL = 31


class MailboxAttribute(IntFlag):
    NOINFERIORS = 1
    NOSELECT = 2
    MARKED = 4
    UNMARKED = 8
    REFERRAL = 16
    HASCHILDREN = 32
    HASNOCHILDREN = 64


class SortKey(IntEnum):
    DATE = 0
    ARRIVAL = 1
    FROM = 2
    SUBJECT = 3
    TO = 4
    CC = 5
    SIZE = 6


class BodyType(IntEnum):
    TEXT = 0
    MULTIPART = 1
    MESSAGE = 2
    APPLICATION = 3
    AUDIO = 4
    IMAGE = 5
    VIDEO = 6
    MODEL = 7
    OTHER = 8


class Encoding(IntEnum):
    ENC7BIT = 0
    ENC8BIT = 1
    BINARY = 2
    BASE64 = 3
    QUOTEDPRINTABLE = 4
    OTHER = 5


class GCFlag(IntFlag):
    ELT = 1
    ENV = 2
    TEXTS = 4


IMAP_OPENTIMEOUT = int(TimeoutType.OPEN)
IMAP_READTIMEOUT = int(TimeoutType.READ)
IMAP_WRITETIMEOUT = int(TimeoutType.WRITE)
IMAP_CLOSETIMEOUT = int(TimeoutType.CLOSE)

OP_DEBUG = int(OpenFlag.DEBUG)
OP_READONLY = int(OpenFlag.READONLY)
OP_ANONYMOUS = int(OpenFlag.ANONYMOUS)
OP_SHORTCACHE = int(OpenFlag.SHORTCACHE)
OP_SILENT = int(OpenFlag.SILENT)
OP_PROTOTYPE = int(OpenFlag.PROTOTYPE)
OP_HALFOPEN = int(OpenFlag.HALFOPEN)
OP_EXPUNGE = int(OpenFlag.EXPUNGE)
OP_SECURE = int(OpenFlag.SECURE)

CL_EXPUNGE = int(CloseFlag.EXPUNGE)

FT_UID = int(FetchFlag.UID)
FT_PEEK = int(FetchFlag.PEEK)
FT_NOT = int(FetchFlag.NOT)
FT_INTERNAL = int(FetchFlag.INTERNAL)
FT_PREFETCHTEXT = int(FetchFlag.PREFETCHTEXT)

ST_UID = int(StoreFlag.UID)
ST_SILENT = int(StoreFlag.SILENT)
ST_SET = int(StoreFlag.SET)

CP_UID = int(CopyFlag.UID)
CP_MOVE = int(CopyFlag.MOVE)

SE_UID = int(SearchFlag.UID)
SE_FREE = int(SearchFlag.FREE)
SE_NOPREFETCH = int(SearchFlag.NOPREFETCH)
SO_FREE = int(SearchFlag.SORT_FREE)
# c-client bindings give SO_NOSERVER the same bit as SO_FREE.
SO_NOSERVER = int(SearchFlag.SORT_FREE)

SA_MESSAGES = int(StatusFlag.MESSAGES)
SA_RECENT = int(StatusFlag.RECENT)
SA_UNSEEN = int(StatusFlag.UNSEEN)
SA_UIDNEXT = int(StatusFlag.UIDNEXT)
SA_UIDVALIDITY = int(StatusFlag.UIDVALIDITY)
SA_ALL = int(StatusFlag.ALL)

LATT_NOINFERIORS = int(MailboxAttribute.NOINFERIORS)
LATT_NOSELECT = int(MailboxAttribute.NOSELECT)
LATT_MARKED = int(MailboxAttribute.MARKED)
LATT_UNMARKED = int(MailboxAttribute.UNMARKED)
LATT_REFERRAL = int(MailboxAttribute.REFERRAL)
LATT_HASCHILDREN = int(MailboxAttribute.HASCHILDREN)
LATT_HASNOCHILDREN = int(MailboxAttribute.HASNOCHILDREN)

SORTDATE = int(SortKey.DATE)
SORTARRIVAL = int(SortKey.ARRIVAL)
SORTFROM = int(SortKey.FROM)
SORTSUBJECT = int(SortKey.SUBJECT)
SORTTO = int(SortKey.TO)
SORTCC = int(SortKey.CC)
SORTSIZE = int(SortKey.SIZE)

TYPETEXT = int(BodyType.TEXT)
TYPEMULTIPART = int(BodyType.MULTIPART)
TYPEMESSAGE = int(BodyType.MESSAGE)
TYPEAPPLICATION = int(BodyType.APPLICATION)
TYPEAUDIO = int(BodyType.AUDIO)
TYPEIMAGE = int(BodyType.IMAGE)
TYPEVIDEO = int(BodyType.VIDEO)
TYPEMODEL = int(BodyType.MODEL)
TYPEOTHER = int(BodyType.OTHER)

ENC7BIT = int(Encoding.ENC7BIT)
ENC8BIT = int(Encoding.ENC8BIT)
ENCBINARY = int(Encoding.BINARY)
ENCBASE64 = int(Encoding.BASE64)
ENCQUOTEDPRINTABLE = int(Encoding.QUOTEDPRINTABLE)
ENCOTHER = int(Encoding.OTHER)

IMAP_GC_ELT = int(GCFlag.ELT)
IMAP_GC_ENV = int(GCFlag.ENV)
IMAP_GC_TEXTS = int(GCFlag.TEXTS)

# IMAP body type / encoding atoms <-> enum
BODY_TYPE_NAMES = {
    "TEXT": BodyType.TEXT,
    "MULTIPART": BodyType.MULTIPART,
    "MESSAGE": BodyType.MESSAGE,
    "APPLICATION": BodyType.APPLICATION,
    "AUDIO": BodyType.AUDIO,
    "IMAGE": BodyType.IMAGE,
    "VIDEO": BodyType.VIDEO,
    "MODEL": BodyType.MODEL,
}

ENCODING_NAMES = {
    "7BIT": Encoding.ENC7BIT,
    "8BIT": Encoding.ENC8BIT,
    "BINARY": Encoding.BINARY,
    "BASE64": Encoding.BASE64,
    "QUOTED-PRINTABLE": Encoding.QUOTEDPRINTABLE,
}

LIST_ATTRIBUTE_NAMES = {
    "\\NOINFERIORS": MailboxAttribute.NOINFERIORS,
    "\\NOSELECT": MailboxAttribute.NOSELECT,
    "\\MARKED": MailboxAttribute.MARKED,
    "\\UNMARKED": MailboxAttribute.UNMARKED,
    "\\REFERRAL": MailboxAttribute.REFERRAL,
    "\\HASCHILDREN": MailboxAttribute.HASCHILDREN,
    "\\HASNOCHILDREN": MailboxAttribute.HASNOCHILDREN,
    # RFC 5258: implies \Noselect
    "\\NONEXISTENT": MailboxAttribute.NOSELECT,
}
