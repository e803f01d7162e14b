from openimap.config import SMTPConfig, Settings, configure, get_settings
from openimap.constants import (
    CL_EXPUNGE,
    CP_MOVE,
    CP_UID,
    ENC7BIT,
    ENC8BIT,
    ENCBASE64,
    ENCBINARY,
    ENCOTHER,
    ENCQUOTEDPRINTABLE,
    FT_INTERNAL,
    FT_NOT,
    FT_PEEK,
    FT_PREFETCHTEXT,
    FT_UID,
    IMAP_CLOSETIMEOUT,
    IMAP_GC_ELT,
    IMAP_GC_ENV,
    IMAP_GC_TEXTS,
    IMAP_OPENTIMEOUT,
    IMAP_READTIMEOUT,
    IMAP_WRITETIMEOUT,
    LATT_HASCHILDREN,
    LATT_HASNOCHILDREN,
    LATT_MARKED,
    LATT_NOINFERIORS,
    LATT_NOSELECT,
    LATT_REFERRAL,
    LATT_UNMARKED,
    NIL,
    OP_ANONYMOUS,
    OP_DEBUG,
    OP_EXPUNGE,
    OP_HALFOPEN,
    OP_PROTOTYPE,
    OP_READONLY,
    OP_SECURE,
    OP_SHORTCACHE,
    OP_SILENT,
    SA_ALL,
    SA_MESSAGES,
    SA_RECENT,
    SA_UIDNEXT,
    SA_UIDVALIDITY,
    SA_UNSEEN,
    SE_FREE,
    SE_NOPREFETCH,
    SE_UID,
    SO_FREE,
    SO_NOSERVER,
    SORTARRIVAL,
    SORTCC,
    SORTDATE,
    SORTFROM,
    SORTSIZE,
    SORTSUBJECT,
    SORTTO,
    ST_SET,
    ST_SILENT,
    ST_UID,
    TYPEAPPLICATION,
    TYPEAUDIO,
    TYPEIMAGE,
    TYPEMESSAGE,
    TYPEMODEL,
    TYPEMULTIPART,
    TYPEOTHER,
    TYPETEXT,
    TYPEVIDEO,
    BodyType,
    CloseFlag,
    CopyFlag,
    Encoding,
    FetchFlag,
    GCFlag,
    MailboxAttribute,
    OpenFlag,
    SearchFlag,
    SortKey,
    StatusFlag,
    StoreFlag,
    TimeoutType,
)
from openimap.diagnostics import alerts, errors, last_error
from openimap.errors import (
    AuthError,
    CapabilityError,
    ConfigError,
    ConnectionClosedError,
    IMAPError,
    OpenIMAPError,
    ParseError,
    SMTPError,
)
from openimap.fetch import (
    body,
    bodystruct,
    fetch_overview,
    fetchbody,
    fetchheader,
    fetchmime,
    fetchstructure,
    fetchtext,
    gc,
    headerinfo,
    headers,
    msgno,
    savebody,
    uid,
)
from openimap.imap import Connection
from openimap.mailboxes import (
    create,
    createmailbox,
    deletemailbox,
    get_quota,
    get_quotaroot,
    getacl,
    getmailboxes,
    getsubscribed,
    listmailbox,
    listscan,
    listsubscribed,
    lsub,
    mailboxmsginfo,
    num_msg,
    num_recent,
    rename,
    renamemailbox,
    scan,
    scanmailbox,
    set_quota,
    setacl,
    status,
    subscribe,
    unsubscribe,
)
from openimap.mime import base64, binary, eight_bit, mail_compose, mime_header_decode, qprint, utf8
from openimap.models import (
    Address,
    BodyStructure,
    CheckInfo,
    Envelope,
    HeaderInfo,
    MailboxInfo,
    MailboxMsgInfo,
    MimeHeaderPart,
    Overview,
    QuotaResource,
    StatusInfo,
    ThreadNode,
)
from openimap.rfc822 import rfc822_parse_adrlist, rfc822_parse_headers, rfc822_write_address
from openimap.search import search, sort, thread
from openimap.session import check, close, open, ping, reopen, timeout
from openimap.smtp import mail
from openimap.store import (
    append,
    clearflag_full,
    delete,
    expunge,
    mail_copy,
    mail_move,
    setflag_full,
    undelete,
)
from openimap.types import MailboxSpec
from openimap.utf7 import mutf7_to_utf8, utf7_decode, utf7_encode, utf8_to_mutf7

__all__ = [
    # session
    "open",
    "reopen",
    "close",
    "ping",
    "check",
    "timeout",
    # mailboxes
    "num_msg",
    "num_recent",
    "status",
    "mailboxmsginfo",
    "listmailbox",
    "getmailboxes",
    "lsub",
    "listsubscribed",
    "getsubscribed",
    "listscan",
    "scan",
    "scanmailbox",
    "createmailbox",
    "create",
    "renamemailbox",
    "rename",
    "deletemailbox",
    "subscribe",
    "unsubscribe",
    "get_quota",
    "get_quotaroot",
    "set_quota",
    "setacl",
    "getacl",
    # messages
    "headers",
    "headerinfo",
    "fetchheader",
    "body",
    "fetchtext",
    "fetchbody",
    "fetchmime",
    "savebody",
    "fetchstructure",
    "bodystruct",
    "fetch_overview",
    "uid",
    "msgno",
    "gc",
    "delete",
    "undelete",
    "expunge",
    "setflag_full",
    "clearflag_full",
    "mail_copy",
    "mail_move",
    "append",
    "search",
    "sort",
    "thread",
    # transcoding
    "base64",
    "qprint",
    "eight_bit",
    "binary",
    "utf8",
    "mime_header_decode",
    "utf7_encode",
    "utf7_decode",
    "utf8_to_mutf7",
    "mutf7_to_utf8",
    "rfc822_parse_headers",
    "rfc822_write_address",
    "rfc822_parse_adrlist",
    "mail_compose",
    "mail",
    # diagnostics
    "errors",
    "alerts",
    "last_error",
    # types
    "Connection",
    "MailboxSpec",
    "Settings",
    "SMTPConfig",
    "configure",
    "get_settings",
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
    # errors
    "OpenIMAPError",
    "ConfigError",
    "ParseError",
    "IMAPError",
    "AuthError",
    "CapabilityError",
    "SMTPError",
    "ConnectionClosedError",
    # flag families
    "TimeoutType",
    "OpenFlag",
    "CloseFlag",
    "FetchFlag",
    "StoreFlag",
    "CopyFlag",
    "SearchFlag",
    "StatusFlag",
    "MailboxAttribute",
    "SortKey",
    "BodyType",
    "Encoding",
    "GCFlag",
    # integer constants
    "NIL",
    "IMAP_OPENTIMEOUT",
    "IMAP_READTIMEOUT",
    "IMAP_WRITETIMEOUT",
    "IMAP_CLOSETIMEOUT",
    "OP_DEBUG",
    "OP_READONLY",
    "OP_ANONYMOUS",
    "OP_SHORTCACHE",
    "OP_SILENT",
    "OP_PROTOTYPE",
    "OP_HALFOPEN",
    "OP_EXPUNGE",
    "OP_SECURE",
    "CL_EXPUNGE",
    "FT_UID",
    "FT_PEEK",
    "FT_NOT",
    "FT_INTERNAL",
    "FT_PREFETCHTEXT",
    "ST_UID",
    "ST_SILENT",
    "ST_SET",
    "CP_UID",
    "CP_MOVE",
    "SE_UID",
    "SE_FREE",
    "SE_NOPREFETCH",
    "SO_FREE",
    "SO_NOSERVER",
    "SA_MESSAGES",
    "SA_RECENT",
    "SA_UNSEEN",
    "SA_UIDNEXT",
    "SA_UIDVALIDITY",
    "SA_ALL",
    "LATT_NOINFERIORS",
    "LATT_NOSELECT",
    "LATT_MARKED",
    "LATT_UNMARKED",
    "LATT_REFERRAL",
    "LATT_HASCHILDREN",
    "LATT_HASNOCHILDREN",
    "SORTDATE",
    "SORTARRIVAL",
    "SORTFROM",
    "SORTSUBJECT",
    "SORTTO",
    "SORTCC",
    "SORTSIZE",
    "TYPETEXT",
    "TYPEMULTIPART",
    "TYPEMESSAGE",
    "TYPEAPPLICATION",
    "TYPEAUDIO",
    "TYPEIMAGE",
    "TYPEVIDEO",
    "TYPEMODEL",
    "TYPEOTHER",
    "ENC7BIT",
    "ENC8BIT",
    "ENCBINARY",
    "ENCBASE64",
    "ENCQUOTEDPRINTABLE",
    "ENCOTHER",
    "IMAP_GC_ELT",
    "IMAP_GC_ENV",
    "IMAP_GC_TEXTS",
]
