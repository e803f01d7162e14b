from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Union

from loguru import logger

from openimap.auth import AnonymousAuth, PasswordAuth
from openimap.config import get_settings, settings_lock
from openimap.constants import CloseFlag, OpenFlag, TimeoutType
from openimap.diagnostics import record_error, returns_false_on_failure
from openimap.errors import IMAPError
from openimap.imap.connection import Connection
from openimap.models import CheckInfo
from openimap.types import MailboxSpec, check_flags

_OPEN_FLAGS = (
    OpenFlag.DEBUG
    | OpenFlag.READONLY
    | OpenFlag.ANONYMOUS
    | OpenFlag.SHORTCACHE
    | OpenFlag.SILENT
    | OpenFlag.PROTOTYPE
    | OpenFlag.HALFOPEN
    | OpenFlag.EXPUNGE
    | OpenFlag.SECURE
)

_KNOWN_OPTIONS = ("DISABLE_AUTHENTICATOR",)


def _apply_open_flags(spec: MailboxSpec, flags: int) -> MailboxSpec:
    return replace(
        spec,
        readonly=spec.readonly or bool(flags & OpenFlag.READONLY),
        anonymous=spec.anonymous or bool(flags & OpenFlag.ANONYMOUS),
        secure=spec.secure or bool(flags & OpenFlag.SECURE),
        debug=spec.debug or bool(flags & OpenFlag.DEBUG),
    )


def _disabled_mechanisms(options: Optional[Mapping[str, Any]]) -> Iterable[str]:
    if not options:
        return ()
    unknown = [k for k in options if k not in _KNOWN_OPTIONS]
    if unknown:
        raise ValueError(f"open: unknown option(s) {', '.join(map(str, unknown))}")
    value = options.get("DISABLE_AUTHENTICATOR")
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


@returns_false_on_failure
def open(
    mailbox: str,
    user: str,
    password: str,
    flags: int = 0,
    retries: int = 0,
    options: Optional[Mapping[str, Any]] = None,
) -> Union[Connection, bool]:
    """Connect, authenticate and select ``mailbox`` (``{host[:port][/flags]}name``)."""
    flags = check_flags(flags, _OPEN_FLAGS, "open")
    if isinstance(retries, bool) or not isinstance(retries, int) or retries < 0:
        raise ValueError(f"open: retries must be a non-negative int, got {retries!r}")

    spec = _apply_open_flags(MailboxSpec.parse(mailbox), flags)
    if spec.host is None:
        raise ValueError(f"open: {mailbox!r} does not name a server ({{host}}mailbox)")

    if spec.anonymous:
        auth = AnonymousAuth()
    else:
        auth = PasswordAuth(username=user or spec.user or "", password=password, authuser=spec.authuser)

    conn = Connection(
        spec,
        auth,
        halfopen=bool(flags & OpenFlag.HALFOPEN),
        disabled_mechanisms=_disabled_mechanisms(options),
    )
    conn.connect(retries)
    logger.debug("imap open {} -> {!r}", spec, conn)
    return conn


@returns_false_on_failure
def reopen(conn: Connection, mailbox: str, flags: int = 0, retries: int = 0) -> bool:
    conn.check_open()
    flags = check_flags(flags, _OPEN_FLAGS, "reopen")
    spec = _apply_open_flags(MailboxSpec.parse(mailbox), flags)
    conn.reopen(
        spec,
        expunge=bool(flags & OpenFlag.EXPUNGE),
        halfopen=bool(flags & OpenFlag.HALFOPEN),
        retries=retries,
    )
    return True


@returns_false_on_failure
def close(conn: Connection, flags: int = 0) -> bool:
    conn.check_open()
    flags = check_flags(flags, CloseFlag.EXPUNGE, "close")
    conn.close(expunge=bool(flags & CloseFlag.EXPUNGE))
    return True


def _noop(conn: Connection):
    def _impl(imap) -> None:
        typ, data = imap.noop()
        conn.check_response(typ, data, "NOOP")

    return _impl


@returns_false_on_failure
def ping(conn: Connection) -> bool:
    conn.check_open()
    try:
        conn.run(_noop(conn))
    except IMAPError:
        if conn.connected:
            raise
        # Session dropped; the next run() reconnects and re-selects
        logger.debug("imap ping: session to {} dropped, reconnecting", conn.spec.host)
        conn.run(_noop(conn))
    return True


@returns_false_on_failure
def check(conn: Connection) -> Union[CheckInfo, bool]:
    conn.check_open()

    def _impl(imap) -> None:
        conn.require_selected()
        typ, data = imap.check()
        conn.check_response(typ, data, "CHECK")
        typ, data = imap.noop()
        conn.check_response(typ, data, "NOOP")

    conn.run(_impl)
    return CheckInfo(
        date=datetime.now().astimezone(),
        driver=conn.driver,
        mailbox=conn.qualified_mailbox,
        nmsgs=conn.nmsgs,
        recent=conn.recent,
    )


def timeout(timeout_type: int, timeout: float = -1) -> Union[int, bool]:
    """Read (``timeout=-1``) or set one of the process-wide IMAP timeouts."""
    try:
        kind = TimeoutType(timeout_type)
    except ValueError:
        record_error(f"timeout: unknown timeout type {timeout_type!r}")
        return False

    settings = get_settings()
    if timeout == -1:
        return int(settings.get_timeout(kind))
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout < 0:
        record_error(f"timeout: invalid timeout value {timeout!r}")
        return False
    with settings_lock():
        settings.set_timeout(kind, timeout)
    return True
