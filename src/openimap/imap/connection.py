"""The ``Connection`` handle: one ``imaplib`` session plus the state above it.

``imaplib`` speaks the protocol. This class owns what a mail client keeps
between commands: negotiated capabilities, the selected mailbox and its
message counts (fed by untagged EXISTS / RECENT / EXPUNGE), the per-message
caches and the lock that serializes commands on the session.
"""
from __future__ import annotations

import imaplib
import ssl
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, TypeVar

from loguru import logger

from openimap.auth import AuthContext, IMAPAuth
from openimap.config import Settings, get_settings
from openimap.constants import GCFlag
from openimap.diagnostics import record_alert, record_error
from openimap.errors import CapabilityError, ConnectionClosedError, IMAPError, OpenIMAPError
from openimap.imap.response import FetchItem, as_text, parse_fetch
from openimap.models import BodyStructure, Envelope
from openimap.types import MailboxSpec
from openimap.utf7 import encode as utf7_encode

T = TypeVar("T")

_ALERT_PREFIX = "[ALERT]"


# -----------------------
# Transport
# -----------------------


class _WireLogMixin:
    """Route imaplib's protocol trace to loguru instead of stderr."""

    def _mesg(self, s, secs=None):
        logger.debug("imap wire: {}", s)


class _WireLoggedIMAP4(_WireLogMixin, imaplib.IMAP4):
    pass


class _WireLoggedIMAP4_SSL(_WireLogMixin, imaplib.IMAP4_SSL):
    pass


def create_transport(
    host: str,
    port: int,
    *,
    use_ssl: bool,
    ssl_context: Optional[ssl.SSLContext],
    timeout: Optional[float],
    debug: bool = False,
) -> imaplib.IMAP4:
    """Open the raw imaplib session. Tests replace this with a fake."""
    if use_ssl:
        cls = _WireLoggedIMAP4_SSL if debug else imaplib.IMAP4_SSL
        imap = cls(host, port, ssl_context=ssl_context, timeout=timeout)
    else:
        cls = _WireLoggedIMAP4 if debug else imaplib.IMAP4
        imap = cls(host, port, timeout=timeout)
    if debug:
        imap.debug = 4
        logger.debug("imap wire: greeting {!r}", imap.welcome)
    return imap


def _ssl_context(validate_cert: bool) -> ssl.SSLContext:
    ctx = ssl.create_default_context()
    if not validate_cert:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


def _timeout_value(seconds: float) -> Optional[float]:
    return seconds if seconds and seconds > 0 else None


def _set_socket_timeout(imap: imaplib.IMAP4, seconds: float) -> None:
    sock = getattr(imap, "sock", None)
    if sock is not None:
        sock.settimeout(_timeout_value(seconds))


def _transport_capabilities(imap: imaplib.IMAP4) -> Tuple[str, ...]:
    return tuple(str(c).upper() for c in (imap.capabilities or ()))


def _alert_text(raw: object) -> Optional[str]:
    text = as_text(raw)
    if text is None:
        return None
    text = text.strip()
    if text.upper().startswith(_ALERT_PREFIX):
        return text[len(_ALERT_PREFIX) :].strip()
    return None


def _describe(data: Optional[Sequence[object]]) -> str:
    parts = []
    for item in data or []:
        if isinstance(item, tuple):
            item = item[0]
        text = as_text(item)
        if text:
            parts.append(text)
    return " ".join(parts)


# -----------------------
# Cache records
# -----------------------


@dataclass
class Element:
    """Cached per-message attributes (the IMAP_GC_ELT level)."""

    msgno: int
    uid: Optional[int] = None
    flags: Optional[Tuple[str, ...]] = None
    size: Optional[int] = None
    internaldate: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.flags is not None and self.size is not None and self.internaldate is not None


class Connection:
    """Opaque handle returned by :func:`openimap.open`."""

    def __init__(
        self,
        spec: MailboxSpec,
        auth: IMAPAuth,
        *,
        halfopen: bool = False,
        disabled_mechanisms: Iterable[str] = (),
    ) -> None:
        self.spec = spec
        self.halfopen = halfopen
        self._auth = auth
        self._disabled: FrozenSet[str] = frozenset(m.upper() for m in disabled_mechanisms)
        self._imap: Optional[imaplib.IMAP4] = None
        self._lock = threading.RLock()
        self._closed = False

        self.capabilities: Tuple[str, ...] = ()
        self.encrypted = False
        self.mailbox: Optional[str] = None
        self.readonly = False
        self.nmsgs = 0
        self.recent = 0
        self.uidvalidity: Optional[int] = None

        # Keyed by sequence number; any expunge invalidates them.
        self.elements: Dict[int, Element] = {}
        self.envelopes: Dict[int, Envelope] = {}
        self.structures: Dict[int, BodyStructure] = {}
        self.texts: Dict[Tuple[int, str], bytes] = {}

    # -----------------------
    # Handle semantics
    # -----------------------

    def __repr__(self) -> str:
        state = "closed" if self._closed else (self.mailbox or "half-open")
        return f"<Connection {self.spec.prefix or self.spec.host} {state}>"

    def __copy__(self):
        raise TypeError("Connection objects cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("Connection objects cannot be copied")

    def __reduce_ex__(self, protocol):
        raise TypeError("Connection objects cannot be serialized")

    def __enter__(self) -> "Connection":
        self.check_open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._closed:
            return
        try:
            self.close()
        except (OpenIMAPError, imaplib.IMAP4.error, OSError) as e:
            record_error(f"close: {e}")

    @property
    def connected(self) -> bool:
        return self._imap is not None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def driver(self) -> str:
        return self.spec.driver

    def check_open(self) -> None:
        if self._closed:
            raise ConnectionClosedError("IMAP connection has already been closed")

    # -----------------------
    # Connection management
    # -----------------------

    def connect(self, retries: int = 0) -> "Connection":
        settings = get_settings()
        attempts = max(0, int(retries)) + 1
        last_exc: Optional[BaseException] = None

        with self._lock:
            for attempt in range(attempts):
                try:
                    self._imap = self._login(settings)
                    break
                except (imaplib.IMAP4.abort, OSError) as e:
                    last_exc = e
                    logger.debug(
                        "imap connect attempt {}/{} to {} failed: {}",
                        attempt + 1,
                        attempts,
                        self.spec.host,
                        e,
                    )
                except imaplib.IMAP4.error as e:
                    raise IMAPError(f"IMAP connection failed: {e}") from e

                if attempt < attempts - 1 and settings.retry_backoff > 0:
                    time.sleep(settings.retry_backoff * (attempt + 1))
            else:
                raise IMAPError(f"Can't connect to {self.spec.host}: {last_exc}") from last_exc

            if not self.halfopen:
                try:
                    self.run(lambda imap: self.select(imap, self.spec.mailbox, self.spec.readonly))
                except OpenIMAPError:
                    self._discard()
                    raise
        return self

    def _login(self, settings: Settings) -> imaplib.IMAP4:
        spec = self.spec
        if spec.driver != "imap":
            raise IMAPError(f"No /{spec.driver} driver available; only IMAP mailboxes can be opened")
        if not spec.host:
            raise IMAPError(f"Mailbox {spec.mailbox!r} has no {{host}} part")

        ctx = _ssl_context(spec.validate_cert) if (spec.ssl or spec.starttls is not False) else None
        logger.debug(
            "imap connect host={} port={} ssl={} starttls={}",
            spec.host,
            spec.effective_port,
            spec.ssl,
            spec.starttls,
        )
        imap = create_transport(
            spec.host,
            spec.effective_port,
            use_ssl=spec.ssl,
            ssl_context=ctx,
            timeout=_timeout_value(settings.open_timeout),
            debug=spec.debug,
        )
        try:
            encrypted = spec.ssl
            if not spec.ssl and spec.starttls is not False:
                if "STARTTLS" in _transport_capabilities(imap):
                    typ, data = imap.starttls(ssl_context=ctx)
                    self.check_response(typ, data, "STARTTLS")
                    encrypted = True
                elif spec.starttls:
                    raise IMAPError(f"{spec.host} does not offer STARTTLS")

            # One socket timeout covers both directions
            _set_socket_timeout(imap, max(settings.read_timeout, settings.write_timeout))

            if imap.state == "NONAUTH":
                ctx_auth = AuthContext(
                    host=spec.host,
                    port=spec.effective_port,
                    capabilities=_transport_capabilities(imap),
                    encrypted=encrypted,
                    secure=spec.secure,
                    disabled_mechanisms=self._disabled,
                )
                self._auth.apply_imap(imap, ctx_auth)

            self.capabilities = self._refresh_capabilities(imap)
            self.encrypted = encrypted
            self._drain(imap)
        except (OpenIMAPError, imaplib.IMAP4.error, OSError):
            _shutdown(imap)
            raise
        return imap

    def _refresh_capabilities(self, imap: imaplib.IMAP4) -> Tuple[str, ...]:
        typ, data = imap.capability()
        if typ == "OK" and data and data[-1]:
            return tuple((as_text(data[-1]) or "").upper().split())
        return _transport_capabilities(imap)

    def _get_conn(self) -> imaplib.IMAP4:
        # Must be called with self._lock held
        self.check_open()
        if self._imap is not None:
            return self._imap

        logger.debug("imap reconnect to {}", self.spec.host)
        mailbox, readonly = self.mailbox, self.readonly
        self._imap = self._login(get_settings())
        self.invalidate()
        if mailbox is not None:
            self.select(self._imap, mailbox, readonly)
        return self._imap

    def _discard(self) -> None:
        # Must be called with self._lock held
        imap, self._imap = self._imap, None
        if imap is not None:
            _shutdown(imap)

    def run(self, op: Callable[[imaplib.IMAP4], T]) -> T:
        """Run ``op`` on the live session under the connection lock.

        A dropped session is discarded so the next call reconnects and
        re-selects the mailbox.
        """
        with self._lock:
            imap = self._get_conn()
            try:
                return op(imap)
            except imaplib.IMAP4.abort as e:
                self._discard()
                raise IMAPError(f"IMAP connection aborted: {e}") from e
            except imaplib.IMAP4.error as e:
                raise IMAPError(f"IMAP operation failed: {e}") from e
            except OSError as e:
                self._discard()
                raise IMAPError(f"IMAP network error: {e}") from e
            finally:
                if self._imap is not None:
                    self._drain(self._imap)

    def reopen(self, spec: MailboxSpec, *, expunge: bool = False, halfopen: bool = False, retries: int = 0) -> None:
        with self._lock:
            if expunge and self.mailbox is not None and not self.readonly:
                self.run(self._silent_expunge)

            if not self.spec.same_server(spec):
                logger.debug("imap reopen switches server {} -> {}", self.spec.host, spec.host)
                self._logout_quietly()
                self.spec = spec
                self.mailbox = None
                self.halfopen = halfopen
                self.invalidate()
                self.connect(retries)
                return

            self.spec = replace(self.spec, mailbox=spec.mailbox, readonly=spec.readonly)
            self.halfopen = halfopen
            if halfopen:
                self.run(self.unselect)
            else:
                self.run(lambda imap: self.select(imap, spec.mailbox, spec.readonly))

    def close(self, expunge: bool = False) -> None:
        with self._lock:
            if self._closed:
                return
            imap, self._imap = self._imap, None
            selected = self.mailbox is not None and not self.readonly
            self._closed = True
            self.mailbox = None
            self.invalidate()
            if imap is None:
                return

            _set_socket_timeout(imap, get_settings().close_timeout)
            try:
                if expunge and selected:
                    typ, data = imap.close()
                    self.check_response(typ, data, "CLOSE")
            finally:
                try:
                    imap.logout()
                except OSError as e:
                    logger.debug("imap logout from {} failed: {}", self.spec.host, e)

    def _logout_quietly(self) -> None:
        imap, self._imap = self._imap, None
        if imap is None:
            return
        _set_socket_timeout(imap, get_settings().close_timeout)
        try:
            imap.logout()
        except OSError as e:
            logger.debug("imap logout from {} failed: {}", self.spec.host, e)

    # -----------------------
    # Mailbox selection
    # -----------------------

    @staticmethod
    def strip_server(name: str) -> str:
        """Drop a leading ``{server}`` reference from a mailbox argument."""
        if name.startswith("{"):
            end = name.find("}")
            if end != -1:
                return name[end + 1 :]
        return name

    @staticmethod
    def quote_mailbox(name: str) -> str:
        name = Connection.strip_server(name)
        if name.upper() == "INBOX":
            return "INBOX"
        if not name.isascii():
            name = utf7_encode(name)
        return Connection.quote(name)

    @staticmethod
    def quote(value: str) -> str:
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'

    def select(self, imap: imaplib.IMAP4, mailbox: str, readonly: bool) -> None:
        # Must be called with self._lock held.
        arg = self.quote_mailbox(mailbox)
        self.mailbox = None
        self.nmsgs = 0
        self.recent = 0
        self.invalidate()
        try:
            typ, data = imap.select(arg, readonly=readonly)
        except imaplib.IMAP4.readonly:
            # The server granted EXAMINE semantics only
            typ, data, readonly = "OK", [], True
        self.check_response(typ, data, f"SELECT {mailbox!r}")

        uidvalidity = imap.untagged_responses.get("UIDVALIDITY")
        self.uidvalidity = int(uidvalidity[-1]) if uidvalidity else None
        self.mailbox = self.strip_server(mailbox)
        self.readonly = readonly
        self._drain(imap)
        logger.debug(
            "imap selected {!r} nmsgs={} recent={} readonly={}",
            self.mailbox,
            self.nmsgs,
            self.recent,
            self.readonly,
        )

    def unselect(self, imap: imaplib.IMAP4) -> None:
        if self.mailbox is not None and self.has_capability("UNSELECT"):
            typ, data = imap.unselect()
            self.check_response(typ, data, "UNSELECT")
        self.mailbox = None
        self.nmsgs = 0
        self.recent = 0
        self.invalidate()

    def _silent_expunge(self, imap: imaplib.IMAP4) -> None:
        typ, data = imap.expunge()
        self.check_response(typ, data, "EXPUNGE")
        self.apply_expunge(data)

    def apply_expunge(self, data: Optional[Sequence[object]]) -> int:
        """Account for the EXPUNGE responses imaplib hands back from EXPUNGE."""
        removed = [d for d in data or [] if d is not None]
        if removed:
            self.invalidate()
            self.nmsgs = max(0, self.nmsgs - len(removed))
        return len(removed)

    def require_selected(self) -> str:
        if self.mailbox is None:
            raise IMAPError("No mailbox is selected")
        return self.mailbox

    def require_writable(self) -> str:
        mailbox = self.require_selected()
        if self.readonly:
            raise IMAPError(f"Mailbox {mailbox!r} is open read-only")
        return mailbox

    @property
    def qualified_mailbox(self) -> str:
        return self.spec.qualify(self.mailbox or "")

    # -----------------------
    # Responses
    # -----------------------

    def check_response(self, typ: str, data: Optional[Sequence[object]], what: str) -> None:
        if typ == "OK":
            return
        for item in data or []:
            alert = _alert_text(item)
            if alert:
                record_alert(alert)
        detail = _describe(data)
        raise IMAPError(f"{what} failed: {detail}" if detail else f"{what} failed ({typ})")

    def has_capability(self, name: str) -> bool:
        return name.upper() in self.capabilities

    def require_capability(self, name: str) -> None:
        if not self.has_capability(name):
            raise CapabilityError(f"Server does not advertise the {name.upper()} capability")

    def _drain(self, imap: imaplib.IMAP4) -> None:
        """Consume untagged status the server sent alongside the last command."""
        untagged = imap.untagged_responses
        for key in ("OK", "NO", "BAD"):
            for raw in untagged.pop(key, []):
                alert = _alert_text(raw)
                if alert:
                    record_alert(alert)
                elif key != "OK" and raw:
                    record_error(as_text(raw) or key)
        untagged.pop("ALERT", None)

        expunged = untagged.pop("EXPUNGE", [])
        exists = untagged.pop("EXISTS", [])
        recent = untagged.pop("RECENT", [])
        unsolicited = untagged.pop("FETCH", [])

        if expunged:
            self.invalidate()
            self.nmsgs = max(0, self.nmsgs - len(expunged))
        if exists and exists[-1] is not None:
            self.nmsgs = int(exists[-1])
        if recent and recent[-1] is not None:
            self.recent = int(recent[-1])
        if unsolicited:
            # Flag changes pushed by the server
            self.elements.clear()

    # -----------------------
    # FETCH and caches
    # -----------------------

    def fetch(self, imap: imaplib.IMAP4, msgset: str, items: str, *, uid: bool = False) -> List[FetchItem]:
        self.require_selected()
        logger.debug("imap fetch {}{} {}", "UID " if uid else "", msgset, items)
        if uid:
            typ, data = imap.uid("FETCH", msgset, items)
        else:
            typ, data = imap.fetch(msgset, items)
        self.check_response(typ, data, f"FETCH {msgset}")
        result = parse_fetch(data)
        self.remember(result)
        return result

    def remember(self, items: Iterable[FetchItem]) -> None:
        for item in items:
            el = self.elements.get(item.msgno)
            if el is None:
                el = self.elements[item.msgno] = Element(msgno=item.msgno)
            if item.uid is not None:
                el.uid = item.uid
            if "FLAGS" in item.attrs:
                el.flags = tuple(item.flags)
            if item.size is not None:
                el.size = item.size
            if item.internaldate is not None:
                el.internaldate = item.internaldate

    def msgno_for_uid(self, uid: int) -> Optional[int]:
        for el in self.elements.values():
            if el.uid == uid:
                return el.msgno
        return None

    def invalidate(self, flags: int = GCFlag.ELT | GCFlag.ENV | GCFlag.TEXTS) -> None:
        if flags & GCFlag.ELT:
            self.elements.clear()
        if flags & GCFlag.ENV:
            self.envelopes.clear()
            self.structures.clear()
        if flags & GCFlag.TEXTS:
            self.texts.clear()


def _shutdown(imap: imaplib.IMAP4) -> None:
    try:
        imap.shutdown()
    except OSError as e:
        logger.debug("imap socket shutdown failed: {}", e)
