from __future__ import annotations

import imaplib
import re
import shlex
from dataclasses import dataclass, field
from datetime import datetime
from email import message_from_bytes
from email.message import Message
from email.policy import compat32
from email.utils import getaddresses
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

_CRLF = compat32.clone(linesep="\r\n")
_ITEM_RE = re.compile(r"BODY(?:\.PEEK)?\[[^\]]*\](?:<[\d.]+>)?|[A-Z0-9.]+")


@dataclass
class FakeMessage:
    uid: int
    raw: bytes
    flags: Set[str] = field(default_factory=set)
    internaldate: str = "01-Jan-2024 10:00:00 +0000"


@dataclass
class FakeMailbox:
    name: str
    messages: List[FakeMessage] = field(default_factory=list)
    uidvalidity: int = 1
    uidnext: int = 1
    subscribed: bool = False
    attributes: Tuple[str, ...] = ("\\HasNoChildren",)
    force_readonly: bool = False


@dataclass
class FakeIMAPServer:
    """
    In-memory IMAP server state shared by every FakeIMAP4 session.

    Goals:
      - Answer the imaplib calls openimap makes with imaplib-shaped data
        (typ, data) including literal tuples for BODY[...] payloads.
      - Deterministic, in-memory behavior; no real IMAP semantics beyond what tests need.
    """

    users: Dict[str, str] = field(default_factory=lambda: {"alice": "secret"})
    capabilities: List[str] = field(default_factory=lambda: ["IMAP4REV1", "UIDPLUS", "UNSELECT"])
    mailboxes: Dict[str, FakeMailbox] = field(default_factory=dict)
    delimiter: str = "/"

    quota: Dict[str, Tuple[int, int]] = field(default_factory=lambda: {"STORAGE": (10, 512)})
    acl: Dict[str, Dict[str, str]] = field(default_factory=dict)
    thread_response: List[bytes] = field(default_factory=lambda: [b""])

    # Every command a session received: (command, args)
    commands: List[Tuple[str, Tuple[Any, ...]]] = field(default_factory=list)
    # Transports opened through the patched factory: kwargs per call
    connections: List[Dict[str, Any]] = field(default_factory=list)
    sessions: List["FakeIMAP4"] = field(default_factory=list)

    # Failure injection
    connect_failures: int = 0
    abort_next: Set[str] = field(default_factory=set)
    fail: Dict[str, Tuple[str, bytes]] = field(default_factory=dict)
    # Untagged responses handed out with the next NOOP
    pending: Dict[str, List[bytes]] = field(default_factory=dict)

    _next_validity: int = 1000

    # --- test helpers -----------------------------------------------------

    def add_mailbox(self, name: str, **kwargs) -> FakeMailbox:
        self._next_validity += 1
        box = FakeMailbox(name=name, uidvalidity=self._next_validity, **kwargs)
        self.mailboxes[name] = box
        return box

    def add_message(
        self,
        mailbox: str,
        raw: bytes,
        *,
        flags: Optional[Set[str]] = None,
        internaldate: str = "01-Jan-2024 10:00:00 +0000",
        uid: Optional[int] = None,
    ) -> FakeMessage:
        box = self.mailboxes.get(mailbox) or self.add_mailbox(mailbox)
        uid = uid if uid is not None else box.uidnext
        box.uidnext = max(box.uidnext, uid + 1)
        msg = FakeMessage(uid=uid, raw=raw, flags=set(flags or ()), internaldate=internaldate)
        box.messages.append(msg)
        return msg

    def commands_named(self, name: str) -> List[Tuple[Any, ...]]:
        return [args for cmd, args in self.commands if cmd == name]

    def transport_factory(self) -> Callable[..., "FakeIMAP4"]:
        def create_transport(host, port, *, use_ssl, ssl_context, timeout, debug=False):
            self.connections.append(
                {"host": host, "port": port, "use_ssl": use_ssl, "timeout": timeout, "debug": debug}
            )
            if self.connect_failures:
                self.connect_failures -= 1
                raise ConnectionRefusedError(111, "Connection refused")
            session = FakeIMAP4(self, tls=use_ssl)
            self.sessions.append(session)
            return session

        return create_transport


# ---------------------------------------------------------------------------
# Message rendering
# ---------------------------------------------------------------------------


def _q(value: Optional[str]) -> str:
    if value is None:
        return "NIL"
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return re.sub(r"\\(.)", r"\1", value[1:-1])
    return value


def _addr_list(value: Optional[str]) -> str:
    if not value:
        return "NIL"
    parts = []
    for name, addr in getaddresses([value]):
        mailbox, _, host = addr.partition("@")
        parts.append(f"({_q(name or None)} NIL {_q(mailbox)} {_q(host or None)})")
    return "(" + "".join(parts) + ")"


def _parse(raw: bytes) -> Message:
    return message_from_bytes(raw, policy=compat32)


def _split(raw: bytes) -> Tuple[bytes, bytes]:
    head, sep, body = raw.partition(b"\r\n\r\n")
    if not sep:
        return raw, b""
    return head + b"\r\n\r\n", body


def envelope(raw: bytes) -> str:
    msg = _parse(raw)
    from_ = msg["From"]
    fields = [
        _q(msg["Date"]),
        _q(msg["Subject"]),
        _addr_list(from_),
        _addr_list(msg["Sender"] or from_),
        _addr_list(msg["Reply-To"] or from_),
        _addr_list(msg["To"]),
        _addr_list(msg["Cc"]),
        _addr_list(msg["Bcc"]),
        _q(msg["In-Reply-To"]),
        _q(msg["Message-ID"]),
    ]
    return "(" + " ".join(fields) + ")"


def _params(pairs: Sequence[Tuple[str, str]]) -> str:
    if not pairs:
        return "NIL"
    return "(" + " ".join(f"{_q(k.upper())} {_q(v)}" for k, v in pairs) + ")"


def bodystructure(part: Message) -> str:
    if part.is_multipart():
        children = "".join(bodystructure(p) for p in part.get_payload())
        return f"({children} {_q(part.get_content_subtype().upper())})"

    payload = part.get_payload()
    data = payload.encode("latin-1") if isinstance(payload, str) else bytes(payload or b"")
    params = (part.get_params() or [])[1:]
    encoding = (part.get("Content-Transfer-Encoding") or "7BIT").upper()
    out = (
        f"({_q(part.get_content_maintype().upper())} {_q(part.get_content_subtype().upper())} "
        f"{_params(params)} {_q(part.get('Content-ID'))} {_q(part.get('Content-Description'))} "
        f"{_q(encoding)} {len(data)}"
    )
    if part.get_content_maintype() == "text":
        out += f" {len(data.splitlines())}"
    disposition = part.get_content_disposition()
    if disposition:
        dparams = (part.get_params(header="content-disposition") or [])[1:]
        out += f" NIL ({_q(disposition.upper())} {_params(dparams)})"
    return out + ")"


def section_bytes(raw: bytes, section: str) -> bytes:
    head, text = _split(raw)
    if section == "":
        return raw
    if section == "HEADER":
        return head
    if section == "TEXT":
        return text
    if section.startswith("HEADER.FIELDS"):
        wanted = {n.upper() for n in section[section.index("(") + 1 : section.rindex(")")].split()}
        lines: List[bytes] = []
        keep = False
        for line in head.split(b"\r\n"):
            if not line:
                continue
            if line[:1] in (b" ", b"\t"):
                if keep:
                    lines.append(line + b"\r\n")
                continue
            keep = line.split(b":", 1)[0].decode("latin-1").strip().upper() in wanted
            if keep:
                lines.append(line + b"\r\n")
        return b"".join(lines) + b"\r\n"

    tokens = section.split(".")
    suffix = tokens.pop() if not tokens[-1].isdigit() else ""
    part = _parse(raw)
    top = True
    for tok in tokens:
        n = int(tok)
        if part.is_multipart():
            children = part.get_payload()
            if n > len(children):
                raise KeyError(section)
            part = children[n - 1]
            top = False
        elif n != 1:
            raise KeyError(section)
    if top:
        return text
    part_head, part_body = _split(part.as_bytes(policy=_CRLF))
    if suffix == "MIME":
        return part_head
    return part_body


def _expand(spec: str, maximum: int) -> List[int]:
    out: List[int] = []
    for piece in spec.split(","):
        lo_s, _, hi_s = piece.partition(":")
        lo = maximum if lo_s == "*" else int(lo_s)
        hi = lo if not hi_s else (maximum if hi_s == "*" else int(hi_s))
        if lo > hi:
            lo, hi = hi, lo
        out.extend(n for n in range(lo, hi + 1) if n not in out)
    return out


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class FakeIMAP4:
    """One imaplib.IMAP4-compatible session against a FakeIMAPServer."""

    def __init__(self, server: FakeIMAPServer, *, tls: bool = False) -> None:
        self.server = server
        self.tls = tls
        self.state = "NONAUTH"
        self.untagged_responses: Dict[str, List[Any]] = {}
        self.capabilities = tuple(server.capabilities)
        self.welcome = b"* OK fake IMAP4rev1 ready"
        self.sock = None
        self.literal: Optional[bytes] = None
        self.debug = 0
        self.selected: Optional[str] = None
        self.readonly = False
        self.shut_down = False
        self.authenticated_as: Optional[str] = None
        self.mechanism: Optional[str] = None

    # --- internal helpers -------------------------------------------------

    def _cmd(self, name: str, *args: Any) -> Optional[Tuple[str, List[bytes]]]:
        self.server.commands.append((name, args))
        if name in self.server.abort_next:
            self.server.abort_next.discard(name)
            raise imaplib.IMAP4.abort(f"socket error: EOF during {name}")
        failure = self.server.fail.get(name)
        if failure is not None:
            typ, text = failure
            if typ == "BAD":
                raise imaplib.IMAP4.error(f"{name} command error: BAD [{text!r}]")
            return typ, [text]
        return None

    def _box(self) -> FakeMailbox:
        return self.server.mailboxes[self.selected]

    def _mailbox(self, arg: str) -> Optional[FakeMailbox]:
        name = _unquote(arg)
        if name.upper() == "INBOX":
            name = "INBOX"
        return self.server.mailboxes.get(name)

    def _msgnos(self, spec: str, uid: bool) -> List[int]:
        box = self._box()
        if not box.messages:
            return []
        if uid:
            uids = set(_expand(spec, max(m.uid for m in box.messages)))
            return [i for i, m in enumerate(box.messages, 1) if m.uid in uids]
        return [n for n in _expand(spec, len(box.messages)) if 1 <= n <= len(box.messages)]

    def _fetch_response(self, msgno: int, items: List[str]) -> List[Any]:
        msg = self._box().messages[msgno - 1]
        chunks: List[Any] = []
        text = f"{msgno} ("
        sep = ""
        for item in items:
            if item == "UID":
                text += f"{sep}UID {msg.uid}"
            elif item == "FLAGS":
                text += f"{sep}FLAGS ({' '.join(sorted(msg.flags))})"
            elif item == "INTERNALDATE":
                text += f'{sep}INTERNALDATE "{msg.internaldate}"'
            elif item == "RFC822.SIZE":
                text += f"{sep}RFC822.SIZE {len(msg.raw)}"
            elif item == "ENVELOPE":
                text += f"{sep}ENVELOPE {envelope(msg.raw)}"
            elif item == "BODYSTRUCTURE":
                text += f"{sep}BODYSTRUCTURE {bodystructure(_parse(msg.raw))}"
            elif item.startswith("BODY"):
                key = item.replace("BODY.PEEK[", "BODY[", 1)
                section = key[5 : key.index("]")]
                payload = section_bytes(msg.raw, section)
                text += f"{sep}{key} {{{len(payload)}}}"
                chunks.append((text.encode(), payload))
                text = ""
            sep = " "
        text += ")"
        if chunks:
            return chunks + [text.encode()]
        return [text.encode()]

    def _fetch(self, spec: str, items: str, uid: bool) -> Tuple[str, List[Any]]:
        wanted = _ITEM_RE.findall(items.upper())
        if uid and "UID" not in wanted:
            wanted.insert(0, "UID")
        data: List[Any] = []
        for n in self._msgnos(spec, uid):
            msg = self._box().messages[n - 1]
            if any(w.startswith("BODY[") for w in wanted) and not self.readonly:
                if "\\Seen" not in msg.flags and "FLAGS" not in wanted:
                    wanted = wanted + ["FLAGS"]
                msg.flags.add("\\Seen")
            data.extend(self._fetch_response(n, wanted))
        return "OK", data or [None]

    def _matches(self, msg: FakeMessage, tokens: List[str], literal: Optional[str]) -> bool:
        parsed = _parse(msg.raw)
        i = 0
        while i < len(tokens):
            key = tokens[i].upper()
            i += 1
            if key == "ALL":
                continue
            if key in ("SEEN", "DELETED", "FLAGGED", "ANSWERED", "DRAFT"):
                if f"\\{key.capitalize()}" not in msg.flags:
                    return False
                continue
            if key in ("UNSEEN", "UNDELETED", "UNFLAGGED"):
                if f"\\{key[2:].capitalize()}" in msg.flags:
                    return False
                continue
            if key in ("FROM", "TO", "CC", "SUBJECT", "TEXT", "BODY"):
                if i < len(tokens):
                    needle = tokens[i]
                    i += 1
                elif literal is not None:
                    needle = literal
                else:
                    raise imaplib.IMAP4.error("SEARCH command error: BAD [b'Missing argument']")
                if key == "TEXT":
                    hay = msg.raw.decode("utf-8", errors="replace")
                elif key == "BODY":
                    hay = _split(msg.raw)[1].decode("utf-8", errors="replace")
                else:
                    hay = str(parsed.get(key.capitalize() if key != "CC" else "Cc", ""))
                if needle.lower() not in hay.lower():
                    return False
                continue
            raise imaplib.IMAP4.error(f"SEARCH command error: BAD [b'Unknown key {key}']")
        return True

    def _search(self, criteria: Sequence[str], charset: Optional[str], uid: bool) -> List[int]:
        literal = self.literal.decode(charset or "utf-8") if self.literal is not None else None
        self.literal = None
        tokens = shlex.split(" ".join(c for c in criteria if c))
        box = self._box()
        out = []
        for n, msg in enumerate(box.messages, 1):
            if self._matches(msg, tokens, literal):
                out.append(msg.uid if uid else n)
        return out

    def _sort(self, program: str, charset: str, criteria: Sequence[str], uid: bool) -> List[int]:
        keys = program.strip("()").upper().split()
        reverse = keys[0] == "REVERSE"
        key = keys[-1]
        box = self._box()
        numbers = self._search(criteria, charset, uid=False)

        def sort_key(n: int):
            msg = box.messages[n - 1]
            if key == "SIZE":
                return len(msg.raw)
            if key == "ARRIVAL":
                return datetime.strptime(msg.internaldate, "%d-%b-%Y %H:%M:%S %z").timestamp()
            return n

        ordered = sorted(sorted(numbers), key=sort_key, reverse=reverse)
        return [box.messages[n - 1].uid if uid else n for n in ordered]

    def _store(self, spec: str, command: str, flags: str, uid: bool) -> Tuple[str, List[Any]]:
        if self.readonly:
            return "NO", [b"STORE attempt on READ-ONLY folder"]
        names = set(flags.strip("()").split())
        mode = command.upper()
        data: List[Any] = []
        for n in self._msgnos(spec, uid):
            msg = self._box().messages[n - 1]
            if mode.startswith("+"):
                msg.flags |= names
            elif mode.startswith("-"):
                msg.flags -= names
            else:
                msg.flags = set(names)
            if not mode.endswith(".SILENT"):
                data.append(f"{n} (FLAGS ({' '.join(sorted(msg.flags))}))".encode())
        return "OK", data or [None]

    def _copy(self, spec: str, mailbox: str, uid: bool) -> Tuple[str, List[Any]]:
        dest = self._mailbox(mailbox)
        if dest is None:
            return "NO", [b"[TRYCREATE] Mailbox doesn't exist"]
        for n in self._msgnos(spec, uid):
            src = self._box().messages[n - 1]
            self.server.add_message(
                dest.name, src.raw, flags=set(src.flags) - {"\\Recent"}, internaldate=src.internaldate
            )
        return "OK", [b"COPY completed"]

    # --- session ----------------------------------------------------------

    def starttls(self, ssl_context=None):
        self._cmd("STARTTLS")
        if "STARTTLS" not in self.capabilities:
            raise imaplib.IMAP4.error("STARTTLS extension not supported by server.")
        self.tls = True
        return "OK", [b"Begin TLS negotiation now"]

    def login(self, user, password):
        self._cmd("LOGIN", user)
        if self.server.users.get(user) != password and user != "anonymous":
            raise imaplib.IMAP4.error(b"[AUTHENTICATIONFAILED] Invalid credentials (Failure)")
        self.state = "AUTH"
        self.authenticated_as = user
        self.mechanism = "LOGIN"
        return "OK", [b"LOGIN completed"]

    def authenticate(self, mechanism, authobject):
        self._cmd("AUTHENTICATE", mechanism)
        payload = authobject(b"")
        if mechanism == "PLAIN":
            authzid, authcid, password = payload.decode("utf-8").split("\0")
            if self.server.users.get(authcid) != password:
                raise imaplib.IMAP4.error(b"[AUTHENTICATIONFAILED] Invalid credentials (Failure)")
            self.authenticated_as = authzid or authcid
        else:
            self.authenticated_as = "anonymous"
        self.state = "AUTH"
        self.mechanism = mechanism
        return "OK", [b"AUTHENTICATE completed"]

    def capability(self):
        self._cmd("CAPABILITY")
        return "OK", [" ".join(self.server.capabilities).encode()]

    def noop(self):
        failure = self._cmd("NOOP")
        if failure:
            return failure
        for key, values in self.server.pending.items():
            self.untagged_responses.setdefault(key, []).extend(values)
        self.server.pending = {}
        return "OK", [b"NOOP completed"]

    def check(self):
        return self._cmd("CHECK") or ("OK", [b"CHECK completed"])

    def logout(self):
        self._cmd("LOGOUT")
        self.state = "LOGOUT"
        return "BYE", [b"LOGOUT Requested"]

    def shutdown(self):
        self.shut_down = True

    # --- selection --------------------------------------------------------

    def select(self, mailbox="INBOX", readonly=False):
        self.untagged_responses = {}
        failure = self._cmd("EXAMINE" if readonly else "SELECT", mailbox)
        if failure:
            return failure
        box = self._mailbox(mailbox)
        if box is None:
            return "NO", [b"Mailbox doesn't exist: " + _unquote(mailbox).encode()]
        self.state = "SELECTED"
        self.selected, self.readonly = box.name, readonly or box.force_readonly
        recent = sum(1 for m in box.messages if "\\Recent" in m.flags)
        self.untagged_responses["FLAGS"] = [b"(\\Answered \\Flagged \\Deleted \\Seen \\Draft)"]
        self.untagged_responses["EXISTS"] = [str(len(box.messages)).encode()]
        self.untagged_responses["RECENT"] = [str(recent).encode()]
        self.untagged_responses["UIDVALIDITY"] = [str(box.uidvalidity).encode()]
        if box.force_readonly and not readonly:
            # imaplib raises once the tagged OK [READ-ONLY] arrives
            raise imaplib.IMAP4.readonly(f"{mailbox} is not writable")
        return "OK", [str(len(box.messages)).encode()]

    def unselect(self):
        self._cmd("UNSELECT")
        self.selected = None
        self.state = "AUTH"
        return "OK", [b"Returned to authenticated state. (Success)"]

    def close(self):
        failure = self._cmd("CLOSE")
        if failure:
            return failure
        if self.selected is not None and not self.readonly:
            box = self._box()
            box.messages = [m for m in box.messages if "\\Deleted" not in m.flags]
        self.selected = None
        self.state = "AUTH"
        return "OK", [b"CLOSE completed"]

    def expunge(self):
        failure = self._cmd("EXPUNGE")
        if failure:
            return failure
        if self.readonly:
            return "NO", [b"EXPUNGE attempt on READ-ONLY folder"]
        box = self._box()
        reported: List[bytes] = []
        n = 1
        while n <= len(box.messages):
            if "\\Deleted" in box.messages[n - 1].flags:
                del box.messages[n - 1]
                reported.append(str(n).encode())
            else:
                n += 1
        return "OK", reported or [None]

    # --- messages ---------------------------------------------------------

    def fetch(self, message_set, message_parts):
        failure = self._cmd("FETCH", message_set, message_parts)
        if failure:
            return failure
        return self._fetch(message_set, message_parts, uid=False)

    def store(self, message_set, command, flags):
        failure = self._cmd("STORE", message_set, command, flags)
        if failure:
            return failure
        return self._store(message_set, command, flags, uid=False)

    def copy(self, message_set, new_mailbox):
        failure = self._cmd("COPY", message_set, new_mailbox)
        if failure:
            return failure
        return self._copy(message_set, new_mailbox, uid=False)

    def search(self, charset, *criteria):
        failure = self._cmd("SEARCH", charset, *criteria)
        if failure:
            return failure
        found = self._search(criteria, charset, uid=False)
        return "OK", [" ".join(map(str, found)).encode()]

    def sort(self, sort_criteria, charset, *search_criteria):
        failure = self._cmd("SORT", sort_criteria, charset, *search_criteria)
        if failure:
            return failure
        found = self._sort(sort_criteria, charset, search_criteria, uid=False)
        return "OK", [" ".join(map(str, found)).encode()]

    def thread(self, threading_algorithm, charset, *search_criteria):
        failure = self._cmd("THREAD", threading_algorithm, charset, *search_criteria)
        if failure:
            return failure
        return "OK", list(self.server.thread_response)

    def uid(self, command, *args):
        command = command.upper()
        failure = self._cmd(f"UID {command}", *args)
        if failure:
            return failure
        if command == "FETCH":
            return self._fetch(args[0], args[1], uid=True)
        if command == "STORE":
            return self._store(args[0], args[1], args[2], uid=True)
        if command == "COPY":
            return self._copy(args[0], args[1], uid=True)
        if command == "SEARCH":
            criteria = list(args)
            charset = None
            if criteria[:1] == ["CHARSET"]:
                charset = criteria[1]
                criteria = criteria[2:]
            found = self._search(criteria, charset, uid=True)
            return "OK", [" ".join(map(str, found)).encode()]
        if command == "SORT":
            found = self._sort(args[0], args[1], args[2:], uid=True)
            return "OK", [" ".join(map(str, found)).encode()]
        if command == "THREAD":
            return "OK", list(self.server.thread_response)
        raise imaplib.IMAP4.error(f"Unknown IMAP4 UID command: {command}")

    def append(self, mailbox, flags, date_time, message):
        failure = self._cmd("APPEND", mailbox, flags, date_time)
        if failure:
            return failure
        box = self._mailbox(mailbox)
        if box is None:
            return "NO", [b"[TRYCREATE] Mailbox doesn't exist"]
        kwargs = {}
        if date_time:
            kwargs["internaldate"] = _unquote(date_time)
        self.server.add_message(box.name, bytes(message), flags=set((flags or "").strip("()").split()), **kwargs)
        if box.name == self.selected:
            self.untagged_responses.setdefault("EXISTS", []).append(str(len(box.messages)).encode())
        return "OK", [f"[APPENDUID {box.uidvalidity} {box.uidnext - 1}] APPEND completed".encode()]

    # --- mailboxes --------------------------------------------------------

    def _list(self, command, directory, pattern, subscribed_only):
        failure = self._cmd(command, directory, pattern)
        if failure:
            return failure
        ref = _unquote(directory)
        pat = ref + _unquote(pattern)
        regex = re.compile(
            "^" + "".join(".*" if c == "*" else "[^/]*" if c == "%" else re.escape(c) for c in pat) + "$",
            re.IGNORECASE,
        )
        data = []
        for name, box in self.server.mailboxes.items():
            if subscribed_only and not box.subscribed:
                continue
            if regex.match(name):
                attrs = " ".join(box.attributes)
                data.append(f'({attrs}) "{self.server.delimiter}" {_q(name)}'.encode())
        return "OK", data or [None]

    def list(self, directory='""', pattern="*"):
        return self._list("LIST", directory, pattern, subscribed_only=False)

    def lsub(self, directory='""', pattern="*"):
        return self._list("LSUB", directory, pattern, subscribed_only=True)

    def status(self, mailbox, names):
        failure = self._cmd("STATUS", mailbox, names)
        if failure:
            return failure
        box = self._mailbox(mailbox)
        if box is None:
            return "NO", [b"Mailbox doesn't exist"]
        values = {
            "MESSAGES": len(box.messages),
            "RECENT": sum(1 for m in box.messages if "\\Recent" in m.flags),
            "UNSEEN": sum(1 for m in box.messages if "\\Seen" not in m.flags),
            "UIDNEXT": box.uidnext,
            "UIDVALIDITY": box.uidvalidity,
        }
        items = " ".join(f"{n} {values[n]}" for n in names.strip("()").split())
        return "OK", [f"{_q(box.name)} ({items})".encode()]

    def create(self, mailbox):
        failure = self._cmd("CREATE", mailbox)
        if failure:
            return failure
        name = _unquote(mailbox)
        if name in self.server.mailboxes:
            return "NO", [b"[ALREADYEXISTS] Mailbox exists"]
        self.server.add_mailbox(name)
        return "OK", [b"CREATE completed"]

    def delete(self, mailbox):
        failure = self._cmd("DELETE", mailbox)
        if failure:
            return failure
        name = _unquote(mailbox)
        if name not in self.server.mailboxes:
            return "NO", [b"[NONEXISTENT] Mailbox doesn't exist"]
        del self.server.mailboxes[name]
        return "OK", [b"DELETE completed"]

    def rename(self, oldmailbox, newmailbox):
        failure = self._cmd("RENAME", oldmailbox, newmailbox)
        if failure:
            return failure
        old, new = _unquote(oldmailbox), _unquote(newmailbox)
        box = self.server.mailboxes.pop(old, None)
        if box is None:
            return "NO", [b"[NONEXISTENT] Mailbox doesn't exist"]
        box.name = new
        self.server.mailboxes[new] = box
        return "OK", [b"RENAME completed"]

    def subscribe(self, mailbox):
        failure = self._cmd("SUBSCRIBE", mailbox)
        if failure:
            return failure
        box = self._mailbox(mailbox)
        if box is None:
            return "NO", [b"Mailbox doesn't exist"]
        box.subscribed = True
        return "OK", [b"SUBSCRIBE completed"]

    def unsubscribe(self, mailbox):
        failure = self._cmd("UNSUBSCRIBE", mailbox)
        if failure:
            return failure
        box = self._mailbox(mailbox)
        if box is not None:
            box.subscribed = False
        return "OK", [b"UNSUBSCRIBE completed"]

    # --- QUOTA / ACL ------------------------------------------------------

    def _quota_line(self, root: str) -> bytes:
        triples = " ".join(f"{name} {usage} {limit}" for name, (usage, limit) in self.server.quota.items())
        return f"{_q(root)} ({triples})".encode()

    def getquota(self, root):
        failure = self._cmd("GETQUOTA", root)
        if failure:
            return failure
        return "OK", [self._quota_line(_unquote(root))]

    def getquotaroot(self, mailbox):
        failure = self._cmd("GETQUOTAROOT", mailbox)
        if failure:
            return failure
        name = _unquote(mailbox)
        return "OK", [[f'{_q(name)} ""'.encode()], [self._quota_line("")]]

    def setquota(self, root, limits):
        failure = self._cmd("SETQUOTA", root, limits)
        if failure:
            return failure
        name, value = limits.strip("()").split()
        usage = self.server.quota.get(name.upper(), (0, 0))[0]
        self.server.quota[name.upper()] = (usage, int(value))
        return "OK", [b"SETQUOTA completed"]

    def setacl(self, mailbox, who, what):
        failure = self._cmd("SETACL", mailbox, who, what)
        if failure:
            return failure
        self.server.acl.setdefault(_unquote(mailbox), {})[_unquote(who)] = _unquote(what)
        return "OK", [b"SETACL completed"]

    def getacl(self, mailbox):
        failure = self._cmd("GETACL", mailbox)
        if failure:
            return failure
        name = _unquote(mailbox)
        rights = self.server.acl.get(name, {})
        pairs = " ".join(f"{_q(who)} {_q(what)}" for who, what in rights.items())
        return "OK", [f"{_q(name)} {pairs}".encode()]
