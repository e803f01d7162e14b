from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

_SEQ_RANGE = r"(?:[1-9]\d*|\*)(?::(?:[1-9]\d*|\*))?"
SEQUENCE_SET_RE = re.compile(rf"^{_SEQ_RANGE}(?:,{_SEQ_RANGE})*$")

_KNOWN_DRIVERS = ("imap", "imap2", "imap4", "imap4rev1", "pop3", "nntp")

MessageSetLike = Union[int, str, Iterable[int]]


def message_set(value: MessageSetLike) -> str:
    """Normalise ``value`` into an IMAP sequence-set string.

    Accepts a single positive int, an iterable of them, or a sequence-set
    string such as ``"1:4,7,9:*"``.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid message number: {value!r}")
    if isinstance(value, int):
        if value < 1:
            raise ValueError(f"Invalid message number: {value}")
        return str(value)
    if isinstance(value, str):
        s = value.replace(" ", "")
        if not SEQUENCE_SET_RE.match(s):
            raise ValueError(f"Invalid sequence set: {value!r}")
        return s
    nums = list(value)
    if not nums:
        raise ValueError("Empty message set")
    return ",".join(message_set(n) for n in nums)


def compact_message_set(numbers: Iterable[int]) -> str:
    """Render sorted, de-duplicated numbers as ranges: ``[1, 2, 3, 7]`` -> ``"1:3,7"``."""
    nums = sorted(set(int(n) for n in numbers))
    if not nums:
        raise ValueError("Empty message set")
    parts = []
    start = prev = nums[0]
    for n in nums[1:]:
        if n == prev + 1:
            prev = n
            continue
        parts.append(str(start) if start == prev else f"{start}:{prev}")
        start = prev = n
    parts.append(str(start) if start == prev else f"{start}:{prev}")
    return message_set(",".join(parts))


@dataclass(frozen=True)
class MailboxSpec:
    """Parsed ``{host[:port][/flag...]}mailbox`` string."""

    host: Optional[str]
    mailbox: str
    port: Optional[int] = None
    server: Optional[str] = None
    driver: str = "imap"
    ssl: bool = False
    starttls: Optional[bool] = None
    validate_cert: bool = True
    readonly: bool = False
    anonymous: bool = False
    secure: bool = False
    debug: bool = False
    user: Optional[str] = None
    authuser: Optional[str] = None
    service: str = "imap"

    @property
    def effective_port(self) -> int:
        if self.port is not None:
            return self.port
        return 993 if self.ssl else 143

    @property
    def prefix(self) -> str:
        """The ``{...}`` server reference, or ``""`` for a bare mailbox name."""
        return f"{{{self.server}}}" if self.server is not None else ""

    def qualify(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def same_server(self, other: "MailboxSpec") -> bool:
        if other.host is None:
            return True
        return (
            (other.host or "").lower() == (self.host or "").lower()
            and other.effective_port == self.effective_port
            and other.ssl == self.ssl
        )

    def __str__(self) -> str:
        return self.qualify(self.mailbox)

    @classmethod
    def parse(cls, value: str) -> "MailboxSpec":
        if not value.startswith("{"):
            return cls(host=None, mailbox=value or "INBOX")

        end = value.find("}")
        if end == -1:
            raise ValueError(f"Unterminated server specification in {value!r}")
        server = value[1:end]
        mailbox = value[end + 1 :] or "INBOX"

        head, *flag_parts = server.split("/")
        host, port = _split_host_port(head)
        if not host:
            raise ValueError(f"Missing host in {value!r}")

        kwargs = {}
        for raw_flag in flag_parts:
            if not raw_flag:
                continue
            name, has_value, arg = raw_flag.partition("=")
            name = name.lower()
            arg = arg.strip('"')
            if name in _KNOWN_DRIVERS:
                kwargs["driver"] = "imap" if name.startswith("imap") else name
            elif name == "ssl":
                kwargs["ssl"] = True
            elif name == "tls":
                kwargs["starttls"] = True
            elif name == "notls":
                kwargs["starttls"] = False
            elif name == "novalidate-cert":
                kwargs["validate_cert"] = False
            elif name == "validate-cert":
                kwargs["validate_cert"] = True
            elif name == "readonly":
                kwargs["readonly"] = True
            elif name == "anonymous":
                kwargs["anonymous"] = True
            elif name == "secure":
                kwargs["secure"] = True
            elif name == "debug":
                kwargs["debug"] = True
            elif name in ("norsh", "loser", "tryssl"):
                continue
            elif name in ("user", "authuser", "service") and has_value:
                kwargs[name] = arg
            else:
                raise ValueError(f"Unknown mailbox flag /{raw_flag} in {value!r}")

        return cls(host=host, port=port, server=server, mailbox=mailbox, **kwargs)


def _split_host_port(head: str) -> Tuple[str, Optional[int]]:
    if head.startswith("["):
        close = head.find("]")
        if close == -1:
            raise ValueError(f"Unterminated IPv6 host in {head!r}")
        host = head[1:close]
        rest = head[close + 1 :]
        if rest.startswith(":"):
            return host, _parse_port(rest[1:])
        return host, None

    host, sep, port_s = head.rpartition(":")
    if not sep:
        return head, None
    return host, _parse_port(port_s)


def _parse_port(port_s: str) -> int:
    if not port_s.isdigit() or not (0 < int(port_s) < 65536):
        raise ValueError(f"Invalid port {port_s!r}")
    return int(port_s)


def check_flags(value: int, allowed: int, what: str) -> int:
    """Reject option bits ``what`` does not understand."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{what}: flags must be an int, got {value!r}")
    if value < 0 or value & ~int(allowed):
        raise ValueError(f"{what}: invalid value for the flags parameter ({value})")
    return int(value)
