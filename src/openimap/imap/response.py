"""Parsers for the response data ``imaplib`` hands back.

``imaplib`` returns untagged data as a flat list in which a response that
contains ``{n}`` literals is split into ``(line, literal)`` tuples followed by
one trailing ``bytes`` element holding the rest of the line. This module
regroups those pieces into whole responses, tokenizes them into nested
Python lists and decodes the common response shapes (FETCH, LIST, STATUS,
SEARCH, QUOTA, ACL).

Token values:
  - ``None`` for the ``NIL`` atom
  - ``str`` for atoms and quoted strings
  - ``bytes`` for literals
  - ``list`` for parenthesized lists
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from openimap.errors import ParseError

Chunk = Tuple[bytes, Optional[bytes]]

_LITERAL_TAIL_RE = re.compile(r"~?\{(\d+)\+?\}\s*$")


def _decode_text(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def group_responses(data: Sequence[object]) -> List[List[Chunk]]:
    """Regroup imaplib's flat response list into one chunk list per response."""
    out: List[List[Chunk]] = []
    current: List[Chunk] = []
    for item in data or []:
        if item is None:
            continue
        if isinstance(item, tuple):
            if not item or not isinstance(item[0], (bytes, bytearray)):
                continue
            literal = item[1] if len(item) > 1 and isinstance(item[1], (bytes, bytearray)) else None
            current.append((bytes(item[0]), bytes(literal) if literal is not None else None))
            continue
        if isinstance(item, (bytes, bytearray)):
            current.append((bytes(item), None))
            out.append(current)
            current = []
            continue
        if isinstance(item, str):
            current.append((item.encode("utf-8"), None))
            out.append(current)
            current = []
    if current:
        out.append(current)
    return out


def _scan(text: str, stack: List[List[Any]]) -> bool:
    """Tokenize ``text`` onto ``stack``; True when it ends in a literal marker."""
    i = 0
    n = len(text)
    tail = _LITERAL_TAIL_RE.search(text)
    limit = tail.start() if tail else n

    while i < limit:
        c = text[i]
        if c.isspace():
            i += 1
            continue

        if c == "(":
            node: List[Any] = []
            stack[-1].append(node)
            stack.append(node)
            i += 1
            continue

        if c == ")":
            if len(stack) == 1:
                raise ParseError(f"Unbalanced ')' at offset {i} in {text!r}")
            stack.pop()
            i += 1
            continue

        if c == '"':
            j = i + 1
            buf: List[str] = []
            while j < n:
                ch = text[j]
                if ch == "\\" and j + 1 < n:
                    buf.append(text[j + 1])
                    j += 2
                    continue
                if ch == '"':
                    break
                buf.append(ch)
                j += 1
            if j >= n:
                raise ParseError(f"Unterminated quoted string in {text!r}")
            stack[-1].append("".join(buf))
            i = j + 1
            continue

        # Atom; square brackets may enclose spaces and parens (BODY[HEADER.FIELDS (A B)])
        j = i
        depth = 0
        while j < limit:
            ch = text[j]
            if ch == "[":
                depth += 1
            elif ch == "]":
                depth = max(0, depth - 1)
            elif depth == 0 and (ch.isspace() or ch in '()"'):
                break
            j += 1
        atom = text[i:j]
        stack[-1].append(None if atom.upper() == "NIL" else atom)
        i = j

    return tail is not None


def tokenize(chunks: Sequence[Chunk]) -> List[Any]:
    root: List[Any] = []
    stack: List[List[Any]] = [root]
    for text, literal in chunks:
        expects_literal = _scan(_decode_text(text), stack)
        if literal is not None:
            if not expects_literal:
                raise ParseError(f"Literal without marker after {text!r}")
            stack[-1].append(literal)
        elif expects_literal:
            raise ParseError(f"Missing literal after {text!r}")
    if len(stack) != 1:
        raise ParseError("Unbalanced '(' in response")
    return root


def tokenize_line(line: bytes | str) -> List[Any]:
    raw = line.encode("utf-8") if isinstance(line, str) else bytes(line)
    return tokenize([(raw, None)])


def iter_tokenized(data: Sequence[object]) -> Iterator[List[Any]]:
    for chunks in group_responses(data):
        tokens = tokenize(chunks)
        if tokens:
            yield tokens


def as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return _decode_text(bytes(value))
    return str(value)


def as_bytes(value: Any) -> Optional[bytes]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return str(value).encode("utf-8")


def as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# -----------------------
# FETCH
# -----------------------

_SECTION_ALIASES = {
    "RFC822": "",
    "RFC822.HEADER": "HEADER",
    "RFC822.TEXT": "TEXT",
}


@dataclass
class FetchItem:
    msgno: int
    attrs: Dict[str, Any] = field(default_factory=dict)

    @property
    def uid(self) -> Optional[int]:
        v = self.attrs.get("UID")
        return as_int(v) if v is not None else None

    @property
    def flags(self) -> List[str]:
        v = self.attrs.get("FLAGS")
        return [str(f) for f in v] if isinstance(v, list) else []

    @property
    def size(self) -> Optional[int]:
        v = self.attrs.get("RFC822.SIZE")
        return as_int(v) if v is not None else None

    @property
    def internaldate(self) -> Optional[str]:
        return as_text(self.attrs.get("INTERNALDATE"))

    def section(self, section: str) -> Optional[bytes]:
        """Payload for ``BODY[section]``; prefix-matches ``HEADER.FIELDS``."""
        want = section.upper()
        for key, value in self.attrs.items():
            inner = _SECTION_ALIASES.get(key)
            if inner is None:
                if not key.startswith("BODY["):
                    continue
                end = key.rfind("]")
                inner = key[5:end] if end != -1 else key[5:]
            inner = inner.upper()
            if inner == want or (want.startswith("HEADER.FIELDS") and inner.startswith(want)):
                return as_bytes(value) if value is not None else b""
        return None

    def merge(self, other: "FetchItem") -> None:
        self.attrs.update(other.attrs)


def _normalize_key(key: str) -> str:
    k = key.upper()
    if k.startswith("BODY.PEEK["):
        k = "BODY[" + k[len("BODY.PEEK[") :]
    # Drop a partial-fetch origin suffix: BODY[TEXT]<0>
    if k.startswith("BODY[") and k.endswith(">") and "<" in k:
        k = k[: k.rfind("<")]
    return k


def parse_fetch(data: Sequence[object]) -> List[FetchItem]:
    """Decode FETCH responses; items for the same msgno are merged in order."""
    by_msgno: Dict[int, FetchItem] = {}
    order: List[int] = []
    for tokens in iter_tokenized(data):
        if len(tokens) < 2 or not isinstance(tokens[1], list):
            raise ParseError(f"Unexpected FETCH response shape: {tokens!r}")
        try:
            msgno = int(tokens[0])
        except (TypeError, ValueError) as e:
            raise ParseError(f"Bad FETCH message number {tokens[0]!r}") from e

        pairs = tokens[1]
        if len(pairs) % 2:
            raise ParseError(f"Odd FETCH attribute list for message {msgno}")
        item = FetchItem(msgno=msgno)
        for k, v in zip(pairs[0::2], pairs[1::2]):
            if not isinstance(k, str):
                raise ParseError(f"Bad FETCH attribute name {k!r}")
            item.attrs[_normalize_key(k)] = v

        if msgno in by_msgno:
            by_msgno[msgno].merge(item)
        else:
            by_msgno[msgno] = item
            order.append(msgno)
    return [by_msgno[m] for m in order]


# -----------------------
# LIST / LSUB
# -----------------------


@dataclass(frozen=True)
class ListEntry:
    attributes: Tuple[str, ...]
    delimiter: Optional[str]
    name: str


def parse_list(data: Sequence[object]) -> List[ListEntry]:
    out: List[ListEntry] = []
    for tokens in iter_tokenized(data):
        if len(tokens) < 3 or not isinstance(tokens[0], list):
            raise ParseError(f"Unexpected LIST response: {tokens!r}")
        attrs = tuple(str(a) for a in tokens[0])
        delim = as_text(tokens[1])
        name = as_text(tokens[2]) or ""
        out.append(ListEntry(attributes=attrs, delimiter=delim, name=name))
    return out


# -----------------------
# STATUS / SEARCH / QUOTA / ACL
# -----------------------


def parse_status(data: Sequence[object]) -> Dict[str, int]:
    for tokens in iter_tokenized(data):
        if len(tokens) < 2 or not isinstance(tokens[-1], list):
            continue
        items = tokens[-1]
        status: Dict[str, int] = {}
        for k, v in zip(items[0::2], items[1::2]):
            try:
                status[str(k).upper()] = int(v)
            except (TypeError, ValueError):
                continue
        return status
    raise ParseError(f"Unexpected STATUS response: {data!r}")


def parse_numbers(data: Sequence[object]) -> List[int]:
    out: List[int] = []
    for item in data or []:
        if item is None:
            continue
        raw = item if isinstance(item, (bytes, bytearray)) else str(item).encode()
        for tok in bytes(raw).split():
            if not tok.isdigit():
                raise ParseError(f"Non-numeric token {tok!r} in result")
            out.append(int(tok))
    return out


def parse_quota(data: Sequence[object]) -> Dict[str, Dict[str, Tuple[int, int]]]:
    """QUOTA responses -> {root: {resource: (usage, limit)}}."""
    out: Dict[str, Dict[str, Tuple[int, int]]] = {}
    for tokens in iter_tokenized(data):
        if len(tokens) < 2 or not isinstance(tokens[-1], list):
            raise ParseError(f"Unexpected QUOTA response: {tokens!r}")
        root = as_text(tokens[0]) or ""
        triples = tokens[-1]
        resources: Dict[str, Tuple[int, int]] = {}
        for i in range(0, len(triples) - 2, 3):
            resources[str(triples[i]).upper()] = (as_int(triples[i + 1]), as_int(triples[i + 2]))
        out[root] = resources
    return out


def parse_quotaroot(data: Sequence[object]) -> List[str]:
    for tokens in iter_tokenized(data):
        return [as_text(t) or "" for t in tokens[1:]]
    return []


def parse_acl(data: Sequence[object]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for tokens in iter_tokenized(data):
        pairs = tokens[1:]
        for ident, rights in zip(pairs[0::2], pairs[1::2]):
            out[as_text(ident) or ""] = as_text(rights) or ""
    return out
