from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from openimap.constants import BODY_TYPE_NAMES, ENCODING_NAMES, BodyType, Encoding
from openimap.errors import ParseError
from openimap.imap.envelope import decode_header_value, parse_envelope
from openimap.imap.response import as_int, as_text
from openimap.models import BodyStructure


def _parse_param_list(x: Any) -> Dict[str, str]:
    if not isinstance(x, list):
        return {}
    out: Dict[str, str] = {}
    i = 0
    while i + 1 < len(x):
        key = as_text(x[i])
        if key is not None:
            value = as_text(x[i + 1]) or ""
            out[key.lower()] = decode_header_value(value) or ""
        i += 2
    return out


def _parse_disposition(x: Any) -> Tuple[Optional[str], Dict[str, str]]:
    if not isinstance(x, list) or not x:
        return None, {}
    kind = as_text(x[0])
    params = _parse_param_list(x[1]) if len(x) > 1 else {}
    return (kind.lower() if kind else None), params


def _parse_language(x: Any) -> Tuple[str, ...]:
    if x is None:
        return ()
    if isinstance(x, list):
        return tuple(t for t in (as_text(v) for v in x) if t)
    t = as_text(x)
    return (t,) if t else ()


def _ext(node: List[Any], idx: int) -> Any:
    return node[idx] if len(node) > idx else None


def _body_type(name: Optional[str]) -> BodyType:
    return BODY_TYPE_NAMES.get((name or "").upper(), BodyType.OTHER)


def _encoding(name: Optional[str]) -> Encoding:
    return ENCODING_NAMES.get((name or "7BIT").upper(), Encoding.OTHER)


def _parse_multipart(node: List[Any], section: str) -> BodyStructure:
    children: List[BodyStructure] = []
    idx = 0
    while idx < len(node) and isinstance(node[idx], list):
        child_section = f"{section}.{idx + 1}" if section else str(idx + 1)
        children.append(_parse_node(node[idx], child_section))
        idx += 1
    if not children:
        raise ParseError("Multipart BODYSTRUCTURE without parts")

    subtype = as_text(_ext(node, idx)) or "MIXED"
    params = _parse_param_list(_ext(node, idx + 1))
    disposition, dparams = _parse_disposition(_ext(node, idx + 2))
    return BodyStructure(
        type=BodyType.MULTIPART,
        subtype=subtype.upper(),
        encoding=Encoding.ENC7BIT,
        parameters=params,
        disposition=disposition,
        dparameters=dparams,
        language=_parse_language(_ext(node, idx + 3)),
        location=as_text(_ext(node, idx + 4)),
        parts=tuple(children),
        section=section,
    )


def _parse_leaf(node: List[Any], section: str) -> BodyStructure:
    if len(node) < 7:
        raise ParseError(f"Truncated BODYSTRUCTURE leaf: {node!r}")

    btype = _body_type(as_text(node[0]))
    subtype = (as_text(node[1]) or "").upper()
    lines: Optional[int] = None
    envelope = None
    parts: Tuple[BodyStructure, ...] = ()
    ext_at = 7

    if btype == BodyType.TEXT:
        lines = as_int(_ext(node, 7)) if _ext(node, 7) is not None else None
        ext_at = 8
    elif btype == BodyType.MESSAGE and subtype == "RFC822" and len(node) >= 10:
        envelope = parse_envelope(node[7])
        inner = node[8]
        if isinstance(inner, list) and inner:
            inner_section = section if isinstance(inner[0], list) else f"{section}.1"
            parts = (_parse_node(inner, inner_section),)
        lines = as_int(node[9]) if node[9] is not None else None
        ext_at = 10

    disposition, dparams = _parse_disposition(_ext(node, ext_at + 1))
    return BodyStructure(
        type=btype,
        subtype=subtype,
        encoding=_encoding(as_text(node[5])),
        parameters=_parse_param_list(node[2]),
        id=as_text(node[3]),
        description=decode_header_value(as_text(node[4])),
        size=as_int(node[6]) if node[6] is not None else None,
        lines=lines,
        md5=as_text(_ext(node, ext_at)),
        disposition=disposition,
        dparameters=dparams,
        language=_parse_language(_ext(node, ext_at + 2)),
        location=as_text(_ext(node, ext_at + 3)),
        parts=parts,
        envelope=envelope,
        section=section,
    )


def _parse_node(node: Any, section: str) -> BodyStructure:
    if not isinstance(node, list) or not node:
        raise ParseError(f"Bad BODYSTRUCTURE node: {node!r}")
    if isinstance(node[0], list):
        return _parse_multipart(node, section)
    return _parse_leaf(node, section or "1")


def parse_bodystructure(tokens: Any) -> BodyStructure:
    """Build a :class:`BodyStructure` tree from a tokenized BODYSTRUCTURE list."""
    return _parse_node(tokens, "")


def find_section(root: BodyStructure, section: str) -> Optional[BodyStructure]:
    want = section.strip()
    if want in ("", "0"):
        return root
    for node in root.walk():
        if node.section == want:
            return node
    return None
