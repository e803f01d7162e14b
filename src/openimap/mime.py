"""Connection-free MIME helpers: transfer encodings, encoded words, composing."""
from __future__ import annotations

import base64 as _b64
import binascii
import quopri
from email.header import Header, decode_header, make_header
from email.message import Message
from email.policy import compat32
from typing import Any, List, Mapping, Optional, Sequence, Union

from openimap.constants import BodyType, Encoding
from openimap.diagnostics import returns_false_on_failure
from openimap.models import MimeHeaderPart

BytesLike = Union[bytes, bytearray, str]
_CRLF_POLICY = compat32.clone(linesep="\r\n")


def _as_bytes(data: BytesLike) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def _crlf(data: bytes) -> bytes:
    return data.replace(b"\r\n", b"\n").replace(b"\n", b"\r\n")


# -----------------------
# Transfer encodings
# -----------------------


@returns_false_on_failure
def base64(data: BytesLike) -> Union[bytes, bool]:
    """Decode BASE64 text; characters outside the alphabet are skipped."""
    try:
        return _b64.b64decode(_as_bytes(data), validate=False)
    except binascii.Error as e:
        raise ValueError(f"base64: {e}") from e


@returns_false_on_failure
def qprint(data: BytesLike) -> Union[bytes, bool]:
    """Decode quoted-printable text."""
    return quopri.decodestring(_as_bytes(data))


@returns_false_on_failure
def eight_bit(data: BytesLike) -> Union[bytes, bool]:
    """Encode 8bit text as quoted-printable with CRLF line breaks."""
    raw = _as_bytes(data).replace(b"\r\n", b"\n")
    return _crlf(quopri.encodestring(raw))


@returns_false_on_failure
def binary(data: BytesLike) -> Union[bytes, bool]:
    """Encode binary data as BASE64 in 76-column, CRLF-terminated lines."""
    return _crlf(_b64.encodebytes(_as_bytes(data)))


# -----------------------
# Encoded words (RFC 2047)
# -----------------------


def _decode_part(chunk: Union[str, bytes], charset: Optional[str]) -> str:
    if isinstance(chunk, str):
        return chunk
    try:
        return chunk.decode(charset or "ascii", errors="replace")
    except LookupError:
        return chunk.decode("latin-1")


def utf8(mime_encoded_text: BytesLike) -> str:
    """Decode RFC 2047 encoded words into a plain string."""
    text = mime_encoded_text.decode("latin-1") if isinstance(mime_encoded_text, (bytes, bytearray)) else mime_encoded_text
    try:
        return str(make_header(decode_header(text)))
    except (ValueError, LookupError, UnicodeDecodeError):
        return text


@returns_false_on_failure
def mime_header_decode(text: str) -> Union[List[MimeHeaderPart], bool]:
    """Split a header into ``(charset, text)`` runs; plain runs use charset ``"default"``."""
    parts: List[MimeHeaderPart] = []
    for chunk, charset in decode_header(text):
        parts.append(MimeHeaderPart(charset=charset or "default", text=_decode_part(chunk, charset)))
    return parts


# -----------------------
# Composing
# -----------------------

_ENVELOPE_HEADERS = (
    ("date", "Date"),
    ("from", "From"),
    ("sender", "Sender"),
    ("reply_to", "Reply-To"),
    ("subject", "Subject"),
    ("to", "To"),
    ("cc", "Cc"),
    ("bcc", "Bcc"),
    ("in_reply_to", "In-Reply-To"),
    ("message_id", "Message-ID"),
    ("references", "References"),
    ("return_path", "Return-Path"),
)
_ENVELOPE_KEYS = {k for k, _ in _ENVELOPE_HEADERS} | {"custom_headers", "remail"}

_BODY_KEYS = {
    "type",
    "subtype",
    "encoding",
    "charset",
    "type.parameters",
    "id",
    "description",
    "disposition.type",
    "disposition",
    "contents.data",
    "lines",
    "bytes",
    "md5",
}

_ENCODING_HEADERS = {
    Encoding.ENC7BIT: "7bit",
    Encoding.ENC8BIT: "8bit",
    Encoding.BINARY: "binary",
    Encoding.BASE64: "base64",
    Encoding.QUOTEDPRINTABLE: "quoted-printable",
}

_DEFAULT_SUBTYPES = {
    BodyType.TEXT: "plain",
    BodyType.MULTIPART: "mixed",
    BodyType.MESSAGE: "rfc822",
}


def _header_text(value: Any) -> str:
    text = str(value)
    if text.isascii():
        return text
    return Header(text, "utf-8").encode()


def _content_type(spec: Mapping[str, Any]) -> str:
    btype = BodyType(spec.get("type", BodyType.TEXT))
    major = btype.name.lower() if btype != BodyType.OTHER else "x-unknown"
    subtype = str(spec.get("subtype") or _DEFAULT_SUBTYPES.get(btype, "octet-stream")).lower()
    return f"{major}/{subtype}"


def _apply_part_headers(msg: Message, spec: Mapping[str, Any]) -> None:
    unknown = set(spec) - _BODY_KEYS
    if unknown:
        raise ValueError(f"mail_compose: unknown body key(s) {', '.join(sorted(unknown))}")

    msg["Content-Type"] = _content_type(spec)
    if spec.get("charset"):
        msg.set_param("charset", str(spec["charset"]))
    for name, value in dict(spec.get("type.parameters") or {}).items():
        msg.set_param(str(name).lower(), str(value))
    if spec.get("id"):
        msg["Content-ID"] = str(spec["id"])
    if spec.get("description"):
        msg["Content-Description"] = _header_text(spec["description"])
    if spec.get("disposition.type"):
        msg["Content-Disposition"] = str(spec["disposition.type"])
        for name, value in dict(spec.get("disposition") or {}).items():
            msg.set_param(str(name).lower(), str(value), header="Content-Disposition")
    if spec.get("md5"):
        msg["Content-MD5"] = str(spec["md5"])


def _leaf(spec: Mapping[str, Any]) -> Message:
    part = Message()
    _apply_part_headers(part, spec)
    encoding = Encoding(spec.get("encoding", Encoding.ENC7BIT))
    data = spec.get("contents.data", "")

    # BINARY and 8BIT are made 7bit-safe; other encodings are passed through as given
    if encoding == Encoding.BINARY:
        payload = _b64.encodebytes(_as_bytes(data)).decode("ascii")
        encoding = Encoding.BASE64
    elif encoding == Encoding.ENC8BIT:
        payload = quopri.encodestring(_as_bytes(data)).decode("ascii")
        encoding = Encoding.QUOTEDPRINTABLE
    else:
        payload = data.decode("latin-1") if isinstance(data, (bytes, bytearray)) else str(data)

    if encoding in _ENCODING_HEADERS and encoding != Encoding.ENC7BIT:
        part["Content-Transfer-Encoding"] = _ENCODING_HEADERS[encoding]
    part.set_payload(payload)
    return part


@returns_false_on_failure
def mail_compose(envelope: Mapping[str, Any], bodies: Sequence[Mapping[str, Any]]) -> Union[str, bool]:
    """Build an RFC 822 message from an envelope mapping and body part mappings.

    The first body describes the top-level part. Any further bodies become
    the children of a multipart top level.
    """
    if not bodies:
        raise ValueError("mail_compose: at least one body part is required")
    unknown = set(envelope) - _ENVELOPE_KEYS
    if unknown:
        raise ValueError(f"mail_compose: unknown envelope key(s) {', '.join(sorted(unknown))}")

    top_spec = dict(bodies[0])
    children = list(bodies[1:])
    if children and BodyType(top_spec.get("type", BodyType.TEXT)) != BodyType.MULTIPART:
        # A non-multipart first body becomes the first child of multipart/mixed
        children.insert(0, top_spec)
        top_spec = {"type": BodyType.MULTIPART}
    if BodyType(top_spec.get("type", BodyType.TEXT)) == BodyType.MULTIPART:
        top_spec.pop("contents.data", None)
        msg = Message()
        _apply_part_headers(msg, top_spec)
        for child in children:
            msg.attach(_leaf(child))
        if not children:
            msg.set_payload([])
    else:
        msg = _leaf(top_spec)

    headers: List[tuple] = []
    for key, name in _ENVELOPE_HEADERS:
        if envelope.get(key):
            headers.append((name, _header_text(envelope[key])))
    for raw in envelope.get("custom_headers") or ():
        name, sep, value = str(raw).partition(":")
        if not sep or not name.strip():
            raise ValueError(f"mail_compose: malformed custom header {raw!r}")
        headers.append((name.strip(), value.strip()))
    headers.append(("MIME-Version", "1.0"))

    # Envelope headers go ahead of the Content-* headers
    existing = list(msg.items())
    for name in {n for n, _ in existing}:
        del msg[name]
    for name, value in headers + existing:
        msg[name] = value

    text = msg.as_string(policy=_CRLF_POLICY)
    remail = envelope.get("remail")
    if remail:
        text = _crlf(str(remail).encode("utf-8")).decode("utf-8").rstrip("\r\n") + "\r\n" + text
    return text
