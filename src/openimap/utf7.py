"""Modified UTF-7 for IMAP mailbox names (RFC 3501, section 5.1.3).

Printable US-ASCII other than ``&`` stands for itself, ``&`` is written as
``&-`` and every other run of characters is UTF-16BE, base64-encoded with
``,`` in place of ``/``, unpadded, between ``&`` and ``-``.
"""
from __future__ import annotations

import binascii
from base64 import b64decode, b64encode
from typing import List, Union

from openimap.diagnostics import record_error


def _is_direct(ch: str) -> bool:
    return 0x20 <= ord(ch) <= 0x7E


def _encode_run(run: List[str]) -> str:
    raw = "".join(run).encode("utf-16-be")
    return "&" + b64encode(raw).decode("ascii").rstrip("=").replace("/", ",") + "-"


def encode(text: str) -> str:
    out: List[str] = []
    run: List[str] = []
    for ch in text:
        if _is_direct(ch):
            if run:
                out.append(_encode_run(run))
                run = []
            out.append("&-" if ch == "&" else ch)
        else:
            run.append(ch)
    if run:
        out.append(_encode_run(run))
    return "".join(out)


def decode(data: str) -> str:
    """Strict decoder; raises ``ValueError`` on anything RFC 3501 forbids."""
    out: List[str] = []
    i = 0
    n = len(data)
    prev_was_shift = False
    while i < n:
        ch = data[i]
        if not _is_direct(ch):
            raise ValueError(f"Invalid character {ch!r} at offset {i}")
        if ch != "&":
            out.append(ch)
            prev_was_shift = False
            i += 1
            continue

        end = data.find("-", i + 1)
        if end == -1:
            raise ValueError(f"Unterminated shift sequence at offset {i}")
        b64 = data[i + 1 : end]
        if not b64:
            out.append("&")
            prev_was_shift = False
            i = end + 1
            continue
        if prev_was_shift:
            raise ValueError(f"Adjacent shift sequences at offset {i}")

        raw = _unbase64(b64, i)
        if len(raw) % 2:
            raise ValueError(f"Odd UTF-16 byte count in shift sequence at offset {i}")
        try:
            decoded = raw.decode("utf-16-be")
        except UnicodeDecodeError as e:
            raise ValueError(f"Invalid UTF-16 in shift sequence at offset {i}") from e
        if any(_is_direct(c) for c in decoded):
            raise ValueError(f"Shift sequence encodes printable ASCII at offset {i}")
        out.append(decoded)
        prev_was_shift = True
        i = end + 1
    return "".join(out)


def _unbase64(b64: str, offset: int) -> bytes:
    if "=" in b64 or "/" in b64:
        raise ValueError(f"Invalid base64 in shift sequence at offset {offset}")
    padded = b64.replace(",", "/")
    rem = len(padded) % 4
    if rem == 1:
        raise ValueError(f"Truncated base64 in shift sequence at offset {offset}")
    padded += "=" * ((4 - rem) % 4)
    try:
        raw = b64decode(padded, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 in shift sequence at offset {offset}") from e
    if b64encode(raw).decode("ascii").rstrip("=") != padded.rstrip("="):
        # Non-zero trailing bits
        raise ValueError(f"Non-canonical base64 in shift sequence at offset {offset}")
    return raw


# -----------------------
# Facade
# -----------------------


def utf7_encode(text: str) -> str:
    return encode(text)


def utf7_decode(data: str) -> Union[str, bool]:
    try:
        return decode(data)
    except ValueError as e:
        record_error(f"utf7_decode: {e}")
        return False


def utf8_to_mutf7(data: Union[bytes, str]) -> Union[str, bool]:
    if isinstance(data, str):
        return encode(data)
    try:
        text = bytes(data).decode("utf-8")
    except UnicodeDecodeError as e:
        record_error(f"utf8_to_mutf7: input is not valid UTF-8 ({e.reason})")
        return False
    return encode(text)


def mutf7_to_utf8(data: Union[bytes, str]) -> Union[str, bool]:
    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("ascii")
        except UnicodeDecodeError:
            record_error("mutf7_to_utf8: input is not 7-bit")
            return False
    try:
        return decode(data)
    except ValueError as e:
        record_error(f"mutf7_to_utf8: {e}")
        return False
