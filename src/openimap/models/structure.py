from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from openimap.constants import BodyType, Encoding

if TYPE_CHECKING:
    from openimap.models.message import Envelope


@dataclass(frozen=True)
class BodyStructure:
    """One node of a message's MIME tree.

    ``parts`` holds the children of a multipart node. A ``message/rfc822``
    node carries the encapsulated message's envelope in ``envelope`` and its
    top-level structure as the single element of ``parts``.
    """

    type: BodyType
    subtype: str
    encoding: Encoding = Encoding.ENC7BIT
    parameters: Dict[str, str] = field(default_factory=dict)
    id: Optional[str] = None
    description: Optional[str] = None
    size: Optional[int] = None
    lines: Optional[int] = None
    md5: Optional[str] = None
    disposition: Optional[str] = None
    dparameters: Dict[str, str] = field(default_factory=dict)
    language: Tuple[str, ...] = ()
    location: Optional[str] = None
    parts: Tuple["BodyStructure", ...] = ()
    envelope: Optional["Envelope"] = None
    section: str = ""

    @property
    def content_type(self) -> str:
        base = self.type.name.lower() if self.type != BodyType.OTHER else "x-unknown"
        return f"{base}/{self.subtype.lower()}"

    @property
    def is_multipart(self) -> bool:
        return self.type == BodyType.MULTIPART

    @property
    def charset(self) -> Optional[str]:
        return self.parameters.get("charset")

    @property
    def filename(self) -> Optional[str]:
        return self.dparameters.get("filename") or self.parameters.get("name")

    def walk(self):
        yield self
        for p in self.parts:
            yield from p.walk()

    def to_dict(self) -> dict:
        return {
            "type": int(self.type),
            "subtype": self.subtype,
            "encoding": int(self.encoding),
            "parameters": dict(self.parameters),
            "id": self.id,
            "description": self.description,
            "bytes": self.size,
            "lines": self.lines,
            "md5": self.md5,
            "disposition": self.disposition,
            "dparameters": dict(self.dparameters),
            "language": list(self.language),
            "location": self.location,
            "section": self.section,
            "parts": [p.to_dict() for p in self.parts],
            "envelope": self.envelope.to_dict() if self.envelope else None,
        }
