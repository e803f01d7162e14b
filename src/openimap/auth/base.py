from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Protocol, Tuple


@dataclass(frozen=True)
class AuthContext:
    host: str
    port: int
    capabilities: Tuple[str, ...] = ()
    encrypted: bool = False
    secure: bool = False
    disabled_mechanisms: FrozenSet[str] = field(default_factory=frozenset)

    def offers(self, mechanism: str) -> bool:
        mech = mechanism.upper()
        return f"AUTH={mech}" in self.capabilities and mech not in self.disabled_mechanisms

    @property
    def login_disabled(self) -> bool:
        return "LOGINDISABLED" in self.capabilities


class IMAPAuth(Protocol):
    def apply_imap(self, conn, ctx: AuthContext) -> None: ...
