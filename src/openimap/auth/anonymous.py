from __future__ import annotations

import imaplib
from dataclasses import dataclass

from openimap.auth.base import AuthContext
from openimap.errors import AuthError


@dataclass(frozen=True)
class AnonymousAuth:
    trace: str = "anonymous"

    def apply_imap(self, conn, ctx: AuthContext) -> None:
        try:
            if ctx.offers("ANONYMOUS"):
                token = self.trace.encode("utf-8")
                typ, _ = conn.authenticate("ANONYMOUS", lambda _challenge: token)
            elif ctx.login_disabled:
                raise AuthError("Server offers neither AUTH=ANONYMOUS nor LOGIN")
            else:
                typ, _ = conn.login("anonymous", self.trace)
        except imaplib.IMAP4.abort:
            raise
        except imaplib.IMAP4.error as e:
            raise AuthError(f"IMAP anonymous login failed: {e}") from e

        if typ != "OK":
            raise AuthError("IMAP anonymous login failed (non-OK response)")
