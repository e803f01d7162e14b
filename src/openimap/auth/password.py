from __future__ import annotations

import imaplib
from dataclasses import dataclass
from typing import Optional

from openimap.auth.base import AuthContext
from openimap.errors import AuthError


@dataclass(frozen=True)
class PasswordAuth:
    username: str
    password: str
    authuser: Optional[str] = None

    def _plain_payload(self) -> bytes:
        if self.authuser:
            authzid, authcid = self.username, self.authuser
        else:
            authzid, authcid = "", self.username
        return f"{authzid}\0{authcid}\0{self.password}".encode("utf-8")

    def apply_imap(self, conn, ctx: AuthContext) -> None:
        # AUTH=PLAIN and LOGIN both send the password in the clear
        if ctx.secure and not ctx.encrypted:
            raise AuthError("Refusing plaintext authentication over an unencrypted connection")

        try:
            if ctx.offers("PLAIN"):
                payload = self._plain_payload()
                typ, _ = conn.authenticate("PLAIN", lambda _challenge: payload)
            elif ctx.login_disabled:
                raise AuthError("Server disabled LOGIN and offers no usable SASL mechanism")
            elif self.authuser:
                raise AuthError("/authuser requires AUTH=PLAIN support on the server")
            else:
                typ, _ = conn.login(self.username, self.password)
        except imaplib.IMAP4.abort:
            raise
        except imaplib.IMAP4.error as e:
            raise AuthError(f"IMAP login failed: {e}") from e

        if typ != "OK":
            raise AuthError("IMAP login failed (non-OK response)")
