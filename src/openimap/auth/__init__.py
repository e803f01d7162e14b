from openimap.auth.anonymous import AnonymousAuth
from openimap.auth.base import AuthContext, IMAPAuth
from openimap.auth.password import PasswordAuth

__all__ = [
    "IMAPAuth",
    "AuthContext",
    "PasswordAuth",
    "AnonymousAuth",
]
