from __future__ import annotations


class OpenIMAPError(Exception):
    """Base class for every error raised inside openimap."""


class ConfigError(OpenIMAPError):
    pass


class ParseError(OpenIMAPError):
    pass


class IMAPError(OpenIMAPError):
    pass


class AuthError(IMAPError):
    pass


class CapabilityError(IMAPError):
    """The server did not advertise an extension the call depends on."""


class SMTPError(OpenIMAPError):
    pass


class ConnectionClosedError(ValueError):
    """Raised when a closed Connection handle is used again."""
