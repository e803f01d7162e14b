from openimap.imap.connection import Connection

__all__ = ["Connection"]
