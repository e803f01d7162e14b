# tests/test_constants.py

from __future__ import annotations

import pytest

import openimap


@pytest.mark.parametrize(
    "name, value",
    [
        ("NIL", 0),
        ("IMAP_OPENTIMEOUT", 1),
        ("IMAP_CLOSETIMEOUT", 4),
        ("OP_DEBUG", 1),
        ("OP_READONLY", 2),
        ("OP_HALFOPEN", 64),
        ("OP_EXPUNGE", 128),
        ("OP_SECURE", 256),
        ("CL_EXPUNGE", 32768),
        ("FT_UID", 1),
        ("FT_PEEK", 2),
        ("FT_INTERNAL", 8),
        ("FT_PREFETCHTEXT", 32),
        ("ST_UID", 1),
        ("ST_SILENT", 2),
        ("CP_UID", 1),
        ("CP_MOVE", 2),
        ("SE_UID", 1),
        ("SE_FREE", 2),
        ("SE_NOPREFETCH", 4),
        ("SO_FREE", 8),
        ("SA_ALL", 31),
        ("LATT_NOSELECT", 2),
        ("LATT_HASNOCHILDREN", 64),
        ("SORTDATE", 0),
        ("SORTARRIVAL", 1),
        ("SORTSIZE", 6),
        ("TYPETEXT", 0),
        ("TYPEOTHER", 8),
        ("ENC7BIT", 0),
        ("ENCQUOTEDPRINTABLE", 4),
        ("ENCOTHER", 5),
        ("IMAP_GC_ELT", 1),
        ("IMAP_GC_TEXTS", 4),
    ],
)
def test_constant_values(name, value):
    assert getattr(openimap, name) == value


def test_sort_noserver_matches_sort_free():
    assert openimap.SO_NOSERVER == openimap.SO_FREE


def test_sa_all_combines_every_status_item():
    assert openimap.SA_ALL == (
        openimap.SA_MESSAGES | openimap.SA_RECENT | openimap.SA_UNSEEN | openimap.SA_UIDNEXT | openimap.SA_UIDVALIDITY
    )


def test_public_names_resolve():
    missing = [name for name in openimap.__all__ if not hasattr(openimap, name)]

    assert missing == []
    assert len(set(openimap.__all__)) == len(openimap.__all__)
