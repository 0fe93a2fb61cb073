"""
Durable session slots: file, in-memory and Postgres-backed variants.

The Postgres slot runs against a fake psycopg driver (see utils/fake_psycopg.py)
unless SESSION_TEST_DSN points at a reachable database.
"""
from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from identity_access.stores import FileSessionSlot, InMemorySessionSlot, validate_slot_name
from utils.fake_psycopg import install_fake_psycopg

SESSION_TEST_DSN = os.getenv("SESSION_TEST_DSN")


def test_file_slot_roundtrip_and_remove(tmp_path: Path):
    slot = FileSessionSlot("crescentUser", tmp_path / "nested")
    assert slot.get() is None
    slot.set('{"id": "P1"}')
    assert slot.get() == '{"id": "P1"}'
    assert slot.path == tmp_path / "nested" / "crescentUser.json"
    slot.set('{"id": "P2"}')
    assert slot.get() == '{"id": "P2"}'
    slot.remove()
    assert slot.get() is None
    slot.remove()


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions only")
def test_file_slot_is_owner_only(tmp_path: Path):
    slot = FileSessionSlot("crescentUser", tmp_path)
    slot.set("{}")
    mode = stat.S_IMODE(slot.path.stat().st_mode)
    assert mode == 0o600
    assert [p.name for p in tmp_path.iterdir()] == ["crescentUser.json"]


def test_in_memory_slots_share_backing_by_name():
    backing: dict[str, str] = {}
    a = InMemorySessionSlot("crescentUser", backing)
    b = InMemorySessionSlot("crescentUser", backing)
    a.set("x")
    assert b.get() == "x"
    b.remove()
    assert a.get() is None


@pytest.mark.parametrize("name", ["", ".hidden", "../escape", "a/b", "x" * 65])
def test_slot_names_are_validated(name):
    with pytest.raises(ValueError, match="invalid_slot_name"):
        validate_slot_name(name)


def test_db_slot_set_get_remove(monkeypatch: pytest.MonkeyPatch):
    from identity_access import stores_db as mod

    if SESSION_TEST_DSN:
        slot = mod.DBSessionSlot("crescentUser-test", dsn=SESSION_TEST_DSN)
    else:
        install_fake_psycopg(monkeypatch, mod)
        slot = mod.DBSessionSlot("crescentUser-test", dsn="fake://dsn")

    slot.remove()
    assert slot.get() is None
    slot.set('{"id": "T1"}')
    assert slot.get() == '{"id": "T1"}'
    slot.set('{"id": "T2"}')
    assert slot.get() == '{"id": "T2"}'
    slot.remove()
    assert slot.get() is None


def test_db_slot_uses_validated_table_and_slot_key(monkeypatch: pytest.MonkeyPatch):
    from identity_access import stores_db as mod

    rows, log = install_fake_psycopg(monkeypatch, mod)
    slot = mod.DBSessionSlot("crescentUser", dsn="fake://dsn", table="app.session_slots")
    slot.set("payload")
    assert rows == {"crescentUser": "payload"}
    assert log[0][0].startswith("insert into app.session_slots")
    assert "on conflict (slot)" in log[0][0]
    assert log[0][1] == ("crescentUser", "payload")

    with pytest.raises(ValueError):
        mod.DBSessionSlot("crescentUser", dsn="fake://dsn", table="slots; drop table x")


def test_db_slot_requires_dsn(monkeypatch: pytest.MonkeyPatch):
    from identity_access import stores_db as mod

    install_fake_psycopg(monkeypatch, mod)
    with pytest.raises(RuntimeError):
        mod.DBSessionSlot("crescentUser")
    monkeypatch.setenv("SESSION_DATABASE_URL", "fake://env")
    assert mod.DBSessionSlot("crescentUser").get() is None


def test_db_slot_requires_driver(monkeypatch: pytest.MonkeyPatch):
    from identity_access import stores_db as mod

    monkeypatch.setattr(mod, "HAVE_PSYCOPG", False)
    with pytest.raises(RuntimeError, match="psycopg3"):
        mod.DBSessionSlot("crescentUser", dsn="fake://dsn")
