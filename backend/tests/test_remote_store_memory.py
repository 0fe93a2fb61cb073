"""
InMemoryRemoteStore: the development stand-in for the realtime database.
"""
from __future__ import annotations

import pytest

from datastore.memory import InMemoryRemoteStore


def test_get_returns_copies():
    store = InMemoryRemoteStore({"classes": {"C1": {"name": "7-A"}}})
    snap = store.get("classes")
    snap["C1"]["name"] = "changed"
    assert store.get("classes/C1/name") == "7-A"
    assert store.get("missing/path") is None


def test_push_keys_keep_creation_order():
    store = InMemoryRemoteStore()
    keys = [store.push("announcements", {"n": i}) for i in range(5)]
    assert list(store.get("announcements")) == keys
    assert keys == sorted(keys)


def test_listen_delivers_current_then_changes_until_unsubscribed():
    store = InMemoryRemoteStore()
    seen = []
    unsub = store.listen("classes", seen.append)
    assert seen == [None]

    key = store.push("classes", {"name": "7-A"})
    store.update(f"classes/{key}", {"teacherId": "T1"})
    store.push("students", {"name": "ignored"})
    assert len(seen) == 3
    assert seen[-1] == {key: {"name": "7-A", "teacherId": "T1"}}

    unsub()
    unsub()
    store.push("classes", {"name": "8-B"})
    assert len(seen) == 3


def test_update_with_none_removes_field_and_set_none_removes_node():
    store = InMemoryRemoteStore({"students": {"P1": {"password": "a", "note": "x"}}})
    store.update("students/P1", {"note": None, "password": "b"})
    assert store.get("students/P1") == {"password": "b"}
    store.set("students/P1", None)
    assert store.get("students") == {}


@pytest.mark.parametrize("path", ["", "/", "//"])
def test_empty_paths_are_rejected(path):
    with pytest.raises(ValueError, match="invalid_path"):
        InMemoryRemoteStore().get(path)
