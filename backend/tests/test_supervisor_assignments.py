"""
Supervisor class assignments are a set: stored duplicates collapse on read and
writers only append ids that are not assigned yet.
"""
from __future__ import annotations

import pytest

from datastore.memory import InMemoryRemoteStore
from identity_access.domain import SupervisorSession
from identity_access.service import AuthService
from identity_access.stores import InMemorySessionSlot
from identity_access.supervisors import (
    assign_class_to_supervisor,
    assigned_class_ids_path,
    create_class_for_supervisor,
    normalize_assigned_class_ids,
)
from utils.school_fixtures import school_data


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, set()),
        (["C1", "C1", "C2"], {"C1", "C2"}),
        ({"-a": "C1", "-b": "C1"}, {"C1"}),
        (["C1", None, "", 7], {"C1"}),
        ("C1", set()),
    ],
)
def test_normalize_assigned_class_ids(raw, expected):
    assert normalize_assigned_class_ids(raw) == frozenset(expected)


def test_assign_appends_only_new_ids():
    store = InMemoryRemoteStore(school_data())
    assert assign_class_to_supervisor(store, "S1", "C1") == {"C1", "C3"}
    assert len(store.get("supervisors/S1/assignedClassIds")) == 3

    assert assign_class_to_supervisor(store, "S1", "C2") == {"C1", "C2", "C3"}
    assert assign_class_to_supervisor(store, "S1", "C2") == {"C1", "C2", "C3"}
    assert list(store.get("supervisors/S1/assignedClassIds").values()).count("C2") == 1


def test_assign_to_supervisor_without_assignments():
    store = InMemoryRemoteStore()
    assert assign_class_to_supervisor(store, "S9", "C1") == {"C1"}
    assert list(store.get("supervisors/S9/assignedClassIds").values()) == ["C1"]


@pytest.mark.parametrize("supervisor_id", ["", "S1/../admin"])
def test_supervisor_ids_are_validated(supervisor_id):
    with pytest.raises(ValueError, match="invalid_supervisor_id"):
        assigned_class_ids_path(supervisor_id)


def test_blank_class_id_is_rejected():
    with pytest.raises(ValueError, match="invalid_class_id"):
        assign_class_to_supervisor(InMemoryRemoteStore(), "S1", "")


@pytest.mark.anyio
async def test_create_class_assigns_it_to_the_active_supervisor():
    store = InMemoryRemoteStore(school_data())
    auth = AuthService(store, InMemorySessionSlot("crescentUser"))
    await auth.login("sup.lee", "watch")

    class_id = create_class_for_supervisor(store, auth, {"name": "Grade 10-A", "grade": "10", "teacherId": "T1"})
    assert store.get(f"classes/{class_id}")["name"] == "Grade 10-A"
    assert isinstance(auth.user, SupervisorSession)
    assert auth.user.assigned_class_ids == {"C1", "C3", class_id}


@pytest.mark.anyio
async def test_create_class_requires_a_supervisor_session():
    store = InMemoryRemoteStore(school_data())
    auth = AuthService(store, InMemorySessionSlot("crescentUser"))
    await auth.login("mrs.khan", "chalk")
    with pytest.raises(PermissionError, match="supervisor_session_required"):
        create_class_for_supervisor(store, auth, {"name": "x"})
    assert set(store.get("classes")) == {"C1", "C2", "C3"}
