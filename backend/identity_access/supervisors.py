"""
Supervisor class assignments.

The remote store keeps a supervisor's classes under
`supervisors/<id>/assignedClassIds`. Entries are appended one at a time, so the
stored value is either a list or a mapping of push key -> class id, and may
contain duplicates. Readers always normalise it to a set; writers append only
ids that are not yet present.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, FrozenSet, Mapping
import logging

from datastore.ports import RemoteStoreProtocol

from .domain import SupervisorSession

if TYPE_CHECKING:  # pragma: no cover
    from .service import AuthService

logger = logging.getLogger("crescent.identity_access")


def assigned_class_ids_path(supervisor_id: str) -> str:
    if not supervisor_id or "/" in supervisor_id:
        raise ValueError("invalid_supervisor_id")
    return f"supervisors/{supervisor_id}/assignedClassIds"


def normalize_assigned_class_ids(raw: Any) -> FrozenSet[str]:
    """Return the de-duplicated class ids of a stored assignment value.

    Accepts None, a list or a push-keyed mapping. Non-string and empty entries
    are dropped.
    """
    if raw is None:
        return frozenset()
    if isinstance(raw, Mapping):
        values = raw.values()
    elif isinstance(raw, (list, tuple)):
        values = raw
    else:
        return frozenset()
    return frozenset(v for v in values if isinstance(v, str) and v)


def assign_class_to_supervisor(store: RemoteStoreProtocol, supervisor_id: str, class_id: str) -> FrozenSet[str]:
    """Assign `class_id` to the supervisor unless already assigned; return the resulting set."""
    if not class_id:
        raise ValueError("invalid_class_id")
    path = assigned_class_ids_path(supervisor_id)
    current = normalize_assigned_class_ids(store.get(path))
    if class_id in current:
        return current
    store.push(path, class_id)
    logger.info("class assigned: supervisor=%s class=%s", supervisor_id, class_id)
    return current | {class_id}


def create_class_for_supervisor(store: RemoteStoreProtocol, auth: "AuthService", record: Mapping[str, Any]) -> str:
    """Create a class and assign it to the active supervisor.

    Appends `record` to `classes`, records the assignment and updates the
    session so scoped feeds pick up the new class. Returns the class id.
    """
    user = auth.user
    if not isinstance(user, SupervisorSession):
        raise PermissionError("supervisor_session_required")
    class_id = store.push("classes", dict(record))
    assigned = assign_class_to_supervisor(store, user.id, class_id)
    auth.update_user({"assigned_class_ids": user.assigned_class_ids | assigned})
    return class_id


__all__ = [
    "assigned_class_ids_path",
    "normalize_assigned_class_ids",
    "assign_class_to_supervisor",
    "create_class_for_supervisor",
]
