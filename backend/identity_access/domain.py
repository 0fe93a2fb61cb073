"""
Identity domain: roles and the Session sum type.

Why:
- Centralize allowed roles to avoid drift between the service and the scope filter.
- One frozen dataclass per role so each variant carries only its own fields;
  callers dispatch on the variant instead of probing optional attributes.
- Keep the serialized form (durable slot) in one place.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, FrozenSet, Mapping, Union

ROLE_ADMIN = "admin"
ROLE_TEACHER = "teacher"
ROLE_SUPERVISOR = "supervisor"
ROLE_STUDENT = "student"

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({ROLE_ADMIN, ROLE_TEACHER, ROLE_SUPERVISOR, ROLE_STUDENT})


@dataclass(frozen=True)
class AdminSession:
    id: str
    username: str
    display_name: str

    @property
    def role(self) -> str:
        return ROLE_ADMIN


@dataclass(frozen=True)
class TeacherSession:
    id: str
    username: str
    display_name: str

    @property
    def role(self) -> str:
        return ROLE_TEACHER


@dataclass(frozen=True)
class SupervisorSession:
    id: str
    username: str
    display_name: str
    assigned_class_ids: FrozenSet[str] = frozenset()

    @property
    def role(self) -> str:
        return ROLE_SUPERVISOR


@dataclass(frozen=True)
class StudentSession:
    id: str
    username: str
    display_name: str
    class_id: str
    class_name: str
    password_changed: bool = False

    @property
    def role(self) -> str:
        return ROLE_STUDENT


Session = Union[AdminSession, TeacherSession, SupervisorSession, StudentSession]

_VARIANTS = {
    ROLE_ADMIN: AdminSession,
    ROLE_TEACHER: TeacherSession,
    ROLE_SUPERVISOR: SupervisorSession,
    ROLE_STUDENT: StudentSession,
}


class MalformedSessionError(ValueError):
    """Raised when serialized session content does not describe a valid session."""


def session_to_dict(session: Session) -> Dict[str, Any]:
    """Serialize a session for the durable slot (JSON-compatible)."""
    out: Dict[str, Any] = {
        "id": session.id,
        "username": session.username,
        "name": session.display_name,
        "role": session.role,
    }
    if isinstance(session, StudentSession):
        out["classId"] = session.class_id
        out["className"] = session.class_name
        out["passwordChanged"] = session.password_changed
    elif isinstance(session, SupervisorSession):
        out["assignedClassIds"] = sorted(session.assigned_class_ids)
    return out


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise MalformedSessionError(f"invalid_{key}")
    return value


def session_from_dict(data: Any) -> Session:
    """Parse what `session_to_dict` wrote; raise MalformedSessionError otherwise."""
    if not isinstance(data, Mapping):
        raise MalformedSessionError("invalid_session")
    role = data.get("role")
    if not isinstance(role, str) or role not in ALLOWED_ROLES:
        raise MalformedSessionError("invalid_role")
    base = {
        "id": _require_str(data, "id"),
        "username": _require_str(data, "username"),
        "display_name": _require_str(data, "name"),
    }
    if role == ROLE_STUDENT:
        changed = data.get("passwordChanged", False)
        if not isinstance(changed, bool):
            raise MalformedSessionError("invalid_passwordChanged")
        return StudentSession(
            class_id=_require_str(data, "classId"),
            class_name=_require_str(data, "className"),
            password_changed=changed,
            **base,
        )
    if role == ROLE_SUPERVISOR:
        ids = data.get("assignedClassIds", [])
        if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
            raise MalformedSessionError("invalid_assignedClassIds")
        return SupervisorSession(assigned_class_ids=frozenset(ids), **base)
    return _VARIANTS[role](**base)


def session_field_names(session: Session) -> FrozenSet[str]:
    return frozenset(f.name for f in fields(session))


def merge_session(session: Session, partial: Mapping[str, Any]) -> Session:
    """Return `session` with the given fields overridden.

    Only fields of the session's own variant are accepted; the role cannot be
    changed through a merge. Raises ValueError("unknown_session_field"), or
    MalformedSessionError("invalid_<field>") when a value has the wrong type.
    """
    allowed = session_field_names(session)
    unknown = [k for k in partial if k not in allowed]
    if unknown:
        raise ValueError("unknown_session_field")
    changes = dict(partial)
    for key, value in changes.items():
        if key == "assigned_class_ids":
            ids = () if value is None else value
            if not isinstance(ids, (list, tuple, set, frozenset)) or not all(isinstance(i, str) for i in ids):
                raise MalformedSessionError("invalid_assigned_class_ids")
            changes[key] = frozenset(ids)
        elif key == "password_changed":
            if not isinstance(value, bool):
                raise MalformedSessionError("invalid_password_changed")
        elif not isinstance(value, str):
            raise MalformedSessionError(f"invalid_{key}")
    return replace(session, **changes)


__all__ = [
    "ALLOWED_ROLES",
    "ROLE_ADMIN",
    "ROLE_TEACHER",
    "ROLE_SUPERVISOR",
    "ROLE_STUDENT",
    "AdminSession",
    "TeacherSession",
    "SupervisorSession",
    "StudentSession",
    "Session",
    "MalformedSessionError",
    "session_to_dict",
    "session_from_dict",
    "session_field_names",
    "merge_session",
]
