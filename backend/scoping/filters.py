"""
Scope filter: which part of a shared collection a session may see.

Pure functions of (session, snapshot). A snapshot is the mapping delivered by
the remote store (`key -> record`, or None for an empty collection); results
are lists of dicts carrying the key as `id`, in snapshot order unless noted.

Rules:

    role        classes               students                  announcements
    admin       all                   all                       all
    teacher     teacherId == id       classId in own classes    global or own classes
    supervisor  id in assigned        classId in assigned       global or assigned
    student     none                  none                      global or own class

Announcements are sorted newest first by `createdAt` (stable; missing or
unparseable timestamps last). References are matched by string id only; a classId
pointing at a deleted class is not validated, and non-string ids match nothing.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from identity_access.domain import (
    AdminSession,
    Session,
    StudentSession,
    SupervisorSession,
    TeacherSession,
)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _ref(record: Mapping[str, Any], key: str) -> Optional[str]:
    """A record's id reference, or None when it is not a string (never matches)."""
    value = record.get(key)
    return value if isinstance(value, str) else None


def snapshot_records(snapshot: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Flatten a keyed snapshot into records with `id` set to the key.

    Record fields win over the key. Non-mapping entries are skipped.
    """
    if not snapshot:
        return []
    return [{"id": key, **record} for key, record in snapshot.items() if isinstance(record, Mapping)]


def _teacher_class_ids(session: TeacherSession, classes: Optional[Mapping[str, Any]]) -> FrozenSet[str]:
    return frozenset(c["id"] for c in snapshot_records(classes) if c.get("teacherId") == session.id and _ref(c, "id"))


def visible_class_ids(session: Session, classes: Optional[Mapping[str, Any]] = None) -> Optional[FrozenSet[str]]:
    """Return the class ids the session is scoped to; None means unrestricted (admin)."""
    if isinstance(session, AdminSession):
        return None
    if isinstance(session, TeacherSession):
        return _teacher_class_ids(session, classes)
    if isinstance(session, SupervisorSession):
        return session.assigned_class_ids
    if isinstance(session, StudentSession):
        return frozenset({session.class_id})
    raise TypeError("unknown_session_variant")


def visible_classes(session: Session, classes: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    records = snapshot_records(classes)
    if isinstance(session, AdminSession):
        return records
    if isinstance(session, TeacherSession):
        return [c for c in records if c.get("teacherId") == session.id]
    if isinstance(session, SupervisorSession):
        return [c for c in records if _ref(c, "id") in session.assigned_class_ids]
    return []


def visible_students(
    session: Session,
    students: Optional[Mapping[str, Any]],
    classes: Optional[Mapping[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """Students visible to the session.

    Teachers see students of the classes they teach, so the classes snapshot
    is required for that role.
    """
    if isinstance(session, StudentSession):
        return []
    records = snapshot_records(students)
    allowed = visible_class_ids(session, classes)
    if allowed is None:
        return records
    return [s for s in records if _ref(s, "classId") in allowed]


def visible_teachers(session: Session, teachers: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Admins and supervisors manage staff and see every teacher; others see none."""
    if isinstance(session, (AdminSession, SupervisorSession)):
        return snapshot_records(teachers)
    return []


def _created_at(record: Mapping[str, Any]) -> datetime:
    raw = record.get("createdAt")
    if not isinstance(raw, str) or not raw:
        return _OLDEST
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return _OLDEST
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_newest_first(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(records, key=_created_at, reverse=True)


def visible_announcements(
    session: Session,
    announcements: Optional[Mapping[str, Any]],
    classes: Optional[Mapping[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """Global announcements plus those of the session's classes, newest first."""
    records = snapshot_records(announcements)
    allowed = visible_class_ids(session, classes)
    if allowed is not None:
        records = [a for a in records if a.get("classId") in (None, "") or _ref(a, "classId") in allowed]
    return sort_newest_first(records)


__all__ = [
    "snapshot_records",
    "visible_class_ids",
    "visible_classes",
    "visible_students",
    "visible_teachers",
    "visible_announcements",
    "sort_newest_first",
]
