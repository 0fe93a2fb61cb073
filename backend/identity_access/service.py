"""
Authentication service: login, session restore, logout and partial updates.

Why:
    The presentation layer needs exactly one place that owns the current
    session. `AuthService` holds it, exposes its loading/unauthenticated/
    authenticated state explicitly, and keeps the durable slot in sync. Screens
    read `user` and subscribe to changes instead of sharing a mutable global.

Credential lookup:
    Accounts live in four collections of the remote store and are probed in a
    fixed order: the single admin record, then teachers, supervisors and
    students. The first record whose `username` and `password` equal the input
    exactly wins. This is a linear scan per collection, fine at the scale of a
    single school.

Security:
    - Passwords are compared in clear text because that is how the remote
      records store them. Hashing is a data migration of the remote store, not
      something this layer can do alone.
    - Failures never tell "unknown user" apart from "wrong password".
    - Passwords are never logged; usernames only at DEBUG.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
import itertools
import json
import logging

import anyio

from datastore.ports import RemoteStoreProtocol

from .domain import (
    AdminSession,
    Session,
    StudentSession,
    SupervisorSession,
    TeacherSession,
    merge_session,
    session_from_dict,
    session_to_dict,
)
from .stores import SessionSlotProtocol
from .supervisors import normalize_assigned_class_ids

logger = logging.getLogger("crescent.identity_access")

ADMIN_PATH = "users/admin"
TEACHERS_PATH = "teachers"
SUPERVISORS_PATH = "supervisors"
STUDENTS_PATH = "students"

INVALID_CREDENTIALS = "invalid_credentials"
TRANSIENT_FAILURE = "transient_failure"

_MESSAGES = {
    INVALID_CREDENTIALS: "Invalid username or password",
    TRANSIENT_FAILURE: "Login failed. Please try again.",
}


@dataclass(frozen=True)
class LoginResult:
    success: bool
    kind: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, kind: str) -> "LoginResult":
        return cls(success=False, kind=kind, error=_MESSAGES[kind])


class AuthState(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class MalformedRecordError(Exception):
    """Raised when a credential collection or record has an unexpected shape."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


# --- Record helpers ------------------------------------------------------------

def _matches(record: Any, username: str, password: str) -> bool:
    if not isinstance(record, Mapping):
        raise MalformedRecordError("invalid_record")
    return record.get("username") == username and record.get("password") == password


def _scan(collection: Any, username: str, password: str) -> Optional[Tuple[str, Mapping[str, Any]]]:
    if collection is None:
        return None
    if not isinstance(collection, Mapping):
        raise MalformedRecordError("invalid_collection")
    for key, record in collection.items():
        if _matches(record, username, password):
            return str(key), record
    return None


def _text(record: Mapping[str, Any], key: str, default: Optional[str] = None) -> str:
    value = record.get(key, default)
    if not isinstance(value, str):
        raise MalformedRecordError(f"invalid_{key}")
    return value


def _display_name(record: Mapping[str, Any]) -> str:
    return _text(record, "name", _text(record, "username"))


def _admin_session(record: Mapping[str, Any]) -> AdminSession:
    return AdminSession(id=_text(record, "id"), username=_text(record, "username"), display_name=_display_name(record))


def _teacher_session(key: str, record: Mapping[str, Any]) -> TeacherSession:
    return TeacherSession(id=key, username=_text(record, "username"), display_name=_display_name(record))


def _supervisor_session(key: str, record: Mapping[str, Any]) -> SupervisorSession:
    return SupervisorSession(
        id=key,
        username=_text(record, "username"),
        display_name=_display_name(record),
        assigned_class_ids=normalize_assigned_class_ids(record.get("assignedClassIds")),
    )


def _student_session(key: str, record: Mapping[str, Any]) -> StudentSession:
    return StudentSession(
        id=key,
        username=_text(record, "username"),
        display_name=_display_name(record),
        class_id=_text(record, "classId"),
        class_name=_text(record, "className", ""),
        password_changed=bool(record.get("passwordChanged") or False),
    )


_COLLECTIONS = (
    (TEACHERS_PATH, _teacher_session),
    (SUPERVISORS_PATH, _supervisor_session),
    (STUDENTS_PATH, _student_session),
)


class AuthService:
    """Owns the current session for one process.

    Parameters
    ----------
    store:
        Remote store holding the credential collections.
    slot:
        Durable slot for the serialized session.
    """

    def __init__(self, store: RemoteStoreProtocol, slot: SessionSlotProtocol) -> None:
        self._store = store
        self._slot = slot
        self._user: Optional[Session] = None
        self._loading = True
        self._listeners: Dict[int, Callable[[Optional[Session]], None]] = {}
        self._ids = itertools.count(1)

    # --- Observable state ------------------------------------------------------

    @property
    def user(self) -> Optional[Session]:
        return self._user

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def state(self) -> AuthState:
        if self._loading:
            return AuthState.LOADING
        return AuthState.AUTHENTICATED if self._user is not None else AuthState.UNAUTHENTICATED

    def subscribe(self, callback: Callable[[Optional[Session]], None]) -> Callable[[], None]:
        """Call `callback(user)` on every change of the current session."""
        lid = next(self._ids)
        self._listeners[lid] = callback

        def _unsubscribe() -> None:
            self._listeners.pop(lid, None)

        return _unsubscribe

    def _set_user(self, user: Optional[Session]) -> None:
        self._user = user
        for cb in list(self._listeners.values()):
            cb(user)

    # --- Durable slot ----------------------------------------------------------

    def _persist(self, session: Session) -> None:
        try:
            self._slot.set(json.dumps(session_to_dict(session)))
        except Exception as exc:
            # Best effort: losing the slot only costs a re-login after restart.
            logger.warning("session persist failed: error=%s", type(exc).__name__)

    def _erase(self) -> None:
        try:
            self._slot.remove()
        except Exception as exc:
            logger.warning("session erase failed: error=%s", type(exc).__name__)

    def restore_session(self) -> Optional[Session]:
        """Install the session from the durable slot, if one is stored and well-formed.

        Runs once at startup and always ends the loading phase. No network access.
        """
        restored: Optional[Session] = None
        try:
            raw = self._slot.get()
        except Exception as exc:
            logger.warning("session restore failed: error=%s", type(exc).__name__)
            raw = None
        if raw:
            try:
                restored = session_from_dict(json.loads(raw))
            except (ValueError, TypeError, RecursionError) as exc:
                logger.info("ignoring malformed session slot: error=%s", type(exc).__name__)
        self._loading = False
        self._set_user(restored)
        return restored

    # --- Use cases -------------------------------------------------------------

    async def _read(self, path: str) -> Any:
        return await anyio.to_thread.run_sync(self._store.get, path)

    async def _find_account(self, username: str, password: str) -> Optional[Session]:
        admin = await self._read(ADMIN_PATH)
        if admin is not None and _matches(admin, username, password):
            return _admin_session(admin)
        for path, build in _COLLECTIONS:
            hit = _scan(await self._read(path), username, password)
            if hit is not None:
                return build(*hit)
        return None

    async def login(self, username: str, password: str) -> LoginResult:
        """Authenticate and install a new session.

        Returns a LoginResult; store faults and malformed records are reported as
        `transient_failure`, never raised. A failed attempt leaves any existing
        session untouched.
        """
        try:
            session = await self._find_account(username, password)
        except Exception as exc:
            logger.warning("login failed: error=%s", type(exc).__name__)
            return LoginResult.failure(TRANSIENT_FAILURE)
        if session is None:
            logger.debug("login rejected: username=%s", username)
            return LoginResult.failure(INVALID_CREDENTIALS)
        self._set_user(session)
        self._persist(session)
        logger.info("login ok: role=%s id=%s", session.role, session.id)
        return LoginResult(success=True)

    def logout(self) -> None:
        """Clear the session and its durable slot. Safe to call when logged out."""
        if self._user is not None:
            logger.info("logout: role=%s id=%s", self._user.role, self._user.id)
            self._set_user(None)
        self._erase()

    def update_user(self, partial: Mapping[str, Any]) -> Optional[Session]:
        """Merge `partial` into the current session and persist the result.

        No-op without an active session. Unknown fields raise
        ValueError("unknown_session_field").
        """
        if self._user is None:
            return None
        merged = merge_session(self._user, partial)
        self._set_user(merged)
        self._persist(merged)
        return merged

    async def change_password(self, new_password: str) -> Optional[StudentSession]:
        """Rotate the active student's initial password.

        Rewrites `students/<id>` with the new password and `passwordChanged`,
        then marks the session accordingly.
        """
        user = self._user
        if not isinstance(user, StudentSession):
            raise PermissionError("student_session_required")
        if not isinstance(new_password, str) or not new_password.strip():
            raise ValueError("invalid_password")
        fields = {"password": new_password, "passwordChanged": True}
        await anyio.to_thread.run_sync(self._store.update, f"{STUDENTS_PATH}/{user.id}", fields)
        logger.info("password changed: id=%s", user.id)
        # The session may have changed while the write was in flight.
        if self._user is not user:
            return None
        updated = self.update_user({"password_changed": True})
        return updated if isinstance(updated, StudentSession) else None


__all__ = [
    "ADMIN_PATH",
    "TEACHERS_PATH",
    "SUPERVISORS_PATH",
    "STUDENTS_PATH",
    "INVALID_CREDENTIALS",
    "TRANSIENT_FAILURE",
    "AuthService",
    "AuthState",
    "LoginResult",
    "MalformedRecordError",
]
