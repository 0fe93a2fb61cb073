"""
Scoped feed: live, role-filtered views of the shared collections.

Why:
    Dashboards observe classes, students, announcements and teachers in real
    time. The feed owns those subscriptions, keeps the latest raw snapshot of
    each collection and re-runs the scope filter whenever any of them changes,
    so the consumer only ever sees a complete, consistently filtered view.

Rescoping:
    The filters depend on the session (role, id, class, supervisor
    assignments). When that context changes, all subscriptions are released and
    re-created and the view is cleared, so no delivery is filtered against a
    stale scope. Deliveries are serialized under one lock and tagged with the
    subscription generation; those from released subscriptions are dropped.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import threading

from datastore.ports import RemoteStoreProtocol, Snapshot, Unsubscribe
from identity_access.domain import Session, StudentSession, SupervisorSession

from .filters import visible_announcements, visible_classes, visible_students, visible_teachers

logger = logging.getLogger("crescent.scoping")

COLLECTIONS = ("classes", "students", "announcements", "teachers")


@dataclass(frozen=True)
class ScopedView:
    classes: List[Dict[str, Any]] = field(default_factory=list)
    students: List[Dict[str, Any]] = field(default_factory=list)
    announcements: List[Dict[str, Any]] = field(default_factory=list)
    teachers: List[Dict[str, Any]] = field(default_factory=list)


def build_view(session: Session, snapshots: Dict[str, Snapshot]) -> ScopedView:
    classes = snapshots.get("classes")
    return ScopedView(
        classes=visible_classes(session, classes),
        students=visible_students(session, snapshots.get("students"), classes),
        announcements=visible_announcements(session, snapshots.get("announcements"), classes),
        teachers=visible_teachers(session, snapshots.get("teachers")),
    )


def scope_key(session: Optional[Session]) -> Optional[Tuple[Any, ...]]:
    """Identity of the filtering context; equal keys filter identically."""
    if session is None:
        return None
    if isinstance(session, SupervisorSession):
        return (session.role, session.id, session.assigned_class_ids)
    if isinstance(session, StudentSession):
        return (session.role, session.id, session.class_id)
    return (session.role, session.id)


class ScopedFeed:
    """Long-lived subscriptions for one session, delivering ScopedView updates.

    Parameters
    ----------
    store:
        Remote store to listen on.
    on_view:
        Called with a fresh ScopedView after every delivered snapshot.
    """

    def __init__(self, store: RemoteStoreProtocol, on_view: Callable[[ScopedView], None]) -> None:
        self._store = store
        self._on_view = on_view
        self._session: Optional[Session] = None
        self._snapshots: Dict[str, Snapshot] = {}
        self._unsubs: List[Unsubscribe] = []
        self._view = ScopedView()
        # Stores may call back from their own threads; one consumer at a time.
        self._lock = threading.RLock()
        self._generation = 0

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def view(self) -> ScopedView:
        return self._view

    @property
    def active(self) -> bool:
        return bool(self._unsubs)

    def _deliver(self, generation: int, name: str, snapshot: Snapshot) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug("dropping stale delivery: collection=%s", name)
                return
            self._snapshots[name] = snapshot
            self._refresh()

    def _refresh(self) -> None:
        if self._session is None:
            return
        self._view = build_view(self._session, self._snapshots)
        self._on_view(self._view)

    def _release(self) -> None:
        self._generation += 1
        unsubs, self._unsubs = self._unsubs, []
        for unsub in unsubs:
            unsub()
        self._snapshots = {}
        self._view = ScopedView()

    def _subscribe(self) -> None:
        generation = self._generation
        for name in COLLECTIONS:
            self._unsubs.append(
                self._store.listen(name, lambda snap, name=name: self._deliver(generation, name, snap))
            )

    def rescope(self, session: Optional[Session]) -> None:
        """Follow a new session.

        Same filtering context: keep subscriptions and re-filter. Changed
        context: clear the view, release and re-subscribe. None: release
        everything. Deliveries from released subscriptions are dropped.
        """
        with self._lock:
            previous = self._session
            self._session = session
            if session is None:
                self._release()
                return
            if self.active and scope_key(previous) == scope_key(session):
                self._refresh()
                return
            logger.debug("rescoping feed: role=%s id=%s", session.role, session.id)
            self._release()
            self._subscribe()

    def follow(self, auth: Any) -> Unsubscribe:
        """Scope to `auth.user` now and track its changes (an AuthService)."""
        self.rescope(auth.user)
        return auth.subscribe(self.rescope)

    def close(self) -> None:
        self.rescope(None)


__all__ = ["COLLECTIONS", "ScopedView", "ScopedFeed", "build_view", "scope_key"]
