"""
Wiring helpers for the authentication service.

Why:
    Process startup needs one call that picks the session slot and remote store
    from the environment, runs the startup guard and restores any saved session.
    Screens then only talk to the returned AuthService.

Behavior:
    - SESSIONS_BACKEND=db uses DBSessionSlot (psycopg3, imported lazily).
    - SESSIONS_BACKEND=memory keeps the slot in process memory.
    - Anything else uses a JSON file under SESSION_FILE_DIR.
"""
from __future__ import annotations

from typing import Optional
import logging

from datastore.config import build_remote_store_from_env
from datastore.ports import RemoteStoreProtocol

from .config import (
    ensure_secure_config_on_startup,
    get_session_file_dir,
    get_session_slot_name,
    get_sessions_backend,
)
from .service import AuthService
from .stores import FileSessionSlot, InMemorySessionSlot, SessionSlotProtocol

logger = logging.getLogger("crescent.identity_access")


def build_session_slot_from_env() -> SessionSlotProtocol:
    name = get_session_slot_name()
    backend = get_sessions_backend()
    if backend == "db":
        # Lazy import keeps psycopg out of non-db setups.
        from .stores_db import DBSessionSlot

        logger.info("Session slot wired: db")
        return DBSessionSlot(name)
    if backend == "memory":
        logger.info("Session slot wired: memory")
        return InMemorySessionSlot(name)
    logger.info("Session slot wired: file")
    return FileSessionSlot(name, get_session_file_dir())


def start_auth_service(store: Optional[RemoteStoreProtocol] = None) -> AuthService:
    """Build the AuthService from the environment and restore the saved session."""
    ensure_secure_config_on_startup()
    service = AuthService(store or build_remote_store_from_env(), build_session_slot_from_env())
    service.restore_session()
    return service


__all__ = ["build_session_slot_from_env", "start_auth_service"]
