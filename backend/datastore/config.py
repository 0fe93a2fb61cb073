"""
Remote store configuration.

Behavior:
    - REALTIME_DB_URL selects the REST client; unset means the in-memory store.
    - REALTIME_DB_AUTH is an optional auth token for the REST client.
    - REALTIME_DB_TIMEOUT_SECONDS bounds point reads/writes (default 10, clamped 1..60).

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import logging
import os

from .memory import InMemoryRemoteStore
from .ports import RemoteStoreProtocol
from .realtime_rest import RealtimeDatabaseClient

_log = logging.getLogger("crescent.datastore")

TIMEOUT_DEFAULT_SECONDS = 10


def get_realtime_db_url() -> str:
    return (os.getenv("REALTIME_DB_URL") or "").strip().rstrip("/")


def get_realtime_db_auth() -> str | None:
    return (os.getenv("REALTIME_DB_AUTH") or "").strip() or None


def get_request_timeout_seconds() -> int:
    raw = (os.getenv("REALTIME_DB_TIMEOUT_SECONDS") or "").strip()
    if not raw:
        return TIMEOUT_DEFAULT_SECONDS
    try:
        value = int(raw)
    except ValueError:
        return TIMEOUT_DEFAULT_SECONDS
    if value <= 0:
        return TIMEOUT_DEFAULT_SECONDS
    return min(value, 60)


def build_remote_store_from_env() -> RemoteStoreProtocol:
    """Return the remote store selected by the environment."""
    url = get_realtime_db_url()
    if not url:
        _log.info("Remote store wired: in-memory")
        return InMemoryRemoteStore()
    _log.info("Remote store wired: realtime database")
    return RealtimeDatabaseClient(url, auth_token=get_realtime_db_auth(), timeout=get_request_timeout_seconds())


__all__ = [
    "TIMEOUT_DEFAULT_SECONDS",
    "get_realtime_db_url",
    "get_realtime_db_auth",
    "get_request_timeout_seconds",
    "build_remote_store_from_env",
]
