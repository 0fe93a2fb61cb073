"""
Configuration and startup security checks for Crescent.

Why: School deployments must not silently run with insecure settings. This
module reads the session-related environment and provides a single guard that
enforces minimal production safety constraints without burdening local
development.

Permissions: The caller needs no special privileges. The functions only read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os

SESSION_SLOT_DEFAULT = "crescentUser"
SESSIONS_BACKENDS = frozenset({"memory", "file", "db"})


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def get_session_slot_name() -> str:
    return (os.getenv("CRESCENT_SESSION_SLOT") or SESSION_SLOT_DEFAULT).strip()


def get_sessions_backend() -> str:
    """Return the configured slot backend; unknown values fall back to `file`."""
    value = (os.getenv("SESSIONS_BACKEND") or "file").strip().lower()
    return value if value in SESSIONS_BACKENDS else "file"


def get_session_file_dir() -> str:
    return (os.getenv("SESSION_FILE_DIR") or "~/.crescent").strip()


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod-like CRESCENT_ENV only):
    - REALTIME_DB_URL must be set and use https.
    - REALTIME_DB_AUTH must be set and not a placeholder.
    - SESSIONS_BACKEND must not be `memory` (sessions would vanish on restart).
    """
    env = os.getenv("CRESCENT_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    url = (os.getenv("REALTIME_DB_URL") or "").strip().lower()
    if not url:
        raise SystemExit("Refusing to start: REALTIME_DB_URL is unset in production.")
    if not url.startswith("https://"):
        raise SystemExit("Refusing to start: REALTIME_DB_URL must use https in production.")

    token = (os.getenv("REALTIME_DB_AUTH") or "").strip()
    if not token or token.upper().startswith("CHANGE_ME"):
        raise SystemExit("Refusing to start: REALTIME_DB_AUTH is unset or a placeholder in production.")

    if get_sessions_backend() == "memory":
        raise SystemExit("Refusing to start: SESSIONS_BACKEND=memory is not allowed in production/staging.")


__all__ = [
    "SESSION_SLOT_DEFAULT",
    "SESSIONS_BACKENDS",
    "get_session_slot_name",
    "get_sessions_backend",
    "get_session_file_dir",
    "ensure_secure_config_on_startup",
]
