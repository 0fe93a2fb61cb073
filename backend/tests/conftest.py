"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend, make the bounded-context packages
under backend/ importable, and keep environment configuration from leaking
between tests.
"""
import sys
from pathlib import Path
import pytest

# Ensure modules in backend/ are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(REPO_ROOT), str(BACKEND_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

_ENV_VARS = (
    "CRESCENT_ENV",
    "CRESCENT_SESSION_SLOT",
    "SESSIONS_BACKEND",
    "SESSION_FILE_DIR",
    "SESSION_DATABASE_URL",
    "DATABASE_URL",
    "REALTIME_DB_URL",
    "REALTIME_DB_AUTH",
    "REALTIME_DB_TIMEOUT_SECONDS",
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from an unconfigured environment."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    yield
