"""
Remote store port used by identity_access and scoping.

Keep this small and framework-agnostic so tests can supply simple fakes. The
shape mirrors a Firebase-style realtime database: slash-separated paths,
collections are mappings of push key -> record.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Protocol


Snapshot = Optional[Dict[str, Any]]
Unsubscribe = Callable[[], None]


class RemoteStoreError(Exception):
    """Raised when the remote store is unreachable or answers garbage."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


class RemoteStoreProtocol(Protocol):
    """Minimal interface to the remote data store.

    Intent:
        Point reads for credential lookup, streaming snapshots for scoped
        collections, and the two write paths this core needs (append and
        field update).

    Errors:
        Implementations raise RemoteStoreError for transport or decoding faults.
    """

    def get(self, path: str) -> Any: ...

    def listen(self, path: str, callback: Callable[[Snapshot], None]) -> Unsubscribe: ...

    def push(self, path: str, value: Any) -> str: ...

    def update(self, path: str, fields: Dict[str, Any]) -> None: ...


def split_path(path: str) -> list[str]:
    """Split a store path into non-empty segments.

    Raises ValueError for an empty path; the root is never addressed directly.
    """
    parts = [p for p in (path or "").strip().split("/") if p]
    if not parts:
        raise ValueError("invalid_path")
    return parts


__all__ = ["RemoteStoreProtocol", "RemoteStoreError", "Snapshot", "Unsubscribe", "split_path"]
