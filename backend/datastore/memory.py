"""
In-memory remote store for development and tests.

Why: Lets the identity and scoping layers run without a realtime database.
Semantics follow the realtime database closely enough for our callers:
- Collections are dicts keyed by push keys, in insertion order.
- `listen` delivers the current snapshot immediately and again after every
  write that touches the listened path (ancestor or descendant).
- Callers receive deep copies; mutating a snapshot never changes the store.
"""
from __future__ import annotations

from copy import deepcopy
from typing import Any, Callable, Dict, List, Tuple
import itertools
import logging
import secrets

from .ports import RemoteStoreProtocol, Snapshot, Unsubscribe, split_path

_log = logging.getLogger("crescent.datastore")


class InMemoryRemoteStore(RemoteStoreProtocol):
    def __init__(self, initial: Dict[str, Any] | None = None):
        self._root: Dict[str, Any] = deepcopy(initial) if initial else {}
        self._listeners: Dict[int, Tuple[List[str], Callable[[Snapshot], None]]] = {}
        self._ids = itertools.count(1)
        self._seq = itertools.count(1)

    # --- Helpers -----------------------------------------------------------------

    def _lookup(self, parts: List[str]) -> Any:
        node: Any = self._root
        for p in parts:
            if not isinstance(node, dict) or p not in node:
                return None
            node = node[p]
        return node

    def _parent(self, parts: List[str]) -> Dict[str, Any]:
        node = self._root
        for p in parts[:-1]:
            child = node.get(p)
            if not isinstance(child, dict):
                child = {}
                node[p] = child
            node = child
        return node

    def _new_key(self) -> str:
        # Sequence prefix keeps keys sortable in creation order.
        return f"-{next(self._seq):010d}{secrets.token_hex(4)}"

    def _notify(self, parts: List[str]) -> None:
        for listened, cb in list(self._listeners.values()):
            n = min(len(listened), len(parts))
            if listened[:n] == parts[:n]:
                cb(deepcopy(self._lookup(listened)))

    # --- Protocol methods --------------------------------------------------------

    def get(self, path: str) -> Any:
        return deepcopy(self._lookup(split_path(path)))

    def set(self, path: str, value: Any) -> None:
        parts = split_path(path)
        parent = self._parent(parts)
        if value is None:
            parent.pop(parts[-1], None)
        else:
            parent[parts[-1]] = deepcopy(value)
        self._notify(parts)

    def push(self, path: str, value: Any) -> str:
        parts = split_path(path)
        key = self._new_key()
        self.set("/".join(parts + [key]), value)
        _log.debug("push path=%s key=%s", path, key)
        return key

    def update(self, path: str, fields: Dict[str, Any]) -> None:
        parts = split_path(path)
        parent = self._parent(parts)
        current = parent.get(parts[-1])
        if not isinstance(current, dict):
            current = {}
            parent[parts[-1]] = current
        for k, v in fields.items():
            if v is None:
                current.pop(k, None)
            else:
                current[k] = deepcopy(v)
        self._notify(parts)

    def listen(self, path: str, callback: Callable[[Snapshot], None]) -> Unsubscribe:
        parts = split_path(path)
        lid = next(self._ids)
        self._listeners[lid] = (parts, callback)
        callback(deepcopy(self._lookup(parts)))

        def _unsubscribe() -> None:
            self._listeners.pop(lid, None)

        return _unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


__all__ = ["InMemoryRemoteStore"]
