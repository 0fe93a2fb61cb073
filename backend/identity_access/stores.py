"""
Durable session slots: in-memory and file-backed.

Why: The current session survives process restarts by living in a single named
slot of local storage. The slot holds an opaque string (the serialized
session); parsing stays in the service. For a shared database use
`stores_db.DBSessionSlot`.

Security: The slot never contains a password. File slots are written with
owner-only permissions.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Protocol
import os
import re
import tempfile

_SLOT_NAME = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")


def validate_slot_name(name: str) -> str:
    if not isinstance(name, str) or not _SLOT_NAME.match(name) or name.startswith("."):
        raise ValueError("invalid_slot_name")
    return name


class SessionSlotProtocol(Protocol):
    """Get/set/remove of one string-valued slot. Implementations may raise OSError-like faults."""

    def get(self) -> Optional[str]: ...

    def set(self, value: str) -> None: ...

    def remove(self) -> None: ...


class InMemorySessionSlot:
    """Slot kept in a dict shared by name; survives service instances, not processes."""

    def __init__(self, name: str, backing: Dict[str, str] | None = None):
        self.name = validate_slot_name(name)
        self._data: Dict[str, str] = backing if backing is not None else {}

    def get(self) -> Optional[str]:
        return self._data.get(self.name)

    def set(self, value: str) -> None:
        self._data[self.name] = value

    def remove(self) -> None:
        self._data.pop(self.name, None)


class FileSessionSlot:
    """Slot stored as `<directory>/<name>.json`."""

    def __init__(self, name: str, directory: str | os.PathLike[str]):
        self.name = validate_slot_name(name)
        self._dir = Path(directory).expanduser()

    @property
    def path(self) -> Path:
        return self._dir / f"{self.name}.json"

    def get(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, value: str) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so a crash never leaves a half-written slot behind.
        fd, tmp = tempfile.mkstemp(dir=str(self._dir), prefix=f".{self.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def remove(self) -> None:
        self.path.unlink(missing_ok=True)


__all__ = ["SessionSlotProtocol", "InMemorySessionSlot", "FileSessionSlot", "validate_slot_name"]
