"""
Database-backed session slot (Postgres).

Why: Kiosk-style deployments run several short-lived processes on one machine
pool; a slot in Postgres lets a restarted process pick the session up again
where a local file would not be shared.

Schema (one row per slot):

    create table public.session_slots (
        slot text primary key,
        payload text not null,
        updated_at timestamptz not null default now()
    );

Note: This module uses psycopg3. It is imported only when enabled via
`SESSIONS_BACKEND=db`. Tests use a fake psycopg driver.
"""
from __future__ import annotations

from typing import Optional
import os
import re

try:
    import psycopg
    from psycopg import sql
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    sql = None  # type: ignore
    HAVE_PSYCOPG = False

from .stores import validate_slot_name

_TABLE_NAME = re.compile(r'^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$')


class DBSessionSlot:
    """Postgres-backed session slot.

    Parameters
    ----------
    name:
        Slot name (primary key of the row).
    dsn:
        Psycopg3 connection string. Falls back to SESSION_DATABASE_URL / DATABASE_URL.
    table:
        Fully qualified table name. Defaults to `public.session_slots`.
    """

    def __init__(self, name: str, dsn: str | None = None, table: str = "public.session_slots") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBSessionSlot")
        self.name = validate_slot_name(name)
        self._dsn = dsn or os.getenv("SESSION_DATABASE_URL") or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBSessionSlot")
        if not _TABLE_NAME.match(table or ""):
            raise ValueError("Invalid table name")
        self._table = table

    def _schema_and_name(self) -> tuple[str, str]:
        if "." in self._table:
            schema, name = self._table.split(".", 1)
        else:
            schema, name = "public", self._table
        return schema, name

    def _stmt(self, template: str):
        """Compose `template` with the table identifier via psycopg.sql when available."""
        if sql is None:
            # Table name is validated in __init__.
            return template.format(table=self._table)
        schema, name_tbl = self._schema_and_name()
        return sql.SQL(template.replace("{table}", "{}.{}")).format(
            sql.Identifier(schema), sql.Identifier(name_tbl)
        )

    def get(self) -> Optional[str]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(self._stmt("select payload from {table} where slot = %s"), (self.name,))
                row = cur.fetchone()
        if not row:
            return None
        return row[0] if isinstance(row[0], str) else None

    def set(self, value: str) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    self._stmt(
                        "insert into {table} (slot, payload, updated_at) values (%s, %s, now()) "
                        "on conflict (slot) do update set payload = excluded.payload, updated_at = now()"
                    ),
                    (self.name, value),
                )

    def remove(self) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(self._stmt("delete from {table} where slot = %s"), (self.name,))


__all__ = ["DBSessionSlot", "HAVE_PSYCOPG"]
