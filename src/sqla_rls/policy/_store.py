"""Permission stores — where TablePermissions live between requests."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Protocol, runtime_checkable

from sqlalchemy import Column, DateTime, MetaData, String, Table, Text, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncEngine

from sqla_rls.policy._rules import TablePermissions

__all__ = [
    "MemoryPermissionStore",
    "PermissionStore",
    "SqlPermissionStore",
    "permissions_table",
]

logger = logging.getLogger("sqla_rls.policy")


@runtime_checkable
class PermissionStore(Protocol):
    """Async persistence for per-table permissions."""

    async def get_rules_for_table(self, table: str) -> TablePermissions | None: ...

    async def set_rules_for_table(self, table: str, permissions: TablePermissions) -> None: ...

    async def delete_rules_for_table(self, table: str) -> None: ...


class MemoryPermissionStore:
    """Dict-backed store for tests and embedding.

    Example::

        store = MemoryPermissionStore({"posts": DEFAULT_TABLE_PERMISSIONS})
        await store.get_rules_for_table("posts")
    """

    def __init__(self, initial: dict[str, TablePermissions] | None = None) -> None:
        self._tables: dict[str, TablePermissions] = dict(initial or {})
        self._lock = asyncio.Lock()

    async def get_rules_for_table(self, table: str) -> TablePermissions | None:
        async with self._lock:
            return self._tables.get(table)

    async def set_rules_for_table(self, table: str, permissions: TablePermissions) -> None:
        async with self._lock:
            self._tables[table] = permissions

    async def delete_rules_for_table(self, table: str) -> None:
        async with self._lock:
            self._tables.pop(table, None)

    def tables(self) -> list[str]:
        return sorted(self._tables)


def permissions_table(metadata: MetaData, name: str = "table_permissions") -> Table:
    """Declare the permissions table on *metadata*."""
    return Table(
        name,
        metadata,
        Column("table_name", String(255), primary_key=True),
        Column("permissions", Text, nullable=False),
        Column("created_at", DateTime, server_default=func.current_timestamp(), nullable=False),
        Column("updated_at", DateTime, server_default=func.current_timestamp(), nullable=False),
    )


class SqlPermissionStore:
    """Store permissions as JSON text in a ``table_permissions`` table.

    The table is created on first use. Every read goes to the database;
    nothing is cached in process.

    Args:
        engine: Async engine the permissions table lives in.
        table_name: Name of the permissions table.

    Example::

        engine = create_async_engine("sqlite+aiosqlite:///app.db")
        store = SqlPermissionStore(engine)
        await store.set_rules_for_table("posts", DEFAULT_TABLE_PERMISSIONS)
    """

    def __init__(self, engine: AsyncEngine, *, table_name: str = "table_permissions") -> None:
        self._engine = engine
        self._metadata = MetaData()
        self._table = permissions_table(self._metadata, table_name)
        self._ready = False
        self._init_lock = asyncio.Lock()

    async def _ensure_table(self) -> None:
        if self._ready:
            return
        async with self._init_lock:
            if self._ready:
                return
            async with self._engine.begin() as conn:
                await conn.run_sync(self._metadata.create_all)
            self._ready = True
            logger.debug("Permissions table %r ready", self._table.name)

    async def get_rules_for_table(self, table: str) -> TablePermissions | None:
        await self._ensure_table()
        stmt = select(self._table.c.permissions).where(self._table.c.table_name == table)
        async with self._engine.connect() as conn:
            raw = (await conn.execute(stmt)).scalar_one_or_none()
        if raw is None:
            return None
        return TablePermissions.from_dict(json.loads(raw))

    async def set_rules_for_table(self, table: str, permissions: TablePermissions) -> None:
        await self._ensure_table()
        payload = json.dumps(permissions.to_dict())
        t = self._table
        async with self._engine.begin() as conn:
            result = await conn.execute(
                update(t)
                .where(t.c.table_name == table)
                .values(permissions=payload, updated_at=func.current_timestamp())
            )
            if result.rowcount == 0:
                await conn.execute(t.insert().values(table_name=table, permissions=payload))

    async def delete_rules_for_table(self, table: str) -> None:
        await self._ensure_table()
        async with self._engine.begin() as conn:
            await conn.execute(delete(self._table).where(self._table.c.table_name == table))
