"""QueryExecutor — validate, cache, execute, authorize and transform."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import Any

from sqlalchemy import (
    FromClause,
    MetaData,
    Select,
    column,
    delete,
    inspect,
    literal_column,
    select,
    table,
    update,
)
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from sqla_rls._transforms import apply_transforms
from sqla_rls._types import Row
from sqla_rls.analyzer._suggest import suggest_optimizations
from sqla_rls.analyzer._validate import check_query
from sqla_rls.cache._cache import QueryCache
from sqla_rls.compiler._builder import build_query
from sqla_rls.config._config import RlsConfig, get_global_config
from sqla_rls.exceptions import OperationNotAllowedError, ValidationError
from sqla_rls.ir._models import QueryIR
from sqla_rls.policy._context import UserContext
from sqla_rls.policy._gate import AuthorizationGate

__all__ = ["PlanProvider", "QueryExecutor", "postgres_plan"]

logger = logging.getLogger("sqla_rls.executor")

PlanProvider = Callable[[AsyncConnection, Select[Any]], Awaitable[Any]]
"""Returns the execution plan of a statement in EXPLAIN JSON shape."""


async def postgres_plan(conn: AsyncConnection, stmt: Select[Any]) -> Any:
    """Plan provider for PostgreSQL: ``EXPLAIN (FORMAT JSON)``.

    The statement is rendered with literal binds, so only statements
    whose parameters have a literal rendering can be explained.
    """
    sql = str(stmt.compile(dialect=conn.dialect, compile_kwargs={"literal_binds": True}))
    result = await conn.exec_driver_sql("EXPLAIN (FORMAT JSON) " + sql)
    plan = result.scalar()
    if isinstance(plan, str):
        plan = json.loads(plan)
    return plan


class QueryExecutor:
    """Run query IRs and record writes against an async engine.

    A read goes through validation, the cache, compilation and
    execution, advisory suggestions, the authorization gate and finally
    the post-query transforms. Cached rows are stored before
    authorization, so a cache entry can serve users with different
    rights.

    Authorization runs only when a gate is configured, a user is passed
    and ``config.enforce_rls`` is on.

    Args:
        engine: Async engine the statements run on.
        gate: Authorization gate; ``None`` disables authorization.
        cache: Result cache; ``None`` disables caching.
        metadata: Table definitions used to resolve names; unknown
            names become lightweight ``table()`` constructs.
        config: Defaults to the global config.
        plan_provider: Produces execution plans for suggestions.
        id_column: Column matched by :meth:`update` and :meth:`delete`.

    Example::

        executor = QueryExecutor(engine, gate=AuthorizationGate(store))
        rows = await executor.query(
            "posts", {"filter": {"status": "published"}, "limit": 20}, user
        )
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        gate: AuthorizationGate | None = None,
        cache: QueryCache | None = None,
        metadata: MetaData | None = None,
        config: RlsConfig | None = None,
        plan_provider: PlanProvider | None = None,
        id_column: str = "id",
    ) -> None:
        self._engine = engine
        self._gate = gate
        self._cache = cache
        self._metadata = metadata
        self._config = config
        self._plan_provider = plan_provider
        self._id_column = id_column

    @property
    def config(self) -> RlsConfig:
        return self._config if self._config is not None else get_global_config()

    @property
    def gate(self) -> AuthorizationGate | None:
        return self._gate

    def _gate_for(self, user: UserContext | None) -> AuthorizationGate | None:
        """The gate to authorize *user* with, or ``None`` when nothing is enforced."""
        if user is None or not self.config.enforce_rls:
            return None
        return self._gate

    def check_table(self, table_name: str, operation: str = "SELECT") -> None:
        """Reject tables outside ``valid_tables`` when the check is enabled.

        Raises:
            OperationNotAllowedError: The table is not in the allow-list.
        """
        cfg = self.config
        if cfg.check_valid_table and cfg.valid_tables and table_name not in cfg.valid_tables:
            raise OperationNotAllowedError(
                table=table_name,
                operation=operation,
                message=f'Invalid table name "{table_name}"',
            )

    def _parse(self, ir: QueryIR | Mapping[str, Any] | None) -> QueryIR:
        if isinstance(ir, QueryIR):
            return ir
        return QueryIR.from_dict(ir or {}, default_limit=self.config.default_limit)

    def _table(self, name: str, columns: Iterable[str] = ()) -> FromClause:
        if self._metadata is not None and name in self._metadata.tables:
            return self._metadata.tables[name]
        schema, _, bare = name.rpartition(".")
        return table(bare, *(column(c) for c in dict.fromkeys(columns)), schema=schema or None)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def query(
        self,
        table_name: str,
        ir: QueryIR | Mapping[str, Any] | None = None,
        user: UserContext | None = None,
    ) -> list[dict[str, Any]]:
        """Run *ir* against *table_name* and return the visible rows.

        Args:
            table_name: Source table.
            ir: A :class:`QueryIR` or its wire mapping.
            user: Caller; ``None`` skips authorization.

        Returns:
            The authorized and transformed rows.

        Raises:
            ValidationError: The IR is malformed or breaks its rules.
            OperationNotAllowedError: Unknown table or no SELECT entry.
            AccessDeniedError: The SELECT rules denied the caller.
        """
        self.check_table(table_name)
        ir = self._parse(ir)
        check_query(ir)

        rows: list[dict[str, Any]] | None = None
        if self._cache is not None and ir.cache is not None:
            rows = await self._cache.get(ir, scope=table_name)
            if rows is not None:
                logger.debug("Cache hit for %r", table_name)

        if rows is None:
            stmt = build_query(table_name, ir, metadata=self._metadata)
            async with self._engine.connect() as conn:
                if ir.validation is not None and ir.validation.suggestions:
                    suggestions = await self._suggest(conn, table_name, stmt, ir)
                    if suggestions:
                        logger.warning(
                            "Query optimization suggestions for %r: %s",
                            table_name,
                            "; ".join(suggestions),
                        )
                result = await conn.execute(stmt)
                rows = [dict(r) for r in result.mappings()]
            if self._cache is not None and ir.cache is not None:
                await self._cache.set(ir, rows, scope=table_name)

        gate = self._gate_for(user)
        if gate is not None and user is not None:
            rows = [
                dict(r)
                for r in await gate.authorize_rows(table_name, "SELECT", rows, user)
            ]
        return apply_transforms(rows, ir.transforms)

    async def suggest(
        self, table_name: str, ir: QueryIR | Mapping[str, Any] | None = None
    ) -> list[str]:
        """Return optimization suggestions for *ir* without running it."""
        ir = self._parse(ir)
        stmt = build_query(table_name, ir, metadata=self._metadata)
        async with self._engine.connect() as conn:
            return await self._suggest(conn, table_name, stmt, ir)

    async def _suggest(
        self, conn: AsyncConnection, table_name: str, stmt: Select[Any], ir: QueryIR
    ) -> list[str]:
        if self._plan_provider is None:
            return []
        try:
            plan = await self._plan_provider(conn, stmt)
            indexed = await conn.run_sync(
                lambda sync_conn: {
                    col
                    for index in inspect(sync_conn).get_indexes(table_name)
                    for col in index.get("column_names") or ()
                    if col
                }
            )
        except Exception:
            logger.warning("Could not analyse plan for %r", table_name, exc_info=True)
            return []
        return suggest_optimizations(plan, ir, indexed_fields=indexed, config=self.config)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _fetch_by_id(self, table_name: str, record_id: Any) -> list[dict[str, Any]]:
        source = self._table(table_name, [self._id_column])
        stmt = (
            select(literal_column("*"))
            .select_from(source)
            .where(source.c[self._id_column] == record_id)
        )
        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            return [dict(r) for r in result.mappings()]

    async def insert(
        self,
        table_name: str,
        records: Sequence[Row],
        user: UserContext | None = None,
    ) -> list[dict[str, Any]]:
        """Insert *records* after authorizing them.

        Returns:
            The records that were written (all of them, or the permitted
            subset with ``on_write_denied="filter"``).

        Raises:
            ValidationError: *records* is empty or holds a non-mapping.
        """
        self.check_table(table_name, "INSERT")
        if (
            isinstance(records, (str, bytes))
            or not records
            or not all(isinstance(r, Mapping) and r for r in records)
        ):
            raise ValidationError(["Invalid request body"])
        allowed = [dict(r) for r in records]
        gate = self._gate_for(user)
        if gate is not None and user is not None:
            allowed = [
                dict(r)
                for r in await gate.authorize_write(table_name, "INSERT", allowed, user)
            ]
        if not allowed:
            return []

        target = self._table(table_name, (k for r in allowed for k in r))
        async with self._engine.begin() as conn:
            await conn.execute(target.insert(), allowed)  # type: ignore[attr-defined]
        logger.debug("Inserted %d record(s) into %r", len(allowed), table_name)
        return allowed

    async def update(
        self,
        table_name: str,
        record_id: Any,
        data: Row,
        user: UserContext | None = None,
    ) -> int:
        """Update the record with *record_id* after authorizing the change.

        Each targeted row is authorized twice: as it is now, and as it
        would look after the update (the existing row overlaid with
        *data*). The write happens only when both pass, so a caller can
        neither touch a row it does not own nor hand a row to someone
        else. With ``on_write_denied="filter"`` a failed check skips the
        write and returns 0.

        Returns:
            The number of rows updated.
        """
        self.check_table(table_name, "UPDATE")
        if not isinstance(data, Mapping) or not data:
            raise ValidationError(["Invalid request body"])
        gate = self._gate_for(user)
        if gate is not None and user is not None:
            existing = await self._fetch_by_id(table_name, record_id)
            proposed = [{**row, **data} for row in existing] or [
                {self._id_column: record_id, **data}
            ]
            for payload in (existing, proposed):
                if not payload:
                    continue
                allowed = await gate.authorize_write(table_name, "UPDATE", payload, user)
                if len(allowed) < len(payload):
                    return 0

        target = self._table(table_name, [self._id_column, *data])
        stmt = (
            update(target)  # type: ignore[arg-type]
            .where(target.c[self._id_column] == record_id)
            .values(dict(data))
        )
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
        return result.rowcount

    async def delete(
        self,
        table_name: str,
        record_id: Any,
        user: UserContext | None = None,
    ) -> int:
        """Delete the record with *record_id* after authorizing the existing rows.

        Returns:
            The number of rows deleted.
        """
        self.check_table(table_name, "DELETE")
        gate = self._gate_for(user)
        if gate is not None and user is not None:
            existing = await self._fetch_by_id(table_name, record_id)
            allowed = await gate.authorize_write(table_name, "DELETE", existing, user)
            if not allowed or len(allowed) < len(existing):
                return 0

        target = self._table(table_name, [self._id_column])
        stmt = delete(target).where(target.c[self._id_column] == record_id)  # type: ignore[arg-type]
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
        return result.rowcount
