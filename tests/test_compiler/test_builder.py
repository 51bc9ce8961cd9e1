"""Tests for SelectBuilder — SQL shape and execution on aiosqlite."""

from __future__ import annotations

import re
from typing import Any

import pytest
from sqlalchemy import MetaData, Select
from sqlalchemy.ext.asyncio import AsyncEngine

from sqla_rls.compiler._builder import QueryBuilder, SelectBuilder, apply_operations, build_query
from sqla_rls.compiler._compile import compile_query
from sqla_rls.exceptions import UnsupportedFeatureError, ValidationError
from sqla_rls.ir._models import QueryIR


def _sql(stmt: Select[Any]) -> str:
    return re.sub(r"\s+", " ", str(stmt)).strip()


async def _rows(engine: AsyncEngine, stmt: Select[Any]) -> list[dict[str, Any]]:
    async with engine.connect() as conn:
        result = await conn.execute(stmt)
        return [dict(r) for r in result.mappings()]


def _build(table: str, wire: dict[str, Any], metadata: MetaData | None = None) -> Select[Any]:
    return build_query(table, QueryIR.from_dict(wire), metadata=metadata)


# ---------------------------------------------------------------------------
# Protocol and replay
# ---------------------------------------------------------------------------


class _Recorder:
    """Records every builder call instead of building anything."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def __getattr__(self, name: str) -> Any:
        def record(**kwargs: Any) -> None:
            self.calls.append((name, kwargs))

        return record


class TestApplyOperations:
    def test_select_builder_satisfies_protocol(self) -> None:
        assert isinstance(SelectBuilder("employees"), QueryBuilder)

    def test_replays_in_order(self) -> None:
        recorder = _Recorder()
        ir = QueryIR.from_dict({"filter": {"dept": "eng"}, "orderBy": [{"field": "id"}]})
        apply_operations(recorder, compile_query(ir))  # type: ignore[arg-type]
        assert [name for name, _ in recorder.calls] == ["where_equals", "order_by", "limit"]
        assert recorder.calls[1][1] == {"field": "id", "direction": "asc", "nulls": None}


# ---------------------------------------------------------------------------
# Statement shape
# ---------------------------------------------------------------------------


class TestStatementShape:
    def test_select_star_with_filter_and_limit(self) -> None:
        sql = _sql(_build("employees", {"filter": {"dept": "eng"}}))
        assert sql.startswith("SELECT * FROM employees WHERE dept = :dept_1")
        assert "LIMIT" in sql

    def test_values_are_bound_not_inlined(self) -> None:
        sql = _sql(_build("employees", {"filter": {"name": "x' OR '1'='1"}}))
        assert "OR '1'" not in sql

    def test_group_by_projects_group_columns_then_aggregates(self) -> None:
        sql = _sql(
            _build(
                "employees",
                {"groupBy": ["dept"], "aggregates": [{"type": "count", "field": "id"}]},
            )
        )
        assert sql.startswith("SELECT dept, count(id) AS count_id FROM employees")
        assert "GROUP BY dept" in sql

    def test_window_columns_follow_star(self) -> None:
        sql = _sql(
            _build(
                "employees",
                {"windowFunctions": [{"type": "rank", "alias": "r", "orderBy": [{"field": "salary"}]}]},
            )
        )
        assert sql.startswith("SELECT *, RANK() OVER (ORDER BY salary asc) AS r FROM employees")

    def test_raw_placeholders_become_named_binds(self) -> None:
        sql = _sql(
            _build("employees", {"rawExpressions": [{"sql": "salary > ? AND dept = ?", "bindings": [1, "eng"]}]})
        )
        assert "(salary > :raw_1 AND dept = :raw_2)" in sql

    def test_bare_colon_in_raw_sql_is_not_a_bind(self) -> None:
        stmt = _build(
            "employees", {"rawExpressions": [{"sql": "name <> 'a:b' AND id > ?", "bindings": [0]}]}
        )
        params = stmt.compile().params
        assert "raw_1" in params
        assert "b" not in params

    def test_placeholder_count_mismatch(self) -> None:
        with pytest.raises(ValidationError, match="placeholder"):
            _build("employees", {"rawExpressions": [{"sql": "a = ? AND b = ?", "bindings": [1]}]})

    def test_nulls_ordering(self) -> None:
        sql = _sql(
            _build("employees", {"orderBy": [{"field": "manager_id", "direction": "desc", "nulls": "last"}]})
        )
        assert "ORDER BY manager_id DESC NULLS LAST" in sql

    def test_schema_qualified_table(self) -> None:
        sql = _sql(_build("hr.employees", {}))
        assert "FROM hr.employees" in sql

    def test_bad_table_name(self) -> None:
        with pytest.raises(UnsupportedFeatureError):
            _build("employees; DROP TABLE x", {})

    def test_recursive_cte_needs_columns(self) -> None:
        wire = {
            "recursiveCtes": [
                {
                    "name": "chain",
                    "table": "unknown_table",
                    "initialQuery": {"filter": {"n": 1}},
                    "recursiveQuery": {"filter": {"n": 2}},
                }
            ]
        }
        with pytest.raises(UnsupportedFeatureError, match="explicit columns"):
            _build("chain", wire)


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class TestExecution:
    """Compiled statements run on SQLite and return the expected rows."""

    @pytest.mark.asyncio
    async def test_filter_and_order(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build(
                "employees",
                {"filter": {"dept": "eng"}, "orderBy": [{"field": "salary", "direction": "desc"}]},
            ),
        )
        assert [r["name"] for r in rows] == ["alice", "bob"]

    @pytest.mark.asyncio
    async def test_filter_none_is_null(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine, _build("employees", {"filter": {"manager_id": None}, "orderBy": [{"field": "id"}]})
        )
        assert [r["name"] for r in rows] == ["alice", "erin"]

    @pytest.mark.asyncio
    async def test_where_in_and_null(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build("employees", {"whereIn": {"dept": ["ops", "sales"]}, "whereNull": ["manager_id"]}),
        )
        assert [r["name"] for r in rows] == ["erin"]

    @pytest.mark.asyncio
    async def test_where_not_in_and_between(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build(
                "employees",
                {
                    "whereNotIn": {"dept": ["sales"]},
                    "whereBetween": [{"field": "salary", "value": [85, 110]}],
                    "orderBy": [{"field": "id"}],
                },
            ),
        )
        assert [r["name"] for r in rows] == ["bob", "carol"]

    @pytest.mark.asyncio
    async def test_limit_and_offset(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine, _build("employees", {"orderBy": [{"field": "id"}], "limit": 2, "offset": 1})
        )
        assert [r["id"] for r in rows] == [2, 3]

    @pytest.mark.asyncio
    async def test_group_by_having(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build(
                "employees",
                {
                    "groupBy": ["dept"],
                    "aggregates": [{"type": "count", "field": "id"}],
                    "having": [{"field": "count_id", "operator": ">", "value": 1}],
                    "orderBy": [{"field": "dept"}],
                },
            ),
        )
        assert rows == [{"dept": "eng", "count_id": 2}, {"dept": "ops", "count_id": 2}]

    @pytest.mark.asyncio
    async def test_aggregate_without_group_by(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine, _build("employees", {"aggregates": [{"type": "max", "field": "salary", "alias": "top"}]})
        )
        assert rows == [{"top": 120}]

    @pytest.mark.asyncio
    async def test_simple_window(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build(
                "employees",
                {
                    "windowFunctions": [
                        {
                            "type": "row_number",
                            "alias": "rn",
                            "partitionBy": ["dept"],
                            "orderBy": [{"field": "salary", "direction": "desc"}],
                        }
                    ],
                    "orderBy": [{"field": "id"}],
                },
            ),
        )
        assert [(r["name"], r["rn"]) for r in rows] == [
            ("alice", 1),
            ("bob", 2),
            ("carol", 1),
            ("dave", 2),
            ("erin", 1),
        ]

    @pytest.mark.asyncio
    async def test_advanced_window_frame(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build(
                "employees",
                {
                    "advancedWindows": [
                        {
                            "type": "sum",
                            "alias": "running",
                            "field": "salary",
                            "over": {
                                "partitionBy": ["dept"],
                                "orderBy": [{"field": "salary"}],
                                "frame": {"type": "ROWS", "start": "UNBOUNDED PRECEDING"},
                            },
                        }
                    ],
                    "orderBy": [{"field": "id"}],
                },
            ),
        )
        assert [r["running"] for r in rows] == [220, 100, 170, 80, 70]

    @pytest.mark.asyncio
    async def test_advanced_window_filter(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build(
                "employees",
                {
                    "advancedWindows": [
                        {
                            "type": "count",
                            "alias": "well_paid",
                            "field": "id",
                            "over": {"partitionBy": ["dept"]},
                            "filter": [{"field": "salary", "operator": ">", "value": 85}],
                        }
                    ],
                    "orderBy": [{"field": "id"}],
                },
            ),
        )
        assert [r["well_paid"] for r in rows] == [2, 2, 1, 1, 0]

    @pytest.mark.asyncio
    async def test_nested_where_groups(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build(
                "employees",
                {
                    "whereGroups": [
                        {
                            "type": "AND",
                            "clauses": [
                                {
                                    "type": "AND",
                                    "clauses": [
                                        {"field": "dept", "operator": "=", "value": "eng"},
                                        {"field": "salary", "operator": ">", "value": 110},
                                    ],
                                },
                                {"field": "dept", "operator": "=", "value": "sales", "boolean": "OR"},
                            ],
                        }
                    ],
                    "orderBy": [{"field": "id"}],
                },
            ),
        )
        assert [r["name"] for r in rows] == ["alice", "erin"]

    @pytest.mark.asyncio
    async def test_raw_expression_with_list_binding(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build(
                "employees",
                {
                    "rawExpressions": [{"sql": "dept IN ?", "bindings": [["eng", "sales"]]}],
                    "orderBy": [{"field": "id"}],
                },
            ),
        )
        assert [r["name"] for r in rows] == ["alice", "bob", "erin"]

    @pytest.mark.asyncio
    async def test_where_exists(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build(
                "employees",
                {
                    "whereExists": [
                        {
                            "sql": "SELECT 1 FROM employees AS m "
                            "WHERE m.id = employees.manager_id AND m.dept = ?",
                            "bindings": ["eng"],
                        }
                    ],
                    "orderBy": [{"field": "id"}],
                },
            ),
        )
        assert [r["name"] for r in rows] == ["bob", "carol"]

    @pytest.mark.asyncio
    async def test_cte(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build(
                "eng_staff",
                {
                    "ctes": [
                        {"name": "eng_staff", "table": "employees", "query": {"filter": {"dept": "eng"}}}
                    ],
                    "orderBy": [{"field": "id"}],
                },
            ),
        )
        assert [r["name"] for r in rows] == ["alice", "bob"]

    @pytest.mark.asyncio
    async def test_cte_wrapped_in_params(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build(
                "top",
                {
                    "ctes": [
                        {
                            "name": "top",
                            "table": "employees",
                            "columns": ["name", "salary"],
                            "query": {"params": {"whereRaw": [{"field": "salary", "operator": ">=", "value": 100}]}},
                        }
                    ],
                    "orderBy": [{"field": "salary", "direction": "desc"}],
                },
            ),
        )
        assert rows == [{"name": "alice", "salary": 120}, {"name": "bob", "salary": 100}]

    @pytest.mark.asyncio
    async def test_recursive_cte(self, engine: AsyncEngine) -> None:
        rows = await _rows(
            engine,
            _build(
                "chain",
                {
                    "recursiveCtes": [
                        {
                            "name": "chain",
                            "table": "numbers",
                            "columns": ["n"],
                            "recursiveColumns": ["n + 10"],
                            "unionAll": True,
                            "initialQuery": {"filter": {"n": 1}},
                            "recursiveQuery": {
                                "whereRaw": [{"field": "n", "operator": "<", "value": 30}]
                            },
                        }
                    ],
                    "orderBy": [{"field": "n"}],
                },
            ),
        )
        assert [r["n"] for r in rows] == [1, 11, 21, 31]

    @pytest.mark.asyncio
    async def test_recursive_cte_columns_from_metadata(
        self, engine: AsyncEngine, schema: MetaData
    ) -> None:
        stmt = _build(
            "chain",
            {
                "recursiveCtes": [
                    {
                        "name": "chain",
                        "table": "numbers",
                        "recursiveColumns": ["n * 2"],
                        "initialQuery": {"filter": {"n": 3}},
                        "recursiveQuery": {
                            "whereRaw": [{"field": "n", "operator": "<", "value": 20}]
                        },
                    }
                ],
                "orderBy": [{"field": "n"}],
            },
            metadata=schema,
        )
        assert "WITH RECURSIVE chain(n)" in _sql(stmt)
        rows = await _rows(engine, stmt)
        assert [r["n"] for r in rows] == [3, 6, 12, 24]
