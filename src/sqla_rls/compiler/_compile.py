"""compile_query() — turn a QueryIR into an ordered operation sequence."""

from __future__ import annotations

import json
import logging

from sqla_rls.compiler._operations import Operation
from sqla_rls.compiler._windows import (
    AGGREGATE_TYPES,
    WINDOW_TYPES,
    check_identifier,
    window_fragment,
)
from sqla_rls.exceptions import UnsupportedFeatureError, ValidationError
from sqla_rls.ir._models import CTE, QueryIR, RecursiveCTE, WhereClause, WhereGroup

__all__ = ["WHERE_OPERATORS", "compile_query"]

logger = logging.getLogger("sqla_rls.compiler")

WHERE_OPERATORS: frozenset[str] = frozenset(
    {
        "=",
        "!=",
        "<>",
        "<",
        "<=",
        ">",
        ">=",
        "like",
        "ilike",
        "not like",
        "in",
        "not in",
        "between",
        "is null",
        "is not null",
    }
)


def compile_query(ir: QueryIR) -> list[Operation]:
    """Compile *ir* into clause applications, in the fixed clause order.

    No I/O happens here; replay the result against a
    :class:`~sqla_rls.compiler.QueryBuilder` with
    :func:`~sqla_rls.compiler.apply_operations`.

    Args:
        ir: The parsed query.

    Returns:
        The operation list. Kinds always appear in
        :data:`~sqla_rls.compiler.CLAUSE_STAGES` order.

    Raises:
        UnsupportedFeatureError: Unknown aggregate, window or operator.
        ValidationError: Duplicate window aliases or CTE names.

    Example::

        ops = compile_query(QueryIR.from_dict({"filter": {"status": "active"}}))
        [op.kind for op in ops]
        # ['where_equals', 'limit']
    """
    _check_unique(ir)
    ops: list[Operation] = []

    for cte in ir.ctes:
        ops.append(_compile_cte(cte))
    for rcte in ir.recursive_ctes:
        ops.append(_compile_recursive_cte(rcte))

    for wf in ir.window_functions:
        ops.append(
            Operation(
                "select_window",
                {"alias": check_identifier(wf.alias), "fragment": window_fragment(wf)},
            )
        )
    for aw in ir.advanced_windows:
        check_identifier(aw.alias)
        if aw.type not in WINDOW_TYPES:
            raise UnsupportedFeatureError(f"Unsupported window function type: {aw.type!r}")
        for clause in aw.filter:
            _check_operator(clause.operator, "advancedWindows.filter")
        ops.append(Operation("select_advanced_window", {"window": aw}))

    if ir.filter:
        ops.append(Operation("where_equals", {"values": dict(ir.filter)}))

    for expr in ir.raw_expressions:
        ops.append(Operation("where_raw", {"sql": expr.sql, "bindings": expr.bindings}))

    for agg in ir.aggregates:
        if agg.type not in AGGREGATE_TYPES:
            raise UnsupportedFeatureError(f"Unsupported aggregate type: {agg.type!r}")
        ops.append(
            Operation(
                "aggregate",
                {"type": agg.type, "field": agg.field, "alias": agg.column_name},
            )
        )

    for clause in ir.where_raw:
        _check_operator(clause.operator, "whereRaw")
        ops.append(
            Operation(
                "where",
                {"field": clause.field, "operator": clause.operator, "value": clause.value},
            )
        )

    for between in ir.where_between:
        ops.append(
            Operation(
                "where_between",
                {"field": between.field, "low": between.low, "high": between.high},
            )
        )

    for name in ir.where_null:
        ops.append(Operation("where_null", {"field": name}))
    for name in ir.where_not_null:
        ops.append(Operation("where_not_null", {"field": name}))

    for name, values in ir.where_in.items():
        ops.append(Operation("where_in", {"field": name, "values": values}))
    for name, values in ir.where_not_in.items():
        ops.append(Operation("where_not_in", {"field": name, "values": values}))

    for expr in ir.where_exists:
        ops.append(Operation("where_exists", {"sql": expr.sql, "bindings": expr.bindings}))

    for group in ir.where_groups:
        _check_group(group)
        if group.clauses:
            ops.append(Operation("where_group", {"group": group}))

    if ir.group_by:
        ops.append(Operation("group_by", {"fields": ir.group_by}))

    for having in ir.having:
        _check_operator(having.operator, "having")
        ops.append(
            Operation(
                "having",
                {"field": having.field, "operator": having.operator, "value": having.value},
            )
        )

    for order in ir.order_by:
        if order.direction not in ("asc", "desc"):
            raise UnsupportedFeatureError(f"Unsupported sort direction: {order.direction!r}")
        ops.append(
            Operation(
                "order_by",
                {"field": order.field, "direction": order.direction, "nulls": order.nulls},
            )
        )

    if ir.limit is not None:
        ops.append(Operation("limit", {"count": ir.limit}))
    if ir.offset:
        ops.append(Operation("offset", {"count": ir.offset}))

    return ops


def _compile_cte(cte: CTE) -> Operation:
    return Operation(
        "with_cte",
        {
            "name": check_identifier(cte.name),
            "operations": tuple(compile_query(cte.query)),
            "columns": cte.columns,
            "table": cte.table,
        },
    )


def _compile_recursive_cte(cte: RecursiveCTE) -> Operation:
    if not _references(cte.recursive_query, cte.recursive_table, cte.name):
        logger.warning(
            "Recursive CTE %r: recursive query does not reference the CTE by name",
            cte.name,
        )
    return Operation(
        "with_recursive_cte",
        {
            "name": check_identifier(cte.name),
            "initial": tuple(compile_query(cte.initial_query)),
            "recursive": tuple(compile_query(cte.recursive_query)),
            "union_all": cte.union_all,
            "columns": cte.columns,
            "table": cte.table,
            "recursive_table": cte.recursive_table,
            "recursive_columns": cte.recursive_columns,
        },
    )


def _references(ir: QueryIR, source: str | None, name: str) -> bool:
    if source is None or source == name:
        return True
    rendered = json.dumps(ir.to_dict(), default=str)
    return name in rendered


def _check_unique(ir: QueryIR) -> None:
    violations: list[str] = []
    seen: set[str] = set()
    for alias in [w.alias for w in ir.window_functions] + [w.alias for w in ir.advanced_windows]:
        if alias in seen:
            violations.append(f"Duplicate window alias: {alias}")
        seen.add(alias)
    names: set[str] = set()
    for name in [c.name for c in ir.ctes] + [c.name for c in ir.recursive_ctes]:
        if name in names:
            violations.append(f"Duplicate CTE name: {name}")
        names.add(name)
    if violations:
        raise ValidationError(violations)


def _check_operator(operator: str, where: str) -> None:
    if operator not in WHERE_OPERATORS:
        raise UnsupportedFeatureError(f"{where}: unsupported operator {operator!r}")


def _check_group(group: WhereGroup) -> None:
    for member in group.clauses:
        if isinstance(member, WhereClause):
            _check_operator(member.operator, "whereGroups")
        else:
            _check_group(member)

