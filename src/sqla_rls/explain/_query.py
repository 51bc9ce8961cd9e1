"""explain_query() — show how a query IR would be compiled."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import MetaData, Select
from sqlalchemy.exc import CompileError

from sqla_rls.analyzer._validate import complexity, validate
from sqla_rls.compiler._builder import SelectBuilder, apply_operations
from sqla_rls.compiler._compile import compile_query
from sqla_rls.explain._models import QueryExplanation
from sqla_rls.ir._models import QueryIR

__all__ = ["explain_query"]


def _compile_sql(stmt: Select[Any]) -> str:
    """Compile with literal binds, falling back to bound-parameter SQL."""
    try:
        return str(stmt.compile(compile_kwargs={"literal_binds": True}))
    except (CompileError, NotImplementedError):
        return str(stmt)


def explain_query(
    table: str,
    ir: QueryIR | Mapping[str, Any],
    *,
    metadata: MetaData | None = None,
) -> QueryExplanation:
    """Explain how *ir* would run against *table*.

    Does not execute the query. Validation violations are reported
    rather than raised so an invalid IR can still be inspected.

    Args:
        table: Source table.
        ir: A :class:`QueryIR` or its wire mapping.
        metadata: Optional table definitions used to resolve names.

    Returns:
        A ``QueryExplanation`` with the operation kinds, compiled SQL,
        complexity score and violations.

    Raises:
        UnsupportedFeatureError: The IR uses an unknown operator or type.
    """
    if not isinstance(ir, QueryIR):
        ir = QueryIR.from_dict(ir)
    operations = compile_query(ir)
    builder = SelectBuilder(table, metadata=metadata)
    apply_operations(builder, operations)
    return QueryExplanation(
        table=table,
        operations=[o.kind for o in operations],
        sql=_compile_sql(builder.statement()),
        complexity=complexity(ir),
        violations=validate(ir),
    )
