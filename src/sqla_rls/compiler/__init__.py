"""Query compiler — QueryIR to ordered clause applications and SQLAlchemy Select."""

from sqla_rls.compiler._builder import QueryBuilder, SelectBuilder, apply_operations, build_query
from sqla_rls.compiler._compile import WHERE_OPERATORS, compile_query
from sqla_rls.compiler._operations import CLAUSE_STAGES, Operation, stage_of
from sqla_rls.compiler._windows import (
    AGGREGATE_TYPES,
    WINDOW_TYPES,
    check_identifier,
    frame_bounds,
    function_call,
    over_clause,
    window_fragment,
)

__all__ = [
    "AGGREGATE_TYPES",
    "CLAUSE_STAGES",
    "WHERE_OPERATORS",
    "WINDOW_TYPES",
    "Operation",
    "QueryBuilder",
    "SelectBuilder",
    "apply_operations",
    "build_query",
    "check_identifier",
    "compile_query",
    "frame_bounds",
    "function_call",
    "over_clause",
    "stage_of",
    "window_fragment",
]
