"""Validation, complexity scoring and advisory optimization suggestions."""

from sqla_rls.analyzer._suggest import (
    has_cartesian_join,
    has_inefficient_sort,
    has_nested_loops,
    has_table_scan,
    iter_plan,
    suggest_optimizations,
    unwrap_plan,
)
from sqla_rls.analyzer._validate import (
    check_query,
    complexity,
    filtered_fields,
    has_field,
    has_where_clause,
    validate,
)

__all__ = [
    "check_query",
    "complexity",
    "filtered_fields",
    "has_cartesian_join",
    "has_field",
    "has_inefficient_sort",
    "has_nested_loops",
    "has_table_scan",
    "has_where_clause",
    "iter_plan",
    "suggest_optimizations",
    "unwrap_plan",
    "validate",
]
