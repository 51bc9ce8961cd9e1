"""Query IR — data model for a requested query."""

from sqla_rls.ir._models import (
    CTE,
    AdvancedWindow,
    Aggregate,
    CacheConfig,
    HavingClause,
    OrderBy,
    PivotConfig,
    QueryIR,
    RawExpression,
    RecursiveCTE,
    TransformConfig,
    ValidationRules,
    WhereBetween,
    WhereClause,
    WhereGroup,
    WindowFrame,
    WindowFunction,
)
from sqla_rls.ir._params import parse_query_params

__all__ = [
    "CTE",
    "AdvancedWindow",
    "Aggregate",
    "CacheConfig",
    "HavingClause",
    "OrderBy",
    "PivotConfig",
    "QueryIR",
    "RawExpression",
    "RecursiveCTE",
    "TransformConfig",
    "ValidationRules",
    "WhereBetween",
    "WhereClause",
    "WhereGroup",
    "WindowFrame",
    "WindowFunction",
    "parse_query_params",
]
