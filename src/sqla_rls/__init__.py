"""sqla-rls — JSON query IR compiled to SQLAlchemy 2.0, with row-level security.

A query arrives as a JSON-shaped IR (filters, aggregates, window
functions, CTEs, pagination), is validated and compiled into an ordered
list of clause applications, replayed into a SQLAlchemy ``Select`` and
executed. Per-table permission rules then decide which rows the caller
may see, and writes are authorized before they are issued.

Example::

    from sqla_rls import AuthorizationGate, MemoryPermissionStore, QueryExecutor

    executor = QueryExecutor(engine, gate=AuthorizationGate(MemoryPermissionStore(perms)))
    rows = await executor.query(
        "posts",
        {"filter": {"status": "published"}, "orderBy": [{"field": "id"}], "limit": 20},
        user,
    )
"""

from importlib.metadata import PackageNotFoundError, version

from sqla_rls._transforms import apply_transforms
from sqla_rls._types import Decision
from sqla_rls.analyzer._suggest import suggest_optimizations
from sqla_rls.analyzer._validate import check_query, complexity, validate
from sqla_rls.cache._cache import QueryCache
from sqla_rls.cache._store import MemoryStore, RedisStore
from sqla_rls.compiler._builder import SelectBuilder, apply_operations, build_query
from sqla_rls.compiler._compile import compile_query
from sqla_rls.compiler._operations import Operation
from sqla_rls.config._config import RlsConfig, configure
from sqla_rls.exceptions import (
    AccessDeniedError,
    MissingContextError,
    OperationNotAllowedError,
    RlsError,
    UnsupportedFeatureError,
    ValidationError,
)
from sqla_rls.executor._executor import QueryExecutor
from sqla_rls.ir._models import QueryIR
from sqla_rls.ir._params import parse_query_params
from sqla_rls.policy._context import UserContext
from sqla_rls.policy._evaluator import evaluate
from sqla_rls.policy._gate import AuthorizationGate
from sqla_rls.policy._rules import DEFAULT_TABLE_PERMISSIONS, TablePermissions, parse_rule
from sqla_rls.policy._sql import SqlPredicateCompiler
from sqla_rls.policy._store import MemoryPermissionStore, SqlPermissionStore

try:
    __version__ = version("sqla-rls")
except PackageNotFoundError:
    __version__ = "dev"

__all__ = [
    "__version__",
    "DEFAULT_TABLE_PERMISSIONS",
    "AccessDeniedError",
    "AuthorizationGate",
    "Decision",
    "MemoryPermissionStore",
    "MemoryStore",
    "MissingContextError",
    "Operation",
    "OperationNotAllowedError",
    "QueryCache",
    "QueryExecutor",
    "QueryIR",
    "RedisStore",
    "RlsConfig",
    "RlsError",
    "SelectBuilder",
    "SqlPermissionStore",
    "SqlPredicateCompiler",
    "TablePermissions",
    "UnsupportedFeatureError",
    "UserContext",
    "ValidationError",
    "apply_operations",
    "apply_transforms",
    "build_query",
    "check_query",
    "compile_query",
    "complexity",
    "configure",
    "evaluate",
    "parse_query_params",
    "parse_rule",
    "suggest_optimizations",
    "validate",
]
