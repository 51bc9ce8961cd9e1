"""Assertion helpers for testing compiled queries and rule lists."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqla_rls._types import Row
from sqla_rls.compiler._operations import CLAUSE_STAGES, Operation
from sqla_rls.explain._access import explain_evaluation
from sqla_rls.explain._query import explain_query
from sqla_rls.ir._models import QueryIR
from sqla_rls.policy._context import UserContext
from sqla_rls.policy._rules import PermissionRule

__all__ = [
    "assert_allowed",
    "assert_clause_order",
    "assert_denied",
    "assert_sql_contains",
]


def assert_clause_order(
    operations: Sequence[Operation], expected: Sequence[str] | None = None
) -> None:
    """Assert that *operations* never go back to an earlier clause stage.

    With *expected*, also assert the exact sequence of operation kinds.

    Example::

        ops = compile_query(ir)
        assert_clause_order(ops, ["where_equals", "order_by", "limit"])
    """
    kinds = [o.kind for o in operations]
    if expected is not None and kinds != list(expected):
        raise AssertionError(f"expected operations {list(expected)!r}, got {kinds!r}")
    positions = [CLAUSE_STAGES.index(o.stage) for o in operations]
    for i in range(1, len(positions)):
        if positions[i] < positions[i - 1]:
            raise AssertionError(
                f"operation {kinds[i]!r} (stage {operations[i].stage!r}) applied after "
                f"{kinds[i - 1]!r} (stage {operations[i - 1].stage!r})"
            )


def assert_allowed(
    rules: Sequence[PermissionRule], user: UserContext, row: Row | None = None
) -> None:
    """Assert that *rules* allow *user* (optionally for *row*).

    Example::

        assert_allowed([RoleRule(("admin",))], make_admin())
    """
    explanation = explain_evaluation(rules, user, row)
    if not explanation.allowed:
        raise AssertionError(f"expected rules to allow, but they denied:\n{explanation}")


def assert_denied(
    rules: Sequence[PermissionRule], user: UserContext, row: Row | None = None
) -> None:
    """Assert that *rules* deny *user* (optionally for *row*).

    The inverse of ``assert_allowed``; covers explicit denial and
    deny by default.

    Example::

        assert_denied([AuthRule()], make_guest())
    """
    explanation = explain_evaluation(rules, user, row)
    if explanation.allowed:
        raise AssertionError(f"expected rules to deny, but they allowed:\n{explanation}")


def assert_sql_contains(table: str, ir: QueryIR | dict[str, Any], *, text: str) -> None:
    """Assert that the compiled SQL of *ir* on *table* contains *text*.

    Useful for structural tests that need no database connection.

    Example::

        assert_sql_contains("orders", {"whereNull": ["shipped_at"]}, text="IS NULL")
    """
    sql = explain_query(table, ir).sql
    if text not in sql:
        raise AssertionError(f"{text!r} not found in compiled SQL:\n{sql}")
