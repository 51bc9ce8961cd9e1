"""Rule evaluation — first decisive rule wins, default deny."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqla_rls._types import Decision, Row, strict_equals
from sqla_rls.exceptions import MissingContextError, UnsupportedFeatureError
from sqla_rls.policy._context import UserContext
from sqla_rls.policy._rules import (
    AuthRule,
    CustomSqlRule,
    FieldCheck,
    FieldCheckRule,
    GuestRule,
    LabelsRule,
    PermissionRule,
    PrivateRule,
    PublicRule,
    RoleRule,
    StaticRule,
    TeamsRule,
)
from sqla_rls.policy._sql import PredicateCompiler, context_placeholders

__all__ = ["RuleTrace", "decide", "evaluate", "has_field_check", "trace"]


@dataclass(frozen=True, slots=True)
class RuleTrace:
    """One evaluated rule: its position, the rule and what it decided."""

    index: int
    rule: PermissionRule
    decision: Decision


def _check_field(check: FieldCheck, user: UserContext, row: Row | None) -> Decision:
    if row is None:
        return Decision.CONTINUE
    actual = row.get(check.field)
    if check.value_type == "userContext":
        expected = user.lookup(check.value, None)
        if expected is None:
            return Decision.CONTINUE
    else:
        expected = check.value

    if check.operator in ("===", "!=="):
        equal = strict_equals(actual, expected)
        matched = equal if check.operator == "===" else not equal
    else:
        if isinstance(expected, (str, bytes)) or not isinstance(
            expected, (list, tuple, set, frozenset)
        ):
            return Decision.CONTINUE
        member = any(strict_equals(actual, candidate) for candidate in expected)
        matched = member if check.operator == "in" else not member
    return Decision.ALLOW if matched else Decision.CONTINUE


def _check_custom_sql(
    rule: CustomSqlRule,
    user: UserContext,
    row: Row | None,
    compiler: PredicateCompiler | None,
) -> Decision:
    context: dict[str, Any] = {}
    for key in context_placeholders(rule.template):
        value = user.lookup(key, None)
        if value is None:
            raise MissingContextError(key=key)
        context[key] = value
    if compiler is None:
        raise UnsupportedFeatureError("customSql rules need a PredicateCompiler")
    predicate = compiler.compile_predicate(rule.template, context)
    return Decision.ALLOW if predicate(row or {}) else Decision.CONTINUE


def decide(
    rule: PermissionRule,
    user: UserContext,
    row: Row | None = None,
    *,
    predicate_compiler: PredicateCompiler | None = None,
) -> Decision:
    """Return the decision of a single rule.

    ``auth`` and ``guest`` are complementary: exactly one of them can
    allow for a given user, and the other continues. A ``role`` rule
    that does not match denies.

    Raises:
        MissingContextError: A customSql placeholder has no context value.
        UnsupportedFeatureError: customSql without a compiler, or an
            unknown rule type.
    """
    if isinstance(rule, PublicRule):
        return Decision.ALLOW
    if isinstance(rule, PrivateRule):
        return Decision.DENY
    if isinstance(rule, RoleRule):
        if user.role is not None and user.role in rule.roles:
            return Decision.ALLOW
        return Decision.DENY
    if isinstance(rule, AuthRule):
        return Decision.CONTINUE if user.is_guest else Decision.ALLOW
    if isinstance(rule, GuestRule):
        return Decision.ALLOW if user.is_guest else Decision.CONTINUE
    if isinstance(rule, LabelsRule):
        return Decision.ALLOW if user.labels & rule.labels else Decision.CONTINUE
    if isinstance(rule, TeamsRule):
        return Decision.ALLOW if user.teams & rule.teams else Decision.CONTINUE
    if isinstance(rule, StaticRule):
        return Decision.ALLOW if rule.value else Decision.DENY
    if isinstance(rule, FieldCheckRule):
        return _check_field(rule.check, user, row)
    if isinstance(rule, CustomSqlRule):
        return _check_custom_sql(rule, user, row, predicate_compiler)
    raise UnsupportedFeatureError(f"Unknown permission rule: {rule!r}")


def trace(
    rules: Sequence[PermissionRule],
    user: UserContext,
    row: Row | None = None,
    *,
    predicate_compiler: PredicateCompiler | None = None,
) -> list[RuleTrace]:
    """Evaluate *rules* in order and return every decision up to the first decisive one."""
    steps: list[RuleTrace] = []
    for index, rule in enumerate(rules):
        decision = decide(rule, user, row, predicate_compiler=predicate_compiler)
        steps.append(RuleTrace(index=index, rule=rule, decision=decision))
        if decision is not Decision.CONTINUE:
            break
    return steps


def evaluate(
    rules: Sequence[PermissionRule],
    user: UserContext,
    row: Row | None = None,
    *,
    predicate_compiler: PredicateCompiler | None = None,
) -> bool:
    """Return True if *rules* allow *user* (optionally for *row*).

    Rules are scanned in order; the first ALLOW or DENY wins. When every
    rule continues, the result is deny.

    Example::

        rules = [parse_rule({"allow": "role", "roles": ["admin"]})]
        evaluate(rules, UserContext(user_id=1, role="admin"))  # True
        evaluate(rules, UserContext(user_id=2, role="user"))   # False
    """
    steps = trace(rules, user, row, predicate_compiler=predicate_compiler)
    return bool(steps) and steps[-1].decision is Decision.ALLOW


def has_field_check(rules: Sequence[PermissionRule]) -> bool:
    """True if any rule needs a row to decide."""
    return any(isinstance(rule, FieldCheckRule) for rule in rules)
