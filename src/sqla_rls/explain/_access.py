"""explain_evaluation() — explain why a rule list allows or denies a user."""

from __future__ import annotations

from collections.abc import Sequence

from sqla_rls._types import Decision, Row
from sqla_rls.explain._models import EvaluationExplanation, RuleEvaluation
from sqla_rls.policy._context import UserContext
from sqla_rls.policy._evaluator import trace
from sqla_rls.policy._rules import PermissionRule, rule_to_dict
from sqla_rls.policy._sql import PredicateCompiler

__all__ = ["explain_evaluation"]


def explain_evaluation(
    rules: Sequence[PermissionRule],
    user: UserContext,
    row: Row | None = None,
    *,
    predicate_compiler: PredicateCompiler | None = None,
) -> EvaluationExplanation:
    """Explain how *rules* decide for *user*, optionally against *row*.

    Rules are evaluated exactly as :func:`~sqla_rls.policy.evaluate`
    does; the explanation lists every rule up to the first decisive one.
    An empty list therefore explains as deny by default, although the
    :class:`~sqla_rls.policy.AuthorizationGate` treats an empty list as
    "no restriction".

    Args:
        rules: The rule list of one table operation.
        user: The caller.
        row: Row to evaluate row-dependent rules against.
        predicate_compiler: Needed only for ``customSql`` rules.

    Returns:
        An ``EvaluationExplanation`` with the per-rule trace and verdict.
    """
    steps = trace(rules, user, row, predicate_compiler=predicate_compiler)
    final = steps[-1].decision if steps else Decision.CONTINUE
    return EvaluationExplanation(
        user_repr=repr(user),
        row=dict(row) if row is not None else None,
        rules_found=len(rules),
        evaluations=[
            RuleEvaluation(
                index=step.index,
                kind=step.rule.kind,
                rule=rule_to_dict(step.rule),
                decision=step.decision.value,
            )
            for step in steps
        ],
        allowed=final is Decision.ALLOW,
        deny_by_default=final is Decision.CONTINUE,
    )
