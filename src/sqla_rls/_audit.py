"""Audit logging for permission decisions."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqla_rls.policy._context import UserContext
    from sqla_rls.policy._evaluator import RuleTrace

__all__ = ["log_rule_trace", "log_table_decision"]

logger = logging.getLogger("sqla_rls")


def log_table_decision(
    *,
    table: str,
    operation: str,
    user: UserContext,
    outcome: str,
    rule_count: int | None = None,
    kept: int | None = None,
    total: int | None = None,
) -> None:
    """Log the outcome of one authorization decision.

    Logging levels:
    - INFO: Summary (table, operation, outcome, rule count)
    - DEBUG: Row counts for row-level filtering
    - WARNING: Table-level denial (no entry, or the rules denied)

    Args:
        table: Table being accessed.
        operation: ``SELECT``, ``INSERT``, ``UPDATE`` or ``DELETE``.
        user: Caller the decision was made for.
        outcome: ``"allow"``, ``"deny"``, ``"not_allowed"`` or ``"filter"``.
        rule_count: Number of rules in the entry, if one existed.
        kept: Rows kept by row-level filtering.
        total: Rows considered by row-level filtering.

    Example::

        log_table_decision(
            table="posts", operation="SELECT", user=user,
            outcome="filter", rule_count=2, kept=3, total=5,
        )
    """
    if outcome in ("deny", "not_allowed"):
        logger.warning(
            "Table-level denial: %s on %r for user %r (%s)",
            operation,
            table,
            user.user_id,
            "no permission entry" if outcome == "not_allowed" else "rules denied",
        )
        return

    logger.info(
        "Permission decision: %s on %r for user %r: %s (%s rule(s))",
        operation,
        table,
        user.user_id,
        outcome,
        rule_count if rule_count is not None else 0,
    )
    if kept is not None and total is not None and logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Row-level filtering on %r: kept %d of %d row(s)", table, kept, total
        )


def log_rule_trace(*, table: str, operation: str, steps: Sequence[RuleTrace]) -> None:
    """Log each evaluated rule at DEBUG level."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    for step in steps:
        logger.debug(
            "Rule %d (%s) on %s.%s: %s",
            step.index,
            step.rule.kind,
            table,
            operation,
            step.decision.value,
        )
