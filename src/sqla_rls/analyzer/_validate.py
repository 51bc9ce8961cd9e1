"""Static validation and complexity scoring over a QueryIR."""

from __future__ import annotations

from collections.abc import Iterable

from sqla_rls.exceptions import ValidationError
from sqla_rls.ir._models import QueryIR, ValidationRules, WhereGroup

__all__ = [
    "check_query",
    "complexity",
    "filtered_fields",
    "has_field",
    "has_where_clause",
    "validate",
]

# Weights per clause kind.
_WHERE_RAW = 1.0
_WHERE_BETWEEN = 1.5
_WHERE_IN_KEY = 2.0
_WHERE_EXISTS = 3.0
_GROUP_BY = 2.0
_HAVING = 2.0
_WINDOW = 3.0
_GROUP_CLAUSE = 1.5


def has_field(ir: QueryIR, field: str) -> bool:
    """Return True if *field* is referenced by a filtering clause.

    Looks at ``filter``, ``whereRaw``, ``whereBetween``, ``whereIn``,
    ``whereNotIn``, ``whereNull`` and ``whereNotNull``. Presence counts,
    so ``{"filter": {"deleted": False}}`` references ``deleted``.
    """
    return (
        field in ir.filter
        or any(c.field == field for c in ir.where_raw)
        or any(c.field == field for c in ir.where_between)
        or field in ir.where_in
        or field in ir.where_not_in
        or field in ir.where_null
        or field in ir.where_not_null
    )


def filtered_fields(ir: QueryIR) -> list[str]:
    """Fields used by ``filter``, ``whereRaw``, ``whereBetween`` and ``orderBy``, in order."""
    seen: dict[str, None] = {}
    for name in ir.filter:
        seen.setdefault(name, None)
    for clause in ir.where_raw:
        seen.setdefault(clause.field, None)
    for between in ir.where_between:
        seen.setdefault(between.field, None)
    for order in ir.order_by:
        seen.setdefault(order.field, None)
    return list(seen)


def has_where_clause(ir: QueryIR) -> bool:
    return bool(
        ir.filter or ir.where_raw or ir.where_between or ir.where_null or ir.where_groups
    )


def _group_complexity(groups: Iterable[WhereGroup]) -> float:
    score = 0.0
    for group in groups:
        score += _GROUP_CLAUSE * len(group.clauses)
        score += _group_complexity(m for m in group.clauses if isinstance(m, WhereGroup))
    return score


def complexity(ir: QueryIR) -> float:
    """Return the weighted complexity score of *ir*.

    ``whereRaw`` 1 each, ``whereBetween`` 1.5 each, ``whereIn`` 2 per
    key, ``whereExists`` 3 each, ``groupBy`` 2 when present (regardless
    of field count), ``having`` 2 each, window functions 3 each. Every
    where group adds 1.5 per direct member, recursively.

    Example::

        complexity(QueryIR.from_dict({
            "whereRaw": [
                {"field": "a", "operator": ">", "value": 1},
                {"field": "b", "operator": "<", "value": 2},
            ],
            "groupBy": ["a", "b"],
        }))
        # 4.0
    """
    score = 0.0
    score += _WHERE_RAW * len(ir.where_raw)
    score += _WHERE_BETWEEN * len(ir.where_between)
    score += _WHERE_IN_KEY * len(ir.where_in)
    score += _WHERE_EXISTS * len(ir.where_exists)
    score += _GROUP_BY if ir.group_by else 0.0
    score += _HAVING * len(ir.having)
    score += _WINDOW * len(ir.window_functions)
    score += _group_complexity(ir.where_groups)
    return score


def validate(ir: QueryIR, rules: ValidationRules | None = None) -> list[str]:
    """Check *ir* against *rules* and return every violation found.

    Checks are independent; nothing short-circuits. *rules* defaults to
    ``ir.validation``; with no rules the result is empty.

    Args:
        ir: The query to check.
        rules: Limits to enforce.

    Returns:
        Human-readable violation messages, possibly empty.
    """
    rules = rules if rules is not None else ir.validation
    if rules is None:
        return []

    violations: list[str] = []
    if rules.max_limit is not None and ir.limit is not None and ir.limit > rules.max_limit:
        violations.append(f"Limit exceeds maximum allowed value of {rules.max_limit}")

    for field in rules.required_fields:
        if not has_field(ir, field):
            violations.append(f"Missing required field: {field}")

    for field in rules.disallowed_fields:
        if has_field(ir, field):
            violations.append(f"Query contains disallowed field: {field}")

    if rules.max_complexity is not None:
        score = complexity(ir)
        if score > rules.max_complexity:
            violations.append(
                f"Query complexity ({score:g}) exceeds maximum allowed value "
                f"({rules.max_complexity:g})"
            )
    return violations


def check_query(ir: QueryIR, rules: ValidationRules | None = None) -> None:
    """Like :func:`validate` but raise when anything is violated.

    Raises:
        ValidationError: Carrying all violations at once.
    """
    violations = validate(ir, rules)
    if violations:
        raise ValidationError(violations)
