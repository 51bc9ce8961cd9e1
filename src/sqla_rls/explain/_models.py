"""Data models for explain/dry-run output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

__all__ = [
    "EvaluationExplanation",
    "QueryExplanation",
    "RuleEvaluation",
]


@dataclass(frozen=True, slots=True)
class QueryExplanation:
    """How a query IR would be compiled, without running it.

    Attributes:
        table: Source table.
        operations: Operation kinds in application order.
        sql: The compiled statement, with literal binds where possible.
        complexity: Complexity score of the IR.
        violations: Validation violations; empty when the IR is valid.
    """

    table: str
    operations: list[str]
    sql: str
    complexity: float
    violations: list[str]

    @property
    def valid(self) -> bool:
        return not self.violations

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dictionary."""
        return {
            "table": self.table,
            "operations": list(self.operations),
            "sql": self.sql,
            "complexity": self.complexity,
            "violations": list(self.violations),
            "valid": self.valid,
        }

    def __str__(self) -> str:
        """Return a human-readable multi-line explanation."""
        lines: list[str] = []
        lines.append(f"Query Explanation for table={self.table!r}")
        lines.append(f"  Operations ({len(self.operations)}):")
        for index, kind in enumerate(self.operations):
            lines.append(f"    {index}. {kind}")
        lines.append(f"  Complexity: {self.complexity:g}")
        lines.append(f"  SQL: {self.sql}")
        if self.violations:
            lines.append("  Violations:")
            for violation in self.violations:
                lines.append(f"    - {violation}")
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class RuleEvaluation:
    """Result of evaluating a single rule.

    Attributes:
        index: Position of the rule in its list.
        kind: Rule kind (``"role"``, ``"fieldCheck"``, ...).
        rule: Wire form of the rule.
        decision: ``"allow"``, ``"deny"`` or ``"continue"``.
    """

    index: int
    kind: str
    rule: dict[str, Any]
    decision: str

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dictionary."""
        return {
            "index": self.index,
            "kind": self.kind,
            "rule": dict(self.rule),
            "decision": self.decision,
        }


@dataclass(frozen=True, slots=True)
class EvaluationExplanation:
    """Why a rule list allows or denies a user, optionally for one row.

    Attributes:
        user_repr: String representation of the user context.
        row: The row evaluated against, if any.
        rules_found: Number of rules in the list.
        evaluations: Rules evaluated up to the first decisive one.
        allowed: The final verdict.
        deny_by_default: True when no rule decided and the default applied.
    """

    user_repr: str
    row: dict[str, Any] | None
    rules_found: int
    evaluations: list[RuleEvaluation]
    allowed: bool
    deny_by_default: bool

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dictionary."""
        return {
            "user_repr": self.user_repr,
            "row": dict(self.row) if self.row is not None else None,
            "rules_found": self.rules_found,
            "evaluations": [e.to_dict() for e in self.evaluations],
            "allowed": self.allowed,
            "deny_by_default": self.deny_by_default,
        }

    def __str__(self) -> str:
        """Return a human-readable multi-line explanation."""
        verdict = "ALLOWED" if self.allowed else "DENIED"
        lines: list[str] = []
        lines.append(f"Rule Evaluation: {verdict}")
        lines.append(f"  User: {self.user_repr}")
        if self.row is not None:
            lines.append(f"  Row: {self.row!r}")
        lines.append("")
        lines.append(f"  Rules ({self.rules_found}):")
        for e in self.evaluations:
            lines.append(f"    {e.index}. {e.kind} [{e.decision.upper()}]")
        if self.deny_by_default:
            lines.append("  DENY BY DEFAULT (no rule decided)")
        return "\n".join(lines)
