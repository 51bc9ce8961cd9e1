"""Explain/dry-run mode — structured insight into compilation and rule decisions."""

from sqla_rls.explain._access import explain_evaluation
from sqla_rls.explain._models import EvaluationExplanation, QueryExplanation, RuleEvaluation
from sqla_rls.explain._query import explain_query

__all__ = [
    "EvaluationExplanation",
    "QueryExplanation",
    "RuleEvaluation",
    "explain_evaluation",
    "explain_query",
]
