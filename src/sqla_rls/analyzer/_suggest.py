"""Advisory optimization suggestions from an execution-plan tree.

Plans use the PostgreSQL ``EXPLAIN (FORMAT JSON)`` node shape: a mapping
with ``"Node Type"`` and an optional ``"Plans"`` child list. Nothing
here blocks a query; any failure degrades to no suggestions.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterator, Mapping
from typing import Any

from sqla_rls.analyzer._validate import filtered_fields, has_where_clause
from sqla_rls.config._config import RlsConfig, get_global_config
from sqla_rls.ir._models import OrderBy, QueryIR

__all__ = [
    "has_cartesian_join",
    "has_inefficient_sort",
    "has_nested_loops",
    "has_table_scan",
    "iter_plan",
    "suggest_optimizations",
    "unwrap_plan",
]

logger = logging.getLogger("sqla_rls.analyzer")

_SCAN_TYPES = ("Seq Scan", "Full Table Scan")


def unwrap_plan(plan: Any) -> Mapping[str, Any] | None:
    """Accept ``[{"Plan": {...}}]``, ``{"Plan": {...}}`` or a bare node."""
    if isinstance(plan, list):
        plan = plan[0] if plan else None
    if isinstance(plan, Mapping) and "Plan" in plan:
        plan = plan["Plan"]
    return plan if isinstance(plan, Mapping) else None


def iter_plan(node: Mapping[str, Any] | None) -> Iterator[Mapping[str, Any]]:
    """Yield *node* and all of its descendants, depth first."""
    if not node:
        return
    yield node
    for child in node.get("Plans") or ():
        yield from iter_plan(child)


def _node_type(node: Mapping[str, Any]) -> str:
    return str(node.get("Node Type") or "")


def has_table_scan(plan: Mapping[str, Any] | None) -> bool:
    return any(
        scan in _node_type(node) for node in iter_plan(plan) for scan in _SCAN_TYPES
    )


def has_nested_loops(plan: Mapping[str, Any] | None, max_join_count: int) -> bool:
    """True if the plan uses nested loops and joins more than *max_join_count* times."""
    nodes = list(iter_plan(plan))
    if not any("Nested Loop" in _node_type(n) for n in nodes):
        return False
    joins = sum(1 for n in nodes if "Join" in _node_type(n) or "Nested Loop" in _node_type(n))
    return joins > max_join_count


def has_cartesian_join(plan: Mapping[str, Any] | None) -> bool:
    return any("Join" in _node_type(n) and not n.get("Join Type") for n in iter_plan(plan))


def _unindexed_joins(plan: Mapping[str, Any] | None) -> int:
    return sum(
        1
        for n in iter_plan(plan)
        if "Join" in _node_type(n) and not n.get("Index Cond") and n.get("Join Type") != "Inner"
    )


def has_inefficient_sort(
    plan: Mapping[str, Any] | None,
    order_by: tuple[OrderBy, ...],
    memory_threshold: int,
) -> bool:
    """External-merge sorts over the threshold, or sorts on ``orderBy`` keys with no index."""
    if not order_by:
        return False
    for node in iter_plan(plan):
        if "Sort" not in _node_type(node):
            continue
        method = str(node.get("Sort Method") or "")
        space = node.get("Sort Space Used") or 0
        if "external merge" in method and space > memory_threshold:
            return True
        if not node.get("Index Name"):
            keys = node.get("Sort Key") or ()
            if any(o.field in str(key) for key in keys for o in order_by):
                return True
    return False


def suggest_optimizations(
    plan: Any,
    ir: QueryIR,
    *,
    indexed_fields: Collection[str] = (),
    row_estimate: float | None = None,
    config: RlsConfig | None = None,
) -> list[str]:
    """Return advisory suggestions for running *ir* with execution *plan*.

    Args:
        plan: Execution plan in EXPLAIN JSON shape (wrapped or bare).
        ir: The query the plan belongs to.
        indexed_fields: Columns of the source table covered by an index.
        row_estimate: Estimated table size; defaults to the root node's
            ``"Plan Rows"``.
        config: Thresholds; defaults to the global config.

    Returns:
        Suggestion strings. Empty when nothing stands out or when the
        plan cannot be analysed.
    """
    cfg = config if config is not None else get_global_config()
    try:
        root = unwrap_plan(plan)
        suggestions: list[str] = []

        if has_table_scan(root):
            unindexed = [f for f in filtered_fields(ir) if f not in indexed_fields]
            suggestions.append(
                "Query contains table scans. Consider adding indexes for: "
                + ", ".join(unindexed)
            )

        if (
            has_nested_loops(root, cfg.max_join_count)
            or has_cartesian_join(root)
            or _unindexed_joins(root) > 1
        ):
            suggestions.append(
                "Query contains potentially inefficient joins. "
                "Consider denormalization or adding appropriate indexes."
            )

        if row_estimate is None and root is not None:
            row_estimate = root.get("Plan Rows")
        if (
            row_estimate is not None
            and row_estimate > cfg.large_table_threshold
            and not has_where_clause(ir)
        ):
            suggestions.append("Query on large table without WHERE clause. Consider adding filters.")

        if has_inefficient_sort(root, ir.order_by, cfg.sort_memory_threshold):
            suggestions.append(
                "Inefficient sorting detected. Consider adding indexes for ORDER BY fields."
            )
        return suggestions
    except Exception:
        logger.warning("Could not compute optimization suggestions", exc_info=True)
        return []
