"""Compiled operations — abstract clause applications against a query builder."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

__all__ = ["CLAUSE_STAGES", "Operation", "stage_of"]

# Fixed clause application order. Later stages depend on the projections
# established by earlier ones, so a compiled sequence never goes backwards.
CLAUSE_STAGES: tuple[str, ...] = (
    "ctes",
    "recursive_ctes",
    "windows",
    "advanced_windows",
    "filter",
    "raw_expressions",
    "aggregates",
    "where_raw",
    "where_between",
    "where_null",
    "where_in",
    "where_exists",
    "where_groups",
    "group_by",
    "having",
    "order_by",
    "limit",
    "offset",
)

# Builder method name -> stage.
_KIND_STAGE: dict[str, str] = {
    "with_cte": "ctes",
    "with_recursive_cte": "recursive_ctes",
    "select_window": "windows",
    "select_advanced_window": "advanced_windows",
    "where_equals": "filter",
    "where_raw": "raw_expressions",
    "aggregate": "aggregates",
    "where": "where_raw",
    "where_between": "where_between",
    "where_null": "where_null",
    "where_not_null": "where_null",
    "where_in": "where_in",
    "where_not_in": "where_in",
    "where_exists": "where_exists",
    "where_group": "where_groups",
    "group_by": "group_by",
    "having": "having",
    "order_by": "order_by",
    "limit": "limit",
    "offset": "offset",
}


@dataclass(frozen=True, slots=True)
class Operation:
    """One clause application.

    ``kind`` names the :class:`~sqla_rls.compiler.QueryBuilder` method to
    call and ``args`` are its keyword arguments.

    Example::

        Operation("where", {"field": "age", "operator": ">", "value": 21})
    """

    kind: str
    args: Mapping[str, Any] = field(default_factory=dict)

    @property
    def stage(self) -> str:
        return stage_of(self.kind)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly rendering, nested sequences included."""
        return {"kind": self.kind, "args": {k: _render(v) for k, v in self.args.items()}}

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.args.items())
        return f"Operation({self.kind}: {args})"


def stage_of(kind: str) -> str:
    """Return the clause stage an operation kind belongs to."""
    try:
        return _KIND_STAGE[kind]
    except KeyError:
        raise ValueError(f"Unknown operation kind: {kind!r}") from None


def _render(value: Any) -> Any:
    if isinstance(value, Operation):
        return value.to_dict()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {k: _render(v) for k, v in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return [_render(v) for v in value]
    return value
