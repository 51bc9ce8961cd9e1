"""Post-query row transforms applied after authorization."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sqla_rls._types import Row
from sqla_rls.exceptions import UnsupportedFeatureError
from sqla_rls.ir._models import PivotConfig, TransformConfig

__all__ = [
    "apply_transforms",
    "compute_columns",
    "flatten_rows",
    "group_rows",
    "pivot_rows",
    "select_fields",
]


def compute_columns(rows: Iterable[Row], compute: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Add one column per ``compute`` entry, computed from the row."""
    out = []
    for row in rows:
        new = dict(row)
        for name, fn in compute.items():
            new[name] = fn(row)
        out.append(new)
    return out


def group_rows(rows: Iterable[Row], fields: Sequence[str]) -> list[dict[str, Any]]:
    """Collapse rows sharing the values of *fields*; keep the first and add ``_count``."""
    groups: dict[tuple[Any, ...], dict[str, Any]] = {}
    for row in rows:
        key = tuple(repr(row.get(f)) for f in fields)
        if key in groups:
            groups[key]["_count"] += 1
        else:
            groups[key] = {**row, "_count": 1}
    return list(groups.values())


def _combine(kind: str, values: list[Any]) -> Any:
    if kind == "count":
        return len(values)
    present = [v for v in values if v is not None]
    if not present:
        return None
    if kind == "sum":
        return sum(present)
    if kind == "avg":
        return sum(present) / len(present)
    if kind == "min":
        return min(present)
    if kind == "max":
        return max(present)
    raise UnsupportedFeatureError(f"Unsupported aggregate type: {kind!r}")


def pivot_rows(rows: Iterable[Row], pivot: PivotConfig) -> list[dict[str, Any]]:
    """Turn the distinct values of ``pivot.column`` into columns.

    Rows agreeing on every other field collapse into one; each new
    column holds the aggregate of ``pivot.aggregate.field`` for that
    value. ``pivot.values`` (if set) restricts which values become columns.

    Example::

        pivot_rows(
            [{"region": "eu", "quarter": "q1", "sales": 10},
             {"region": "eu", "quarter": "q2", "sales": 7}],
            PivotConfig("quarter", ("q1", "q2"), Aggregate("sum", "sales")),
        )
        # [{"region": "eu", "q1": 10, "q2": 7}]
    """
    value_field = pivot.aggregate.field
    wanted = set(pivot.values)
    cells: dict[tuple[Any, ...], dict[str, list[Any]]] = {}
    bases: dict[tuple[Any, ...], dict[str, Any]] = {}
    for row in rows:
        pivot_value = str(row.get(pivot.column))
        if wanted and pivot_value not in wanted:
            continue
        base = {k: v for k, v in row.items() if k not in (pivot.column, value_field)}
        key = tuple(sorted((k, repr(v)) for k, v in base.items()))
        bases.setdefault(key, base)
        cells.setdefault(key, {}).setdefault(pivot_value, []).append(row.get(value_field))

    out = []
    for key, base in bases.items():
        new = dict(base)
        for value in pivot.values or ():
            new[value] = None
        for pivot_value, collected in cells[key].items():
            new[pivot_value] = _combine(pivot.aggregate.type, collected)
        out.append(new)
    return out


def _flatten(prefix: str, value: Any, into: dict[str, Any]) -> None:
    if isinstance(value, Mapping) and value:
        for key, inner in value.items():
            _flatten(f"{prefix}_{key}" if prefix else str(key), inner, into)
    else:
        into[prefix] = value


def flatten_rows(rows: Iterable[Row]) -> list[dict[str, Any]]:
    """Flatten nested mappings: ``{"a": {"b": 1}}`` becomes ``{"a_b": 1}``."""
    out = []
    for row in rows:
        flat: dict[str, Any] = {}
        for key, value in row.items():
            _flatten(str(key), value, flat)
        out.append(flat)
    return out


def select_fields(rows: Iterable[Row], fields: Sequence[str]) -> list[dict[str, Any]]:
    return [{f: row[f] for f in fields if f in row} for row in rows]


def apply_transforms(
    rows: Iterable[Row], transforms: TransformConfig | None
) -> list[dict[str, Any]]:
    """Apply *transforms* in order: compute, groupBy, pivot, flatten, select."""
    result = [dict(r) for r in rows]
    if transforms is None:
        return result
    if transforms.compute:
        result = compute_columns(result, transforms.compute)
    if transforms.group_by:
        result = group_rows(result, transforms.group_by)
    if transforms.pivot is not None:
        result = pivot_rows(result, transforms.pivot)
    if transforms.flatten:
        result = flatten_rows(result)
    if transforms.select:
        result = select_fields(result, transforms.select)
    return result
