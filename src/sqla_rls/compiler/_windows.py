"""Window function fragment assembly.

Simple windows compile to literal SQL fragments::

    ROW_NUMBER() OVER (PARTITION BY dept ORDER BY salary desc)

Every identifier that ends up in a fragment is checked against a strict
pattern first; fragments never contain user-supplied values.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from sqla_rls.exceptions import UnsupportedFeatureError
from sqla_rls.ir._models import OrderBy, WindowFrame, WindowFunction

__all__ = [
    "AGGREGATE_TYPES",
    "WINDOW_TYPES",
    "check_identifier",
    "frame_bounds",
    "function_call",
    "over_clause",
    "window_fragment",
]

AGGREGATE_TYPES: frozenset[str] = frozenset({"count", "sum", "avg", "min", "max"})

# Ranking functions take no argument unless one is given explicitly.
_ZERO_ARG_TYPES: frozenset[str] = frozenset(
    {"row_number", "rank", "dense_rank", "percent_rank", "cume_dist"}
)

WINDOW_TYPES: frozenset[str] = (
    _ZERO_ARG_TYPES
    | frozenset({"ntile", "lag", "lead", "first_value", "last_value", "nth_value"})
    | AGGREGATE_TYPES
)

_DIRECTIONS: frozenset[str] = frozenset({"asc", "desc"})
_NULLS: frozenset[str] = frozenset({"first", "last"})

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")

_FRAME_TOKENS: frozenset[str] = frozenset(
    {
        "ROWS",
        "RANGE",
        "GROUPS",
        "BETWEEN",
        "AND",
        "UNBOUNDED",
        "PRECEDING",
        "FOLLOWING",
        "CURRENT",
        "ROW",
        "EXCLUDE",
        "NO",
        "OTHERS",
        "GROUP",
        "TIES",
    }
)


def check_identifier(name: str, *, allow_star: bool = False) -> str:
    """Return *name* unchanged if it is a plain (optionally dotted) identifier.

    Raises:
        UnsupportedFeatureError: If *name* could inject SQL.
    """
    if allow_star and name == "*":
        return name
    if not _IDENTIFIER_RE.match(name):
        raise UnsupportedFeatureError(f"Unsupported identifier: {name!r}")
    return name


def _check_frame_clause(frame_clause: str) -> str:
    tokens = frame_clause.split()
    if not tokens or tokens[0].upper() not in ("ROWS", "RANGE", "GROUPS"):
        raise UnsupportedFeatureError(f"Unsupported frame clause: {frame_clause!r}")
    for token in tokens:
        if token.upper() not in _FRAME_TOKENS and not token.isdigit():
            raise UnsupportedFeatureError(f"Unsupported frame clause: {frame_clause!r}")
    return " ".join(tokens)


def function_call(type_: str, field: str | None) -> str:
    """Render the function-call part of a window column.

    ``row_number`` always renders ``ROW_NUMBER()``; other ranking
    functions render empty parentheses when no field is given; the rest
    render ``TYPE(field)`` or ``TYPE(*)``.
    """
    if type_ not in WINDOW_TYPES:
        raise UnsupportedFeatureError(f"Unsupported window function type: {type_!r}")
    if type_ == "row_number":
        return "ROW_NUMBER()"
    if field is None and type_ in _ZERO_ARG_TYPES:
        return f"{type_.upper()}()"
    arg = check_identifier(field, allow_star=True) if field is not None else "*"
    return f"{type_.upper()}({arg})"


def _order_term(order: OrderBy) -> str:
    if order.direction not in _DIRECTIONS:
        raise UnsupportedFeatureError(f"Unsupported sort direction: {order.direction!r}")
    term = f"{check_identifier(order.field)} {order.direction}"
    if order.nulls is not None:
        if order.nulls not in _NULLS:
            raise UnsupportedFeatureError(f"Unsupported null ordering: {order.nulls!r}")
        term += f" NULLS {order.nulls.upper()}"
    return term


def over_clause(
    partition_by: Sequence[str] = (),
    order_by: Sequence[OrderBy] = (),
    frame_clause: str | None = None,
) -> str:
    """Render ``OVER (...)``; absent parts leave no dangling separators."""
    parts: list[str] = []
    if partition_by:
        parts.append("PARTITION BY " + ", ".join(check_identifier(p) for p in partition_by))
    if order_by:
        parts.append("ORDER BY " + ", ".join(_order_term(o) for o in order_by))
    if frame_clause:
        parts.append(_check_frame_clause(frame_clause))
    return f"OVER ({' '.join(parts)})"


def window_fragment(wf: WindowFunction) -> str:
    """Render a full window column expression, without its alias.

    Example::

        window_fragment(WindowFunction(
            type="row_number", alias="rn", partition_by=("dept",),
            order_by=(OrderBy("salary", "desc"),),
        ))
        # 'ROW_NUMBER() OVER (PARTITION BY dept ORDER BY salary desc)'
    """
    call = function_call(wf.type, wf.field)
    return f"{call} {over_clause(wf.partition_by, wf.order_by, wf.frame_clause)}"


def frame_bounds(frame: WindowFrame) -> tuple[int | None, int | None]:
    """Translate a structured frame into SQLAlchemy ``over(rows=/range_=)`` bounds.

    ``None`` is unbounded, ``0`` is the current row, negative offsets
    precede and positive offsets follow. An integer start counts rows
    back; an integer end counts rows forward. A missing end is the
    current row.
    """
    if frame.type not in ("ROWS", "RANGE"):
        raise UnsupportedFeatureError(f"Unsupported frame type: {frame.type!r}")
    return _bound(frame.start, preceding=True), _bound(
        frame.end if frame.end is not None else "CURRENT ROW", preceding=False
    )


def _bound(value: str | int, *, preceding: bool) -> int | None:
    if isinstance(value, int):
        if value < 0:
            raise UnsupportedFeatureError(f"Frame offsets must not be negative, got {value}")
        return -value if preceding else value
    if value == "CURRENT ROW":
        return 0
    if value == "UNBOUNDED PRECEDING" and preceding:
        return None
    if value == "UNBOUNDED FOLLOWING" and not preceding:
        return None
    raise UnsupportedFeatureError(f"Unsupported frame bound: {value!r}")
