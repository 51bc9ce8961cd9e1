"""SQLAlchemy Core implementation of the query-builder capability."""

from __future__ import annotations

import itertools
import operator as op
import re
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import (
    ColumnElement,
    FromClause,
    MetaData,
    Select,
    Table,
    TextClause,
    and_,
    bindparam,
    column,
    func,
    literal_column,
    or_,
    select,
    table,
    text,
)

from sqla_rls.compiler._compile import compile_query
from sqla_rls.compiler._operations import Operation
from sqla_rls.compiler._windows import check_identifier, frame_bounds
from sqla_rls.exceptions import UnsupportedFeatureError, ValidationError
from sqla_rls.ir._models import AdvancedWindow, QueryIR, WhereClause, WhereGroup

__all__ = ["QueryBuilder", "SelectBuilder", "apply_operations", "build_query"]


@runtime_checkable
class QueryBuilder(Protocol):
    """The clause-application capability a compiled query is replayed against.

    Method names match :attr:`Operation.kind`; keyword arguments match
    :attr:`Operation.args`.
    """

    def with_cte(
        self,
        *,
        name: str,
        operations: Sequence[Operation],
        columns: Sequence[str],
        table: str | None,
    ) -> None: ...

    def with_recursive_cte(
        self,
        *,
        name: str,
        initial: Sequence[Operation],
        recursive: Sequence[Operation],
        union_all: bool,
        columns: Sequence[str],
        table: str | None,
        recursive_table: str | None,
        recursive_columns: Sequence[str],
    ) -> None: ...

    def select_window(self, *, alias: str, fragment: str) -> None: ...

    def select_advanced_window(self, *, window: AdvancedWindow) -> None: ...

    def where_equals(self, *, values: Mapping[str, Any]) -> None: ...

    def where_raw(self, *, sql: str, bindings: Sequence[Any]) -> None: ...

    def aggregate(self, *, type: str, field: str, alias: str) -> None: ...

    def where(self, *, field: str, operator: str, value: Any) -> None: ...

    def where_between(self, *, field: str, low: Any, high: Any) -> None: ...

    def where_null(self, *, field: str) -> None: ...

    def where_not_null(self, *, field: str) -> None: ...

    def where_in(self, *, field: str, values: Sequence[Any]) -> None: ...

    def where_not_in(self, *, field: str, values: Sequence[Any]) -> None: ...

    def where_exists(self, *, sql: str, bindings: Sequence[Any]) -> None: ...

    def where_group(self, *, group: WhereGroup) -> None: ...

    def group_by(self, *, fields: Sequence[str]) -> None: ...

    def having(self, *, field: str, operator: str, value: Any) -> None: ...

    def order_by(self, *, field: str, direction: str, nulls: str | None) -> None: ...

    def limit(self, *, count: int) -> None: ...

    def offset(self, *, count: int) -> None: ...


def apply_operations(builder: QueryBuilder, operations: Iterable[Operation]) -> None:
    """Replay *operations* against *builder*, in order."""
    for operation in operations:
        getattr(builder, operation.kind)(**operation.args)


_COMPARATORS: dict[str, Callable[[ColumnElement[Any], Any], ColumnElement[bool]]] = {
    "=": op.eq,
    "!=": op.ne,
    "<>": op.ne,
    "<": op.lt,
    "<=": op.le,
    ">": op.gt,
    ">=": op.ge,
    "like": lambda c, v: c.like(v),
    "ilike": lambda c, v: c.ilike(v),
    "not like": lambda c, v: c.not_like(v),
    "in": lambda c, v: c.in_(_as_values(v)),
    "not in": lambda c, v: c.not_in(_as_values(v)),
    "between": lambda c, v: c.between(*_as_bounds(v)),
    "is null": lambda c, _: c.is_(None),
    "is not null": lambda c, _: c.is_not(None),
}

_AGGREGATES: dict[str, Callable[..., ColumnElement[Any]]] = {
    "count": func.count,
    "sum": func.sum,
    "avg": func.avg,
    "min": func.min,
    "max": func.max,
}

# A single colon before a word would otherwise be read by text() as a bind.
_BARE_COLON_RE = re.compile(r"(?<![:\w\\]):(?=\w)")


def _as_values(value: Any) -> list[Any]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise ValidationError([f"Expected a list of values, got {value!r}"])
    return list(value)


def _as_bounds(value: Any) -> tuple[Any, Any]:
    values = _as_values(value)
    if len(values) != 2:
        raise ValidationError([f"Expected [low, high], got {value!r}"])
    return values[0], values[1]


def _col(name: str) -> ColumnElement[Any]:
    check_identifier(name, allow_star=True)
    if name == "*" or "." in name:
        return literal_column(name)
    return column(name)


def _projected(entry: str) -> ColumnElement[Any]:
    # CTE column lists may hold expressions (``"n + 1"``); they are raw SQL.
    if entry == "*" or re.match(r"^[A-Za-z_][A-Za-z0-9_.]*$", entry):
        return _col(entry)
    return literal_column(entry)


class SelectBuilder:
    """Accumulate clause applications and produce a SQLAlchemy ``Select``.

    Table names resolve, in order, to a CTE registered on this builder
    (or inherited from an enclosing one), a ``Table`` in *metadata*, and
    finally a lightweight :func:`sqlalchemy.table`.

    Args:
        table: Name of the source table.
        metadata: Optional reflected or declared ``MetaData``.
        columns: Explicit projection replacing ``*``/group-by columns.

    Example::

        builder = SelectBuilder("users")
        apply_operations(builder, compile_query(ir))
        stmt = builder.statement()
    """

    def __init__(
        self,
        table: str,
        *,
        metadata: MetaData | None = None,
        columns: Sequence[str] = (),
        _scope: Mapping[str, FromClause] | None = None,
        _counter: Iterator[int] | None = None,
    ) -> None:
        self._table_name = table
        self._metadata = metadata
        self._columns = tuple(columns)
        self._scope: dict[str, FromClause] = dict(_scope or {})
        self._counter = _counter if _counter is not None else itertools.count(1)
        self._local_ctes: list[Any] = []
        self._selected: list[ColumnElement[Any]] = []
        self._aggregates: list[ColumnElement[Any]] = []
        self._criteria: list[ColumnElement[bool]] = []
        self._group_by: list[str] = []
        self._having: list[ColumnElement[bool]] = []
        self._order_by: list[ColumnElement[Any]] = []
        self._limit: int | None = None
        self._offset: int | None = None

    # -- source resolution ---------------------------------------------------

    def resolve(self, name: str) -> FromClause:
        """Return the FROM element *name* refers to."""
        if name in self._scope:
            return self._scope[name]
        if self._metadata is not None and name in self._metadata.tables:
            return self._metadata.tables[name]
        check_identifier(name)
        schema, _, bare = name.rpartition(".")
        return table(bare, schema=schema or None)

    def _child(
        self, table_name: str, columns: Sequence[str], scope: Mapping[str, FromClause] | None = None
    ) -> SelectBuilder:
        merged = dict(self._scope)
        merged.update(scope or {})
        return SelectBuilder(
            table_name,
            metadata=self._metadata,
            columns=columns,
            _scope=merged,
            _counter=self._counter,
        )

    def _table_columns(self, name: str) -> tuple[str, ...]:
        source = self.resolve(name)
        if isinstance(source, Table):
            return tuple(c.name for c in source.columns)
        return ()

    # -- raw fragments -------------------------------------------------------

    def _raw(self, sql: str, bindings: Sequence[Any], template: str = "{}") -> TextClause:
        pieces = _BARE_COLON_RE.sub(r"\\:", sql).split("?")
        if len(pieces) - 1 != len(bindings):
            raise ValidationError(
                [
                    f"Raw SQL has {len(pieces) - 1} placeholder(s) "
                    f"but {len(bindings)} binding(s): {sql!r}"
                ]
            )
        params = []
        out = [pieces[0]]
        for value, piece in zip(bindings, pieces[1:]):
            name = f"raw_{next(self._counter)}"
            expanding = isinstance(value, (list, tuple, set, frozenset))
            params.append(bindparam(name, list(value) if expanding else value, expanding=expanding))
            out.append(f":{name}")
            out.append(piece)
        return text(template.format("".join(out))).bindparams(*params)

    # -- predicates ----------------------------------------------------------

    def _predicate(self, field: str, operator: str, value: Any) -> ColumnElement[bool]:
        try:
            compare = _COMPARATORS[operator]
        except KeyError:
            raise UnsupportedFeatureError(f"Unsupported operator: {operator!r}") from None
        return compare(_col(field), value)

    def _group_expression(self, group: WhereGroup) -> ColumnElement[bool] | None:
        expr: ColumnElement[bool] | None = None
        for member in group.clauses:
            if isinstance(member, WhereClause):
                term = self._predicate(member.field, member.operator, member.value)
            else:
                term = self._group_expression(member)
                if term is None:
                    continue
            if expr is None:
                expr = term
                continue
            connector = member.boolean or group.type
            expr = or_(expr, term) if connector == "OR" else and_(expr, term)
        return expr

    def _sort(self, field: str, direction: str, nulls: str | None) -> ColumnElement[Any]:
        term = _col(field)
        term = term.desc() if direction == "desc" else term.asc()
        if nulls == "first":
            term = term.nulls_first()
        elif nulls == "last":
            term = term.nulls_last()
        return term

    # -- QueryBuilder --------------------------------------------------------

    def with_cte(
        self,
        *,
        name: str,
        operations: Sequence[Operation],
        columns: Sequence[str] = (),
        table: str | None = None,
    ) -> None:
        child = self._child(table or self._table_name, columns)
        apply_operations(child, operations)
        cte = child.statement().cte(name)
        self._scope[name] = cte
        self._local_ctes.append(cte)

    def with_recursive_cte(
        self,
        *,
        name: str,
        initial: Sequence[Operation],
        recursive: Sequence[Operation],
        union_all: bool = False,
        columns: Sequence[str] = (),
        table: str | None = None,
        recursive_table: str | None = None,
        recursive_columns: Sequence[str] = (),
    ) -> None:
        source = table or self._table_name
        columns = tuple(columns) or self._table_columns(source)
        if not columns:
            raise UnsupportedFeatureError(
                f"Recursive CTE {name!r} needs explicit columns or a table known to MetaData"
            )
        anchor_builder = self._child(source, columns)
        apply_operations(anchor_builder, initial)
        anchor = anchor_builder.statement().cte(name, recursive=True)

        recursive_builder = self._child(
            recursive_table or name, tuple(recursive_columns) or columns, {name: anchor}
        )
        apply_operations(recursive_builder, recursive)
        recursive_stmt = recursive_builder.statement()

        cte = anchor.union_all(recursive_stmt) if union_all else anchor.union(recursive_stmt)
        self._scope[name] = cte
        self._local_ctes.append(cte)

    def select_window(self, *, alias: str, fragment: str) -> None:
        self._selected.append(literal_column(fragment).label(check_identifier(alias)))

    def select_advanced_window(self, *, window: AdvancedWindow) -> None:
        fn = getattr(func, window.type)
        if window.type == "row_number" or window.field is None:
            call = fn()
        else:
            call = fn(_col(window.field))
        if window.filter:
            call = call.filter(
                and_(*(self._predicate(c.field, c.operator, c.value) for c in window.filter))
            )
        over_kwargs: dict[str, Any] = {}
        if window.partition_by:
            over_kwargs["partition_by"] = [_col(p) for p in window.partition_by]
        if window.order_by:
            over_kwargs["order_by"] = [
                self._sort(o.field, o.direction, o.nulls) for o in window.order_by
            ]
        if window.frame is not None:
            key = "rows" if window.frame.type == "ROWS" else "range_"
            over_kwargs[key] = frame_bounds(window.frame)
        self._selected.append(call.over(**over_kwargs).label(check_identifier(window.alias)))

    def where_equals(self, *, values: Mapping[str, Any]) -> None:
        for name, value in values.items():
            target = _col(name)
            self._criteria.append(target.is_(None) if value is None else target == value)

    def where_raw(self, *, sql: str, bindings: Sequence[Any] = ()) -> None:
        self._criteria.append(self._raw(sql, bindings, "({})"))

    def aggregate(self, *, type: str, field: str, alias: str) -> None:
        try:
            fn = _AGGREGATES[type]
        except KeyError:
            raise UnsupportedFeatureError(f"Unsupported aggregate type: {type!r}") from None
        self._aggregates.append(fn(_col(field)).label(check_identifier(alias)))

    def where(self, *, field: str, operator: str, value: Any) -> None:
        self._criteria.append(self._predicate(field, operator, value))

    def where_between(self, *, field: str, low: Any, high: Any) -> None:
        self._criteria.append(_col(field).between(low, high))

    def where_null(self, *, field: str) -> None:
        self._criteria.append(_col(field).is_(None))

    def where_not_null(self, *, field: str) -> None:
        self._criteria.append(_col(field).is_not(None))

    def where_in(self, *, field: str, values: Sequence[Any]) -> None:
        self._criteria.append(_col(field).in_(list(values)))

    def where_not_in(self, *, field: str, values: Sequence[Any]) -> None:
        self._criteria.append(_col(field).not_in(list(values)))

    def where_exists(self, *, sql: str, bindings: Sequence[Any] = ()) -> None:
        self._criteria.append(self._raw(sql, bindings, "EXISTS ({})"))

    def where_group(self, *, group: WhereGroup) -> None:
        expr = self._group_expression(group)
        if expr is not None:
            self._criteria.append(expr)

    def group_by(self, *, fields: Sequence[str]) -> None:
        self._group_by.extend(check_identifier(f) for f in fields)

    def having(self, *, field: str, operator: str, value: Any) -> None:
        self._having.append(self._predicate(field, operator, value))

    def order_by(self, *, field: str, direction: str = "asc", nulls: str | None = None) -> None:
        self._order_by.append(self._sort(field, direction, nulls))

    def limit(self, *, count: int) -> None:
        self._limit = count

    def offset(self, *, count: int) -> None:
        self._offset = count

    # -- result --------------------------------------------------------------

    def statement(self) -> Select[Any]:
        """Assemble the accumulated clauses into a ``Select``."""
        if self._columns:
            projection: list[ColumnElement[Any]] = [_projected(c) for c in self._columns]
        elif not self._group_by and not self._aggregates:
            projection = [literal_column("*")]
        else:
            projection = [_col(g) for g in self._group_by]
        projection.extend(self._aggregates)
        projection.extend(self._selected)

        stmt = select(*projection).select_from(self.resolve(self._table_name))
        if self._criteria:
            stmt = stmt.where(*self._criteria)
        if self._group_by:
            stmt = stmt.group_by(*(_col(g) for g in self._group_by))
        if self._having:
            stmt = stmt.having(and_(*self._having))
        if self._order_by:
            stmt = stmt.order_by(*self._order_by)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        if self._offset:
            stmt = stmt.offset(self._offset)
        if self._local_ctes:
            stmt = stmt.add_cte(*self._local_ctes)
        return stmt


def build_query(table: str, ir: QueryIR, *, metadata: MetaData | None = None) -> Select[Any]:
    """Compile *ir* and replay it into a SQLAlchemy ``Select`` over *table*.

    Example::

        stmt = build_query("employees", QueryIR.from_dict({
            "whereIn": {"dept": ["eng", "ops"]},
            "orderBy": [{"field": "salary", "direction": "desc"}],
        }))
        # SELECT * FROM employees WHERE dept IN (...)
        #   ORDER BY salary DESC LIMIT :param_1
    """
    builder = SelectBuilder(table, metadata=metadata)
    apply_operations(builder, compile_query(ir))
    return builder.statement()
