"""Query IR — the declarative, JSON-shaped description of a query.

Every record parses from the wire shape accepted by request handlers
(camelCase keys) via ``from_dict`` and renders back to it via
``to_dict``. Records are frozen; nested sequences are tuples.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqla_rls.config._config import get_global_config
from sqla_rls.exceptions import ValidationError

__all__ = [
    "Aggregate",
    "AdvancedWindow",
    "CTE",
    "CacheConfig",
    "HavingClause",
    "OrderBy",
    "PivotConfig",
    "QueryIR",
    "RawExpression",
    "RecursiveCTE",
    "TransformConfig",
    "ValidationRules",
    "WhereBetween",
    "WhereClause",
    "WhereGroup",
    "WindowFrame",
    "WindowFunction",
]


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _require(data: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in data or data[key] is None:
        raise ValidationError([f"{where}: '{key}' is required"])
    return data[key]


def _as_mapping(data: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValidationError([f"{where}: expected an object, got {type(data).__name__}"])
    return data


def _as_list(data: Any, where: str) -> list[Any]:
    if data is None:
        return []
    if isinstance(data, (str, bytes)) or not isinstance(data, Sequence):
        raise ValidationError([f"{where}: expected a list, got {type(data).__name__}"])
    return list(data)


def _str_tuple(data: Any, where: str) -> tuple[str, ...]:
    return tuple(str(item) for item in _as_list(data, where))


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError:
            return None
    return None


def _unwrap_params(data: Any) -> Any:
    """Nested queries may arrive as ``{"params": {...}}``."""
    if isinstance(data, Mapping) and set(data) == {"params"}:
        return data["params"]
    return data


def _boolean(value: Any, where: str) -> str | None:
    if value is None:
        return None
    upper = str(value).upper()
    if upper not in ("AND", "OR"):
        raise ValidationError([f"{where}: boolean must be 'AND' or 'OR', got {value!r}"])
    return upper


# ---------------------------------------------------------------------------
# Clause records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class OrderBy:
    """One ``ORDER BY`` term.

    Attributes:
        field: Column name.
        direction: ``"asc"`` or ``"desc"``.
        nulls: Optional ``"first"`` / ``"last"`` null ordering.
    """

    field: str
    direction: str = "asc"
    nulls: str | None = None

    @classmethod
    def from_dict(cls, data: Any, where: str = "orderBy") -> OrderBy:
        data = _as_mapping(data, where)
        nulls = data.get("nulls", data.get("null"))
        return cls(
            field=str(_require(data, "field", where)),
            direction=str(data.get("direction") or "asc").lower(),
            nulls=str(nulls).lower() if nulls is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"field": self.field, "direction": self.direction}
        if self.nulls is not None:
            out["nulls"] = self.nulls
        return out


@dataclass(frozen=True, slots=True)
class WhereClause:
    """A ``field operator value`` predicate.

    ``boolean`` is the connector to the previous clause inside a
    ``WhereGroup``; ``None`` inherits the group's type.
    """

    field: str
    operator: str
    value: Any = None
    boolean: str | None = None

    @classmethod
    def from_dict(cls, data: Any, where: str = "whereRaw") -> WhereClause:
        data = _as_mapping(data, where)
        return cls(
            field=str(_require(data, "field", where)),
            operator=str(data.get("operator") or "=").lower(),
            value=data.get("value"),
            boolean=_boolean(data.get("boolean"), where),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "field": self.field,
            "operator": self.operator,
            "value": self.value,
        }
        if self.boolean is not None:
            out["boolean"] = self.boolean
        return out


@dataclass(frozen=True, slots=True)
class WhereBetween:
    """``field BETWEEN low AND high``."""

    field: str
    low: Any
    high: Any

    @classmethod
    def from_dict(cls, data: Any, where: str = "whereBetween") -> WhereBetween:
        data = _as_mapping(data, where)
        bounds = _as_list(_require(data, "value", where), where)
        if len(bounds) != 2:
            raise ValidationError([f"{where}: 'value' must be [low, high]"])
        return cls(field=str(_require(data, "field", where)), low=bounds[0], high=bounds[1])

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": "between", "value": [self.low, self.high]}


@dataclass(frozen=True, slots=True)
class RawExpression:
    """A raw SQL fragment with ``?`` positional bindings."""

    sql: str
    bindings: tuple[Any, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, where: str = "rawExpressions") -> RawExpression:
        data = _as_mapping(data, where)
        return cls(
            sql=str(_require(data, "sql", where)),
            bindings=tuple(_as_list(data.get("bindings"), where)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"sql": self.sql, "bindings": list(self.bindings)}


@dataclass(frozen=True, slots=True)
class WhereGroup:
    """A parenthesised boolean group of clauses and nested groups.

    Attributes:
        type: Default connector (``"AND"``/``"OR"``) for members without
            their own ``boolean`` tag.
        clauses: Members, combined left to right.
        boolean: Connector to the previous member when nested.
    """

    type: str = "AND"
    clauses: tuple[WhereClause | WhereGroup, ...] = ()
    boolean: str | None = None

    @classmethod
    def from_dict(cls, data: Any, where: str = "whereGroups") -> WhereGroup:
        data = _as_mapping(data, where)
        members: list[WhereClause | WhereGroup] = []
        for i, raw in enumerate(_as_list(data.get("clauses"), where)):
            member_where = f"{where}.clauses[{i}]"
            if isinstance(raw, Mapping) and "clauses" in raw:
                members.append(WhereGroup.from_dict(raw, member_where))
            else:
                members.append(WhereClause.from_dict(raw, member_where))
        return cls(
            type=_boolean(data.get("type"), where) or "AND",
            clauses=tuple(members),
            boolean=_boolean(data.get("boolean"), where),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": self.type,
            "clauses": [c.to_dict() for c in self.clauses],
        }
        if self.boolean is not None:
            out["boolean"] = self.boolean
        return out


@dataclass(frozen=True, slots=True)
class HavingClause:
    """A ``HAVING field operator value`` predicate."""

    field: str
    operator: str
    value: Any = None

    @classmethod
    def from_dict(cls, data: Any, where: str = "having") -> HavingClause:
        data = _as_mapping(data, where)
        return cls(
            field=str(_require(data, "field", where)),
            operator=str(data.get("operator") or "=").lower(),
            value=data.get("value"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}


@dataclass(frozen=True, slots=True)
class Aggregate:
    """An aggregate projection. The type is checked at compile time."""

    type: str
    field: str
    alias: str | None = None

    @property
    def column_name(self) -> str:
        """The output column name (``alias`` or ``<type>_<field>``)."""
        return self.alias or f"{self.type}_{self.field}"

    @classmethod
    def from_dict(cls, data: Any, where: str = "aggregates") -> Aggregate:
        data = _as_mapping(data, where)
        alias = data.get("alias")
        return cls(
            type=str(_require(data, "type", where)).lower(),
            field=str(_require(data, "field", where)),
            alias=str(alias) if alias is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type, "field": self.field}
        if self.alias is not None:
            out["alias"] = self.alias
        return out


# ---------------------------------------------------------------------------
# Window functions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class WindowFunction:
    """A window function column with a literal frame clause."""

    type: str
    alias: str
    field: str | None = None
    partition_by: tuple[str, ...] = ()
    order_by: tuple[OrderBy, ...] = ()
    frame_clause: str | None = None

    @classmethod
    def from_dict(cls, data: Any, where: str = "windowFunctions") -> WindowFunction:
        data = _as_mapping(data, where)
        fld = data.get("field")
        frame = data.get("frameClause")
        return cls(
            type=str(_require(data, "type", where)).lower(),
            alias=str(_require(data, "alias", where)),
            field=str(fld) if fld is not None else None,
            partition_by=_str_tuple(data.get("partitionBy"), where),
            order_by=tuple(
                OrderBy.from_dict(o, f"{where}.orderBy")
                for o in _as_list(data.get("orderBy"), where)
            ),
            frame_clause=str(frame) if frame else None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type, "alias": self.alias}
        if self.field is not None:
            out["field"] = self.field
        if self.partition_by:
            out["partitionBy"] = list(self.partition_by)
        if self.order_by:
            out["orderBy"] = [o.to_dict() for o in self.order_by]
        if self.frame_clause:
            out["frameClause"] = self.frame_clause
        return out


@dataclass(frozen=True, slots=True)
class WindowFrame:
    """Structured ``ROWS``/``RANGE`` frame.

    ``start``/``end`` are ``"UNBOUNDED PRECEDING"``, ``"CURRENT ROW"``,
    ``"UNBOUNDED FOLLOWING"`` or an integer offset.
    """

    type: str
    start: str | int
    end: str | int | None = None

    @classmethod
    def from_dict(cls, data: Any, where: str = "frame") -> WindowFrame:
        data = _as_mapping(data, where)
        return cls(
            type=str(_require(data, "type", where)).upper(),
            start=_frame_bound(_require(data, "start", where)),
            end=_frame_bound(data["end"]) if data.get("end") is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type, "start": self.start}
        if self.end is not None:
            out["end"] = self.end
        return out


def _frame_bound(value: Any) -> str | int:
    as_int = _coerce_int(value) if not isinstance(value, str) else None
    if as_int is not None:
        return as_int
    return str(value).upper()


@dataclass(frozen=True, slots=True)
class AdvancedWindow:
    """A window function with a structured frame and ``FILTER`` predicates."""

    type: str
    alias: str
    field: str | None = None
    partition_by: tuple[str, ...] = ()
    order_by: tuple[OrderBy, ...] = ()
    frame: WindowFrame | None = None
    filter: tuple[WhereClause, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, where: str = "advancedWindows") -> AdvancedWindow:
        data = _as_mapping(data, where)
        over = _as_mapping(data.get("over") or {}, f"{where}.over")
        partition = over.get("partitionBy", data.get("partitionBy"))
        order = over.get("orderBy", data.get("orderBy"))
        frame = over.get("frame")
        fld = data.get("field")
        return cls(
            type=str(_require(data, "type", where)).lower(),
            alias=str(_require(data, "alias", where)),
            field=str(fld) if fld is not None else None,
            partition_by=_str_tuple(partition, where),
            order_by=tuple(OrderBy.from_dict(o, f"{where}.orderBy") for o in _as_list(order, where)),
            frame=WindowFrame.from_dict(frame, f"{where}.frame") if frame else None,
            filter=tuple(
                WhereClause.from_dict(c, f"{where}.filter")
                for c in _as_list(data.get("filter"), where)
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        over: dict[str, Any] = {}
        if self.partition_by:
            over["partitionBy"] = list(self.partition_by)
        if self.order_by:
            over["orderBy"] = [o.to_dict() for o in self.order_by]
        if self.frame is not None:
            over["frame"] = self.frame.to_dict()
        out: dict[str, Any] = {"type": self.type, "alias": self.alias}
        if self.field is not None:
            out["field"] = self.field
        if over:
            out["over"] = over
        if self.filter:
            out["filter"] = [c.to_dict() for c in self.filter]
        return out


# ---------------------------------------------------------------------------
# Common table expressions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CTE:
    """A named sub-query.

    Attributes:
        name: Name the outer query refers to.
        query: The nested IR.
        columns: Explicit projection of the nested query.
        table: Source table of the nested query (defaults to the outer one).
    """

    name: str
    query: QueryIR
    columns: tuple[str, ...] = ()
    table: str | None = None

    @classmethod
    def from_dict(cls, data: Any, where: str = "ctes") -> CTE:
        data = _as_mapping(data, where)
        table = data.get("table")
        return cls(
            name=str(_require(data, "name", where)),
            query=QueryIR.from_dict(_unwrap_params(data.get("query") or {}), nested=True),
            columns=_str_tuple(data.get("columns"), where),
            table=str(table) if table is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name, "query": self.query.to_dict()}
        if self.columns:
            out["columns"] = list(self.columns)
        if self.table is not None:
            out["table"] = self.table
        return out


@dataclass(frozen=True, slots=True)
class RecursiveCTE:
    """A recursive CTE: ``initial UNION [ALL] recursive``.

    ``recursive_table`` is the source of the recursive part and defaults
    to the CTE's own name. ``recursive_columns`` is the projection of the
    recursive part (defaults to ``columns``); its entries may be SQL
    expressions such as ``"n + 1"``.
    """

    name: str
    initial_query: QueryIR
    recursive_query: QueryIR
    union_all: bool = False
    columns: tuple[str, ...] = ()
    table: str | None = None
    recursive_table: str | None = None
    recursive_columns: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, where: str = "recursiveCtes") -> RecursiveCTE:
        data = _as_mapping(data, where)
        table = data.get("table")
        recursive_table = data.get("recursiveTable")
        return cls(
            name=str(_require(data, "name", where)),
            initial_query=QueryIR.from_dict(
                _unwrap_params(_require(data, "initialQuery", where)), nested=True
            ),
            recursive_query=QueryIR.from_dict(
                _unwrap_params(_require(data, "recursiveQuery", where)), nested=True
            ),
            union_all=bool(data.get("unionAll", False)),
            columns=_str_tuple(data.get("columns"), where),
            table=str(table) if table is not None else None,
            recursive_table=str(recursive_table) if recursive_table is not None else None,
            recursive_columns=_str_tuple(data.get("recursiveColumns"), where),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "initialQuery": self.initial_query.to_dict(),
            "recursiveQuery": self.recursive_query.to_dict(),
            "unionAll": self.union_all,
        }
        if self.columns:
            out["columns"] = list(self.columns)
        if self.table is not None:
            out["table"] = self.table
        if self.recursive_table is not None:
            out["recursiveTable"] = self.recursive_table
        if self.recursive_columns:
            out["recursiveColumns"] = list(self.recursive_columns)
        return out


# ---------------------------------------------------------------------------
# Transforms, cache and validation settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PivotConfig:
    column: str
    values: tuple[str, ...]
    aggregate: Aggregate

    @classmethod
    def from_dict(cls, data: Any, where: str = "transforms.pivot") -> PivotConfig:
        data = _as_mapping(data, where)
        return cls(
            column=str(_require(data, "column", where)),
            values=_str_tuple(data.get("values"), where),
            aggregate=Aggregate.from_dict(_require(data, "aggregate", where), where),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "column": self.column,
            "values": list(self.values),
            "aggregate": self.aggregate.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class TransformConfig:
    """Post-query row transforms.

    ``compute`` holds callables and can only be supplied from Python.
    """

    group_by: tuple[str, ...] = ()
    pivot: PivotConfig | None = None
    flatten: bool = False
    select: tuple[str, ...] = ()
    compute: Mapping[str, Callable[[Mapping[str, Any]], Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any, where: str = "transforms") -> TransformConfig:
        data = _as_mapping(data, where)
        pivot = data.get("pivot")
        compute = data.get("compute") or {}
        return cls(
            group_by=_str_tuple(data.get("groupBy"), where),
            pivot=PivotConfig.from_dict(pivot) if pivot else None,
            flatten=bool(data.get("flatten", False)),
            select=_str_tuple(data.get("select"), where),
            compute={k: v for k, v in _as_mapping(compute, where).items() if callable(v)},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.group_by:
            out["groupBy"] = list(self.group_by)
        if self.pivot is not None:
            out["pivot"] = self.pivot.to_dict()
        if self.flatten:
            out["flatten"] = True
        if self.select:
            out["select"] = list(self.select)
        if self.compute:
            out["compute"] = sorted(self.compute)
        return out


@dataclass(frozen=True, slots=True)
class CacheConfig:
    """Per-query cache settings.

    Attributes:
        ttl: Time to live in seconds.
        key: Explicit cache key; defaults to a serialization of the IR.
        tags: Tags for group invalidation.
        condition: Optional predicate over the IR deciding whether to cache.
    """

    ttl: float
    key: str | None = None
    tags: tuple[str, ...] = ()
    condition: Callable[[QueryIR], bool] | None = None

    @classmethod
    def from_dict(cls, data: Any, where: str = "cache") -> CacheConfig:
        data = _as_mapping(data, where)
        ttl = _require(data, "ttl", where)
        if isinstance(ttl, bool) or not isinstance(ttl, (int, float)) or ttl <= 0:
            raise ValidationError([f"{where}: 'ttl' must be a positive number"])
        key = data.get("key")
        condition = data.get("condition")
        return cls(
            ttl=ttl,
            key=str(key) if key is not None else None,
            tags=_str_tuple(data.get("tags"), where),
            condition=condition if callable(condition) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ttl": self.ttl}
        if self.key is not None:
            out["key"] = self.key
        if self.tags:
            out["tags"] = list(self.tags)
        return out


@dataclass(frozen=True, slots=True)
class ValidationRules:
    """Static limits checked before a query is compiled.

    Accepts both the flat shape and ``{"rules": {...}, "suggestions": bool}``.
    """

    max_limit: int | None = None
    required_fields: tuple[str, ...] = ()
    disallowed_fields: tuple[str, ...] = ()
    max_complexity: float | None = None
    suggestions: bool = False

    @classmethod
    def from_dict(cls, data: Any, where: str = "validation") -> ValidationRules:
        data = _as_mapping(data, where)
        suggestions = bool(data.get("suggestions", False))
        if "rules" in data:
            data = _as_mapping(data["rules"], f"{where}.rules")
        max_complexity = data.get("maxComplexity")
        return cls(
            max_limit=_coerce_int(data.get("maxLimit")),
            required_fields=_str_tuple(data.get("requiredFields"), where),
            disallowed_fields=_str_tuple(data.get("disallowedFields"), where),
            max_complexity=float(max_complexity) if max_complexity is not None else None,
            suggestions=suggestions,
        )

    def to_dict(self) -> dict[str, Any]:
        rules: dict[str, Any] = {}
        if self.max_limit is not None:
            rules["maxLimit"] = self.max_limit
        if self.required_fields:
            rules["requiredFields"] = list(self.required_fields)
        if self.disallowed_fields:
            rules["disallowedFields"] = list(self.disallowed_fields)
        if self.max_complexity is not None:
            rules["maxComplexity"] = self.max_complexity
        return {"rules": rules, "suggestions": self.suggestions}


# ---------------------------------------------------------------------------
# The IR root
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class QueryIR:
    """A complete query request.

    Build one with :meth:`from_dict` from the wire shape; ``limit`` falls
    back to the configured default (10) when absent or invalid and
    ``offset`` falls back to 0.

    Example::

        ir = QueryIR.from_dict({
            "filter": {"status": "active"},
            "orderBy": [{"field": "created_at", "direction": "desc"}],
            "limit": 20,
        })
    """

    filter: Mapping[str, Any] = field(default_factory=dict)
    where_raw: tuple[WhereClause, ...] = ()
    where_between: tuple[WhereBetween, ...] = ()
    where_null: tuple[str, ...] = ()
    where_not_null: tuple[str, ...] = ()
    where_in: Mapping[str, tuple[Any, ...]] = field(default_factory=dict)
    where_not_in: Mapping[str, tuple[Any, ...]] = field(default_factory=dict)
    where_exists: tuple[RawExpression, ...] = ()
    where_groups: tuple[WhereGroup, ...] = ()
    group_by: tuple[str, ...] = ()
    having: tuple[HavingClause, ...] = ()
    order_by: tuple[OrderBy, ...] = ()
    aggregates: tuple[Aggregate, ...] = ()
    raw_expressions: tuple[RawExpression, ...] = ()
    limit: int | None = 10
    offset: int = 0
    window_functions: tuple[WindowFunction, ...] = ()
    advanced_windows: tuple[AdvancedWindow, ...] = ()
    ctes: tuple[CTE, ...] = ()
    recursive_ctes: tuple[RecursiveCTE, ...] = ()
    transforms: TransformConfig | None = None
    cache: CacheConfig | None = None
    validation: ValidationRules | None = None

    @classmethod
    def from_dict(
        cls, data: Any, *, default_limit: int | None = None, nested: bool = False
    ) -> QueryIR:
        """Parse the wire shape.

        Nested queries (CTE bodies) get no default ``limit``.

        Raises:
            ValidationError: If a record is malformed.
        """
        data = _as_mapping(data if data is not None else {}, "query")
        if default_limit is None:
            default_limit = get_global_config().default_limit

        limit = _coerce_int(data.get("limit"))
        offset = _coerce_int(data.get("offset"))

        def values_map(key: str) -> dict[str, tuple[Any, ...]]:
            raw = _as_mapping(data.get(key) or {}, key)
            return {str(k): tuple(_as_list(v, f"{key}.{k}")) for k, v in raw.items()}

        transforms = data.get("transforms")
        cache = data.get("cache")
        validation = data.get("validation")

        return cls(
            filter=dict(_as_mapping(data.get("filter") or {}, "filter")),
            where_raw=tuple(
                WhereClause.from_dict(c, f"whereRaw[{i}]")
                for i, c in enumerate(_as_list(data.get("whereRaw"), "whereRaw"))
            ),
            where_between=tuple(
                WhereBetween.from_dict(c, f"whereBetween[{i}]")
                for i, c in enumerate(_as_list(data.get("whereBetween"), "whereBetween"))
            ),
            where_null=_str_tuple(data.get("whereNull"), "whereNull"),
            where_not_null=_str_tuple(data.get("whereNotNull"), "whereNotNull"),
            where_in=values_map("whereIn"),
            where_not_in=values_map("whereNotIn"),
            where_exists=tuple(
                RawExpression.from_dict(c, f"whereExists[{i}]")
                for i, c in enumerate(_as_list(data.get("whereExists"), "whereExists"))
            ),
            where_groups=tuple(
                WhereGroup.from_dict(g, f"whereGroups[{i}]")
                for i, g in enumerate(_as_list(data.get("whereGroups"), "whereGroups"))
            ),
            group_by=_str_tuple(data.get("groupBy"), "groupBy"),
            having=tuple(
                HavingClause.from_dict(c, f"having[{i}]")
                for i, c in enumerate(_as_list(data.get("having"), "having"))
            ),
            order_by=tuple(
                OrderBy.from_dict(c, f"orderBy[{i}]")
                for i, c in enumerate(_as_list(data.get("orderBy"), "orderBy"))
            ),
            aggregates=tuple(
                Aggregate.from_dict(c, f"aggregates[{i}]")
                for i, c in enumerate(_as_list(data.get("aggregates"), "aggregates"))
            ),
            raw_expressions=tuple(
                RawExpression.from_dict(c, f"rawExpressions[{i}]")
                for i, c in enumerate(_as_list(data.get("rawExpressions"), "rawExpressions"))
            ),
            limit=limit if limit is not None and limit > 0 else (None if nested else default_limit),
            offset=offset if offset is not None and offset > 0 else 0,
            window_functions=tuple(
                WindowFunction.from_dict(c, f"windowFunctions[{i}]")
                for i, c in enumerate(_as_list(data.get("windowFunctions"), "windowFunctions"))
            ),
            advanced_windows=tuple(
                AdvancedWindow.from_dict(c, f"advancedWindows[{i}]")
                for i, c in enumerate(_as_list(data.get("advancedWindows"), "advancedWindows"))
            ),
            ctes=tuple(
                CTE.from_dict(c, f"ctes[{i}]")
                for i, c in enumerate(_as_list(data.get("ctes"), "ctes"))
            ),
            recursive_ctes=tuple(
                RecursiveCTE.from_dict(c, f"recursiveCtes[{i}]")
                for i, c in enumerate(_as_list(data.get("recursiveCtes"), "recursiveCtes"))
            ),
            transforms=TransformConfig.from_dict(transforms) if transforms else None,
            cache=CacheConfig.from_dict(cache) if cache else None,
            validation=ValidationRules.from_dict(validation) if validation else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Render the wire shape, omitting empty fields.

        Callables (cache conditions, computed transforms) are not rendered.
        """
        out: dict[str, Any] = {}
        if self.filter:
            out["filter"] = dict(self.filter)
        if self.where_raw:
            out["whereRaw"] = [c.to_dict() for c in self.where_raw]
        if self.where_between:
            out["whereBetween"] = [c.to_dict() for c in self.where_between]
        if self.where_null:
            out["whereNull"] = list(self.where_null)
        if self.where_not_null:
            out["whereNotNull"] = list(self.where_not_null)
        if self.where_in:
            out["whereIn"] = {k: list(v) for k, v in self.where_in.items()}
        if self.where_not_in:
            out["whereNotIn"] = {k: list(v) for k, v in self.where_not_in.items()}
        if self.where_exists:
            out["whereExists"] = [e.to_dict() for e in self.where_exists]
        if self.where_groups:
            out["whereGroups"] = [g.to_dict() for g in self.where_groups]
        if self.order_by:
            out["orderBy"] = [o.to_dict() for o in self.order_by]
        if self.group_by:
            out["groupBy"] = list(self.group_by)
        if self.having:
            out["having"] = [h.to_dict() for h in self.having]
        if self.aggregates:
            out["aggregates"] = [a.to_dict() for a in self.aggregates]
        if self.raw_expressions:
            out["rawExpressions"] = [e.to_dict() for e in self.raw_expressions]
        if self.limit is not None:
            out["limit"] = self.limit
        out["offset"] = self.offset
        if self.window_functions:
            out["windowFunctions"] = [w.to_dict() for w in self.window_functions]
        if self.ctes:
            out["ctes"] = [c.to_dict() for c in self.ctes]
        if self.recursive_ctes:
            out["recursiveCtes"] = [c.to_dict() for c in self.recursive_ctes]
        if self.advanced_windows:
            out["advancedWindows"] = [w.to_dict() for w in self.advanced_windows]
        if self.transforms is not None:
            out["transforms"] = self.transforms.to_dict()
        if self.cache is not None:
            out["cache"] = self.cache.to_dict()
        if self.validation is not None:
            out["validation"] = self.validation.to_dict()
        return out

