"""Shared type aliases and the typed row-value model for sqla-rls."""

from __future__ import annotations

import datetime as _dt
import enum
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Literal

from sqla_rls.exceptions import UnsupportedFeatureError

__all__ = [
    "AggregateType",
    "BooleanOp",
    "Decision",
    "FieldOperator",
    "OnWriteDenied",
    "OPERATIONS",
    "Row",
    "RuleKind",
    "SortDirection",
    "TableOperation",
    "ValueKind",
    "strict_equals",
    "value_kind",
]

# Storage operations a TablePermissions entry can cover.
TableOperation = Literal["SELECT", "INSERT", "UPDATE", "DELETE"]
OPERATIONS: tuple[TableOperation, ...] = ("SELECT", "INSERT", "UPDATE", "DELETE")

RuleKind = Literal[
    "public",
    "private",
    "role",
    "auth",
    "guest",
    "labels",
    "teams",
    "static",
    "fieldCheck",
    "customSql",
]

FieldOperator = Literal["===", "!==", "in", "notIn"]

AggregateType = Literal["count", "sum", "avg", "min", "max"]

BooleanOp = Literal["AND", "OR"]

SortDirection = Literal["asc", "desc"]

# Valid values for RlsConfig.on_write_denied.
OnWriteDenied = Literal["raise", "filter"]

# A result row or write payload: column name -> value.
Row = Mapping[str, Any]


class Decision(enum.Enum):
    """Outcome of a single permission rule.

    ``CONTINUE`` means the rule carried no applicable signal and the
    next rule in the list is consulted.
    """

    ALLOW = "allow"
    DENY = "deny"
    CONTINUE = "continue"


class ValueKind(enum.Enum):
    """Tag attached to a row value before it is compared."""

    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    BYTES = "bytes"
    DATETIME = "datetime"
    JSON = "json"


def value_kind(value: Any) -> ValueKind:
    """Classify a Python value into a :class:`ValueKind`.

    ``bool`` is checked before numbers because it subclasses ``int``.

    Raises:
        UnsupportedFeatureError: If the value has no column-type mapping.
    """
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float, Decimal)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BYTES
    if isinstance(value, (_dt.datetime, _dt.date, _dt.time)):
        return ValueKind.DATETIME
    if isinstance(value, (dict, list, tuple)):
        return ValueKind.JSON
    raise UnsupportedFeatureError(f"Unsupported column value type: {type(value).__name__}")


def strict_equals(left: Any, right: Any) -> bool:
    """Compare two values only when they carry the same :class:`ValueKind`.

    ``1 == True`` and ``"1" == 1`` are therefore both false.
    """
    left_kind = value_kind(left)
    if left_kind is not value_kind(right):
        return False
    if left_kind is ValueKind.BYTES:
        return bytes(left) == bytes(right)
    return bool(left == right)
