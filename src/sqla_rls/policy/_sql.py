"""customSql support — predicate templates evaluated by the database."""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import Engine, bindparam, text

from sqla_rls._types import Row

__all__ = [
    "ExecutablePredicate",
    "PredicateCompiler",
    "SqlPredicateCompiler",
    "context_placeholders",
    "row_placeholders",
]

ExecutablePredicate = Callable[[Row], bool]

_PLACEHOLDER_RE = re.compile(r"(?<![:\w\\]):([A-Za-z_][A-Za-z0-9_]*)")
_ROW_PREFIX = "row_"


def _placeholders(template: str) -> list[str]:
    seen: dict[str, None] = {}
    for match in _PLACEHOLDER_RE.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)


def context_placeholders(template: str) -> list[str]:
    """User-context names a template references (``:userId``, ``:teams``)."""
    return [p for p in _placeholders(template) if not p.startswith(_ROW_PREFIX)]


def row_placeholders(template: str) -> list[str]:
    """Row fields a template references, without the ``row_`` prefix."""
    return [p[len(_ROW_PREFIX) :] for p in _placeholders(template) if p.startswith(_ROW_PREFIX)]


@runtime_checkable
class PredicateCompiler(Protocol):
    """Turns a customSql template plus resolved context into a row predicate."""

    def compile_predicate(
        self, template: str, context: Mapping[str, Any]
    ) -> ExecutablePredicate: ...


class SqlPredicateCompiler:
    """Evaluate customSql templates with ``SELECT 1 WHERE (<template>)``.

    Context values are bound parameters (lists expand), never spliced
    into the SQL text. Row values are available as ``:row_<field>``.
    Predicates block on the engine; :class:`AuthorizationGate` calls
    them from a worker thread.

    Args:
        engine: A synchronous SQLAlchemy ``Engine``.

    Example::

        compiler = SqlPredicateCompiler(create_engine("sqlite://"))
        predicate = compiler.compile_predicate(
            ":row_team IN :teams", {"teams": ["red", "blue"]}
        )
        predicate({"team": "red"})  # True
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def compile_predicate(self, template: str, context: Mapping[str, Any]) -> ExecutablePredicate:
        context_names = context_placeholders(template)
        row_fields = row_placeholders(template)
        sql = f"SELECT 1 WHERE ({template})"
        engine = self._engine

        def predicate(row: Row) -> bool:
            params = []
            for name in context_names:
                value = context[name]
                expanding = isinstance(value, (list, tuple, set, frozenset))
                params.append(
                    bindparam(name, list(value) if expanding else value, expanding=expanding)
                )
            for name in row_fields:
                params.append(bindparam(_ROW_PREFIX + name, row.get(name)))
            stmt = text(sql).bindparams(*params)
            with engine.connect() as conn:
                return conn.execute(stmt).first() is not None

        return predicate
