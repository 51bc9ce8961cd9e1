"""AuthorizationGate — table-level and row-level enforcement per operation."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import TypeVar

from sqla_rls._audit import log_rule_trace, log_table_decision
from sqla_rls._types import OPERATIONS, Decision, Row
from sqla_rls.config._config import RlsConfig, get_global_config
from sqla_rls.exceptions import AccessDeniedError, OperationNotAllowedError
from sqla_rls.policy._context import UserContext
from sqla_rls.policy._evaluator import has_field_check, trace
from sqla_rls.policy._rules import CustomSqlRule, PermissionRule
from sqla_rls.policy._sql import PredicateCompiler
from sqla_rls.policy._store import PermissionStore

__all__ = ["AuthorizationGate"]

T = TypeVar("T")


class AuthorizationGate:
    """Apply a table's permission rules to reads and writes.

    Per table and operation the entry is fetched fresh from *store*:

    - no entry for the operation: :class:`OperationNotAllowedError`;
    - an empty rule list: everything is allowed;
    - a list containing a ``fieldCheck`` rule: each row is evaluated and
      rows that fail are dropped without an error;
    - otherwise the rules are evaluated once without a row: allow passes
      everything, deny raises :class:`AccessDeniedError`.

    ``customSql`` predicates may query the database through a blocking
    compiler, so rule lists containing them are evaluated in a worker
    thread (:func:`asyncio.to_thread`) and awaited.

    Writes are decided before the write is issued. With
    ``on_write_denied="raise"`` a single disallowed record rejects the
    whole batch; with ``"filter"`` disallowed records are dropped.

    Args:
        store: Where permissions are read from.
        predicate_compiler: Needed only for ``customSql`` rules.
        config: Defaults to the global config.

    Example::

        gate = AuthorizationGate(MemoryPermissionStore({"posts": perms}))
        visible = await gate.authorize_rows("posts", "SELECT", rows, user)
    """

    def __init__(
        self,
        store: PermissionStore,
        *,
        predicate_compiler: PredicateCompiler | None = None,
        config: RlsConfig | None = None,
    ) -> None:
        self._store = store
        self._predicate_compiler = predicate_compiler
        self._config = config

    @property
    def store(self) -> PermissionStore:
        return self._store

    @property
    def config(self) -> RlsConfig:
        return self._config if self._config is not None else get_global_config()

    async def rules_for(
        self, table: str, operation: str, user: UserContext | None = None
    ) -> tuple[PermissionRule, ...]:
        """Fetch the rule list for *table*/*operation*.

        Raises:
            OperationNotAllowedError: No entry exists for the operation.
        """
        operation = operation.upper()
        if operation not in OPERATIONS:
            raise OperationNotAllowedError(table=table, operation=operation)
        permissions = await self._store.get_rules_for_table(table)
        rules = permissions.rules_for(operation) if permissions is not None else None
        if rules is None:
            if self.config.log_policy_decisions and user is not None:
                log_table_decision(
                    table=table, operation=operation, user=user, outcome="not_allowed"
                )
            raise OperationNotAllowedError(table=table, operation=operation)
        return rules

    def _allowed(
        self,
        table: str,
        operation: str,
        rules: Sequence[PermissionRule],
        user: UserContext,
        row: Row | None,
    ) -> bool:
        steps = trace(rules, user, row, predicate_compiler=self._predicate_compiler)
        if self.config.log_policy_decisions:
            log_rule_trace(table=table, operation=operation, steps=steps)
        return bool(steps) and steps[-1].decision is Decision.ALLOW

    def check_rules(
        self,
        table: str,
        operation: str,
        rules: Sequence[PermissionRule],
        rows: Iterable[Row],
        user: UserContext,
    ) -> list[Row]:
        """Apply an already fetched rule list to *rows* (read semantics)."""
        rows = list(rows)
        log = self.config.log_policy_decisions
        if not rules:
            if log:
                log_table_decision(
                    table=table, operation=operation, user=user, outcome="allow", rule_count=0
                )
            return rows

        if has_field_check(rules):
            kept = [row for row in rows if self._allowed(table, operation, rules, user, row)]
            if log:
                log_table_decision(
                    table=table,
                    operation=operation,
                    user=user,
                    outcome="filter",
                    rule_count=len(rules),
                    kept=len(kept),
                    total=len(rows),
                )
            return kept

        if not self._allowed(table, operation, rules, user, None):
            if log:
                log_table_decision(
                    table=table, operation=operation, user=user, outcome="deny",
                    rule_count=len(rules),
                )
            raise AccessDeniedError(table=table, operation=operation, user=user)
        if log:
            log_table_decision(
                table=table, operation=operation, user=user, outcome="allow",
                rule_count=len(rules),
            )
        return rows

    async def _check(
        self,
        table: str,
        operation: str,
        rules: Sequence[PermissionRule],
        rows: Iterable[Row],
        user: UserContext,
    ) -> list[Row]:
        if self._predicate_compiler is not None and any(
            isinstance(rule, CustomSqlRule) for rule in rules
        ):
            return await asyncio.to_thread(
                self.check_rules, table, operation, rules, list(rows), user
            )
        return self.check_rules(table, operation, rules, rows, user)

    async def authorize_rows(
        self,
        table: str,
        operation: str,
        rows: Iterable[Row],
        user: UserContext,
    ) -> list[Row]:
        """Return the rows *user* may see for *operation*.

        Raises:
            OperationNotAllowedError: No entry for the operation.
            AccessDeniedError: Non-row rules denied the operation.
        """
        operation = operation.upper()
        rules = await self.rules_for(table, operation, user)
        return await self._check(table, operation, rules, rows, user)

    async def authorize_write(
        self,
        table: str,
        operation: str,
        records: Iterable[Row],
        user: UserContext,
    ) -> list[Row]:
        """Decide a write payload before it is issued.

        Returns:
            The records that may be written. With
            ``on_write_denied="filter"`` this may be a subset.

        Raises:
            OperationNotAllowedError: No entry for the operation.
            AccessDeniedError: The operation is denied, or (with
                ``on_write_denied="raise"``) any record is disallowed.
        """
        operation = operation.upper()
        records = list(records)
        rules = await self.rules_for(table, operation, user)
        allowed = await self._check(table, operation, rules, records, user)
        denied = len(records) - len(allowed)
        if denied and self.config.on_write_denied == "raise":
            raise AccessDeniedError(
                table=table,
                operation=operation,
                user=user,
                message=(
                    f'{denied} of {len(records)} record(s) not permitted for operation '
                    f'"{operation}" on table "{table}"'
                ),
            )
        return allowed

    async def guarded_write(
        self,
        table: str,
        operation: str,
        records: Iterable[Row],
        user: UserContext,
        writer: Callable[[list[Row]], Awaitable[T]],
    ) -> T | None:
        """Authorize *records*, then call *writer* with the permitted ones.

        *writer* is never called when nothing may be written.
        """
        allowed = await self.authorize_write(table, operation, records, user)
        if not allowed:
            return None
        return await writer(allowed)
