"""Exception hierarchy for sqla-rls."""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "AccessDeniedError",
    "MissingContextError",
    "OperationNotAllowedError",
    "RlsError",
    "UnsupportedFeatureError",
    "ValidationError",
]


class RlsError(Exception):
    """Base exception for all sqla-rls errors."""


class ValidationError(RlsError):
    """The query IR broke one or more validation rules.

    All violations are collected before raising, so callers see the
    complete list in one round trip.

    Attributes:
        violations: Human-readable description of every failed check.

    Example::

        try:
            check_query(ir)
        except ValidationError as exc:
            for violation in exc.violations:
                print(violation)
    """

    def __init__(self, violations: Sequence[str], *, message: str | None = None) -> None:
        self.violations = list(violations)
        if message is None:
            message = "Query validation failed: " + ", ".join(self.violations)
        super().__init__(message)


class OperationNotAllowedError(RlsError):
    """The table has no permission entry for the requested operation.

    Distinct from an entry with an empty rule list, which means
    "no restriction".

    Attributes:
        table: The table that was accessed.
        operation: The operation (``SELECT``, ``INSERT``, ...).
    """

    def __init__(self, *, table: str, operation: str, message: str | None = None) -> None:
        self.table = table
        self.operation = operation
        if message is None:
            message = f'Operation "{operation}" not allowed on table "{table}"'
        super().__init__(message)


class AccessDeniedError(RlsError):  # noqa: N818
    """The rule list evaluated to deny for the whole operation.

    Attributes:
        table: The table that was accessed.
        operation: The operation that was attempted.
        user: The user context that was denied.

    Example::

        try:
            await gate.authorize_rows("posts", "SELECT", rows, user)
        except AccessDeniedError as exc:
            print(f"{exc.user} cannot {exc.operation} {exc.table}")
    """

    def __init__(
        self,
        *,
        table: str,
        operation: str,
        user: object,
        message: str | None = None,
    ) -> None:
        self.table = table
        self.operation = operation
        self.user = user
        if message is None:
            message = (
                f'User {user!r} does not have permission to perform operation '
                f'"{operation}" on table "{table}"'
            )
        super().__init__(message)


class MissingContextError(RlsError):
    """A customSql template references a user-context field that is undefined.

    Attributes:
        key: The placeholder name that could not be resolved.
    """

    def __init__(self, *, key: str) -> None:
        self.key = key
        super().__init__(f"Missing context value for key: {key}")


class UnsupportedFeatureError(RlsError):
    """The IR or a rule references something the compiler does not know.

    Raised for unknown aggregate, window, operator or column value
    types instead of silently dropping the clause.
    """
