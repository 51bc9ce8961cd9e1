"""FastAPI dependencies for sqla-rls queries."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastapi import Depends, Request

from sqla_rls.executor._executor import QueryExecutor
from sqla_rls.ir._params import parse_query_params
from sqla_rls.policy._context import UserContext

__all__ = ["RlsQuery", "get_executor", "get_user"]


# ---------------------------------------------------------------------------
# Sentinel dependency functions for DI-based configuration
# ---------------------------------------------------------------------------


def get_user(request: Request) -> UserContext | None:
    """Sentinel dependency — override via ``app.dependency_overrides[get_user]``.

    Raises ``NotImplementedError`` if not overridden, ensuring users
    configure their user-context provider before using ``RlsQuery``.
    Return ``None`` from the override to run queries unauthenticated.

    Example::

        from sqla_rls.integrations.fastapi import get_user

        app.dependency_overrides[get_user] = my_current_user_context
    """
    raise NotImplementedError(
        "Override get_user via app.dependency_overrides[get_user]."
    )


def get_executor(request: Request) -> QueryExecutor:
    """Sentinel dependency — override via ``app.dependency_overrides[get_executor]``.

    Example::

        app.dependency_overrides[get_executor] = lambda: executor
    """
    raise NotImplementedError(
        "Override get_executor via app.dependency_overrides[get_executor]."
    )


# ---------------------------------------------------------------------------
# Dependency builder
# ---------------------------------------------------------------------------


def _make_dependency(table: str | None, table_param: str) -> Callable[..., Any]:
    async def _resolve(
        request: Request,
        user: UserContext | None = Depends(get_user),
        executor: QueryExecutor = Depends(get_executor),
    ) -> list[dict[str, Any]]:
        name = table if table is not None else request.path_params[table_param]
        ir = parse_query_params(
            request.query_params, default_limit=executor.config.default_limit
        )
        return await executor.query(name, ir, user)

    return _resolve


def RlsQuery(table: str | None = None, *, table_param: str = "table") -> Any:  # noqa: N802
    """FastAPI dependency returning the authorized rows of a query.

    The query IR is decoded from the request's query string with
    :func:`~sqla_rls.ir.parse_query_params` and run through the
    executor from :func:`get_executor` for the user from
    :func:`get_user`. Errors surface as sqla-rls exceptions; pair with
    :func:`install_error_handlers` to turn them into HTTP responses.

    Args:
        table: Fixed table name. When ``None``, the table is read from
            the path parameter named *table_param*.
        table_param: Path parameter holding the table name.

    Returns:
        A FastAPI ``Depends`` instance.

    Example::

        @app.get("/posts")
        async def list_posts(rows: list[dict] = RlsQuery("posts")) -> list[dict]:
            return rows

        @app.get("/data/{table}")
        async def query_table(rows: list[dict] = RlsQuery()) -> list[dict]:
            return rows
    """
    return Depends(_make_dependency(table, table_param))
