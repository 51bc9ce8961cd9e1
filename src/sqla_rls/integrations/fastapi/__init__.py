"""FastAPI integration for sqla-rls."""

from __future__ import annotations

try:
    import fastapi as _fastapi_check  # noqa: F401  # pyright: ignore[reportUnusedImport]

    del _fastapi_check
except ImportError as exc:
    raise ImportError(
        "FastAPI integration requires fastapi. Install it with: pip install sqla-rls[fastapi]"
    ) from exc

from sqla_rls.integrations.fastapi._dependencies import RlsQuery, get_executor, get_user
from sqla_rls.integrations.fastapi._errors import install_error_handlers

__all__ = [
    "RlsQuery",
    "get_executor",
    "get_user",
    "install_error_handlers",
]
