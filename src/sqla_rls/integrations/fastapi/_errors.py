"""Exception handlers for FastAPI integration."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from sqla_rls.exceptions import (
    AccessDeniedError,
    MissingContextError,
    OperationNotAllowedError,
    UnsupportedFeatureError,
    ValidationError,
)

__all__ = ["install_error_handlers"]


def install_error_handlers(app: FastAPI) -> None:
    """Install exception handlers for sqla-rls errors on a FastAPI app.

    Converts errors into HTTP responses:

    - ``ValidationError`` -> 400 Bad Request (with ``violations``)
    - ``OperationNotAllowedError`` -> 403 Forbidden
    - ``AccessDeniedError`` -> 403 Forbidden
    - ``MissingContextError`` -> 500 Internal Server Error
    - ``UnsupportedFeatureError`` -> 400 Bad Request

    Args:
        app: The FastAPI application instance.

    Example::

        from fastapi import FastAPI
        from sqla_rls.integrations.fastapi import install_error_handlers

        app = FastAPI()
        install_error_handlers(app)
    """

    @app.exception_handler(ValidationError)
    async def validation_handler(  # pyright: ignore[reportUnusedFunction]
        request: object, exc: ValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc), "violations": exc.violations},
        )

    @app.exception_handler(OperationNotAllowedError)
    async def not_allowed_handler(  # pyright: ignore[reportUnusedFunction]
        request: object, exc: OperationNotAllowedError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=403,
            content={"detail": str(exc)},
        )

    @app.exception_handler(AccessDeniedError)
    async def access_denied_handler(  # pyright: ignore[reportUnusedFunction]
        request: object, exc: AccessDeniedError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=403,
            content={"detail": str(exc)},
        )

    @app.exception_handler(MissingContextError)
    async def missing_context_handler(  # pyright: ignore[reportUnusedFunction]
        request: object, exc: MissingContextError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc)},
        )

    @app.exception_handler(UnsupportedFeatureError)
    async def unsupported_handler(  # pyright: ignore[reportUnusedFunction]
        request: object, exc: UnsupportedFeatureError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc)},
        )
