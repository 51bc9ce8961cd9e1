"""Tests for the exception hierarchy."""

from __future__ import annotations

import pytest

from sqla_rls.exceptions import (
    AccessDeniedError,
    MissingContextError,
    OperationNotAllowedError,
    RlsError,
    UnsupportedFeatureError,
    ValidationError,
)


@pytest.mark.parametrize(
    "exc",
    [
        ValidationError(["x"]),
        OperationNotAllowedError(table="t", operation="SELECT"),
        AccessDeniedError(table="t", operation="SELECT", user="u"),
        MissingContextError(key="k"),
        UnsupportedFeatureError("nope"),
    ],
)
def test_everything_is_an_rls_error(exc: Exception) -> None:
    assert isinstance(exc, RlsError)


class TestMessages:
    def test_validation_error_keeps_every_violation(self) -> None:
        exc = ValidationError(["Missing required field: a", "Missing required field: b"])
        assert exc.violations == ["Missing required field: a", "Missing required field: b"]
        assert str(exc) == (
            "Query validation failed: Missing required field: a, Missing required field: b"
        )

    def test_validation_error_custom_message(self) -> None:
        assert str(ValidationError(["x"], message="Invalid request body")) == "Invalid request body"

    def test_operation_not_allowed(self) -> None:
        exc = OperationNotAllowedError(table="posts", operation="DELETE")
        assert str(exc) == 'Operation "DELETE" not allowed on table "posts"'
        assert (exc.table, exc.operation) == ("posts", "DELETE")

    def test_access_denied(self) -> None:
        exc = AccessDeniedError(table="posts", operation="SELECT", user="u1")
        assert str(exc) == (
            "User 'u1' does not have permission to perform operation \"SELECT\" on table \"posts\""
        )
        assert exc.user == "u1"

    def test_missing_context(self) -> None:
        assert str(MissingContextError(key="userId")) == "Missing context value for key: userId"
