"""Tests for the typed row-value model."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from sqla_rls._types import ValueKind, strict_equals, value_kind
from sqla_rls.exceptions import UnsupportedFeatureError


class TestValueKind:
    @pytest.mark.parametrize(
        ("value", "kind"),
        [
            (None, ValueKind.NULL),
            (True, ValueKind.BOOL),
            (3, ValueKind.NUMBER),
            (Decimal("1.5"), ValueKind.NUMBER),
            ("a", ValueKind.STRING),
            (b"a", ValueKind.BYTES),
            (dt.date(2024, 1, 1), ValueKind.DATETIME),
            ({"a": 1}, ValueKind.JSON),
        ],
    )
    def test_classification(self, value: object, kind: ValueKind) -> None:
        assert value_kind(value) is kind

    def test_unsupported(self) -> None:
        with pytest.raises(UnsupportedFeatureError):
            value_kind(object())


class TestStrictEquals:
    def test_same_kind(self) -> None:
        assert strict_equals(1, 1.0)
        assert strict_equals(b"a", bytearray(b"a"))
        assert strict_equals(None, None)

    def test_different_kinds(self) -> None:
        assert not strict_equals(1, True)
        assert not strict_equals("1", 1)
        assert not strict_equals(None, 0)
