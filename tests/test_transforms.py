"""Tests for the post-query row transforms."""

from __future__ import annotations

import pytest

from sqla_rls._transforms import (
    apply_transforms,
    compute_columns,
    flatten_rows,
    group_rows,
    pivot_rows,
    select_fields,
)
from sqla_rls.exceptions import UnsupportedFeatureError
from sqla_rls.ir import Aggregate, PivotConfig, QueryIR

SALES = [
    {"region": "eu", "quarter": "q1", "sales": 10},
    {"region": "eu", "quarter": "q2", "sales": 7},
    {"region": "eu", "quarter": "q1", "sales": 5},
    {"region": "us", "quarter": "q2", "sales": 3},
]


class TestPivot:
    def test_sum_per_value(self) -> None:
        pivot = PivotConfig("quarter", ("q1", "q2"), Aggregate("sum", "sales"))
        assert pivot_rows(SALES, pivot) == [
            {"region": "eu", "q1": 15, "q2": 7},
            {"region": "us", "q1": None, "q2": 3},
        ]

    def test_values_restrict_columns(self) -> None:
        pivot = PivotConfig("quarter", ("q2",), Aggregate("count", "sales"))
        assert pivot_rows(SALES, pivot) == [{"region": "eu", "q2": 1}, {"region": "us", "q2": 1}]

    def test_without_values_every_value_becomes_a_column(self) -> None:
        pivot = PivotConfig("quarter", (), Aggregate("max", "sales"))
        assert pivot_rows(SALES, pivot)[0] == {"region": "eu", "q1": 10, "q2": 7}

    def test_avg_ignores_nulls(self) -> None:
        rows = [{"k": "a", "p": "x", "v": 2}, {"k": "a", "p": "x", "v": None}, {"k": "a", "p": "x", "v": 4}]
        assert pivot_rows(rows, PivotConfig("p", (), Aggregate("avg", "v"))) == [{"k": "a", "x": 3}]

    def test_unknown_aggregate(self) -> None:
        with pytest.raises(UnsupportedFeatureError):
            pivot_rows(SALES, PivotConfig("quarter", (), Aggregate("median", "sales")))


class TestOtherTransforms:
    def test_compute(self) -> None:
        rows = compute_columns([{"a": 2}], {"double": lambda r: r["a"] * 2})
        assert rows == [{"a": 2, "double": 4}]

    def test_group_keeps_first_and_counts(self) -> None:
        assert group_rows(SALES, ["region"]) == [
            {"region": "eu", "quarter": "q1", "sales": 10, "_count": 3},
            {"region": "us", "quarter": "q2", "sales": 3, "_count": 1},
        ]

    def test_group_distinguishes_types(self) -> None:
        assert len(group_rows([{"k": 1}, {"k": "1"}], ["k"])) == 2

    def test_flatten(self) -> None:
        rows = flatten_rows([{"id": 1, "meta": {"a": 1, "b": {"c": 2}}, "empty": {}}])
        assert rows == [{"id": 1, "meta_a": 1, "meta_b_c": 2, "empty": {}}]

    def test_select_skips_missing_fields(self) -> None:
        assert select_fields([{"a": 1, "b": 2}], ["b", "z"]) == [{"b": 2}]


class TestApplyTransforms:
    def test_none_copies_rows(self) -> None:
        rows = [{"a": 1}]
        out = apply_transforms(rows, None)
        assert out == rows
        assert out[0] is not rows[0]

    def test_order_compute_then_pivot_then_select(self) -> None:
        ir = QueryIR.from_dict(
            {
                "transforms": {
                    "compute": {"half": lambda r: r["sales"] / 2},
                    "pivot": {
                        "column": "quarter",
                        "values": ["q1"],
                        "aggregate": {"type": "sum", "field": "half"},
                    },
                    "select": ["q1"],
                }
            }
        )
        rows = [{"quarter": "q1", "sales": 10}, {"quarter": "q1", "sales": 4}]
        # "sales" differs, so each row pivots on its own.
        assert apply_transforms(rows, ir.transforms) == [{"q1": 5.0}, {"q1": 2.0}]
