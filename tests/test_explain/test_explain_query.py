"""Tests for explain_query()."""

from __future__ import annotations

import json

import pytest

from sqla_rls.exceptions import UnsupportedFeatureError
from sqla_rls.explain import explain_query


class TestExplainQuery:
    def test_operations_and_sql(self) -> None:
        result = explain_query(
            "employees",
            {"filter": {"dept": "eng"}, "orderBy": [{"field": "salary", "direction": "desc"}]},
        )
        assert result.table == "employees"
        assert result.operations == ["where_equals", "order_by", "limit"]
        assert "WHERE dept = 'eng'" in result.sql
        assert "LIMIT 10" in result.sql

    def test_raw_bindings_render_as_literals(self) -> None:
        result = explain_query(
            "employees", {"rawExpressions": [{"sql": "salary > ?", "bindings": [100]}]}
        )
        assert "(salary > 100)" in result.sql

    def test_violations_are_reported_not_raised(self) -> None:
        result = explain_query(
            "employees",
            {"limit": 500, "validation": {"maxLimit": 50, "requiredFields": ["dept"]}},
        )
        assert result.valid is False
        assert result.violations == [
            "Limit exceeds maximum allowed value of 50",
            "Missing required field: dept",
        ]

    def test_complexity(self) -> None:
        result = explain_query("employees", {"whereIn": {"dept": ["eng"]}, "groupBy": ["dept"]})
        assert result.complexity == 4

    def test_to_dict_is_json_serializable(self) -> None:
        result = explain_query("employees", {"whereNull": ["manager_id"]})
        data = json.loads(json.dumps(result.to_dict()))
        assert data["valid"] is True
        assert data["operations"] == ["where_null", "limit"]

    def test_str(self) -> None:
        text = str(explain_query("employees", {"whereNull": ["manager_id"]}))
        assert text.startswith("Query Explanation for table='employees'")
        assert "0. where_null" in text
        assert "IS NULL" in text

    def test_unknown_operator_raises(self) -> None:
        with pytest.raises(UnsupportedFeatureError):
            explain_query("employees", {"whereRaw": [{"field": "a", "operator": "~~", "value": 1}]})
