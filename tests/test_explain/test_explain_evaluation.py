"""Tests for explain_evaluation() and its models."""

from __future__ import annotations

import json

from sqla_rls.explain import explain_evaluation
from sqla_rls.policy import LabelsRule, PrivateRule, PublicRule, RoleRule, parse_rule
from sqla_rls.testing import make_admin, make_user

OWNER = parse_rule(
    {
        "allow": "fieldCheck",
        "fieldCheck": {"field": "owner_id", "operator": "===", "valueType": "userContext", "value": "userId"},
    }
)


class TestExplainEvaluation:
    def test_allowed_by_first_rule(self) -> None:
        result = explain_evaluation([PublicRule(), PrivateRule()], make_user())
        assert result.allowed is True
        assert result.deny_by_default is False
        assert result.rules_found == 2
        assert [e.decision for e in result.evaluations] == ["allow"]

    def test_trace_stops_at_first_decision(self) -> None:
        rules = [LabelsRule(labels=frozenset({"x"})), RoleRule(roles=("admin",)), PublicRule()]
        result = explain_evaluation(rules, make_user())
        assert [(e.kind, e.decision) for e in result.evaluations] == [
            ("labels", "continue"),
            ("role", "deny"),
        ]
        assert result.allowed is False
        assert result.deny_by_default is False

    def test_deny_by_default(self) -> None:
        result = explain_evaluation([OWNER], make_user(1), {"owner_id": 2})
        assert result.allowed is False
        assert result.deny_by_default is True
        assert result.row == {"owner_id": 2}

    def test_empty_list_is_deny_by_default(self) -> None:
        result = explain_evaluation([], make_admin())
        assert result.allowed is False
        assert result.deny_by_default is True
        assert result.evaluations == []

    def test_rule_wire_form(self) -> None:
        result = explain_evaluation([OWNER], make_user(1), {"owner_id": 1})
        assert result.evaluations[0].rule["fieldCheck"]["value"] == "userId"

    def test_to_dict_is_json_serializable(self) -> None:
        result = explain_evaluation([OWNER], make_user(1), {"owner_id": 1})
        data = json.loads(json.dumps(result.to_dict()))
        assert data["allowed"] is True
        assert data["evaluations"][0]["kind"] == "fieldCheck"

    def test_str(self) -> None:
        text = str(explain_evaluation([OWNER], make_user(1), {"owner_id": 2}))
        assert text.startswith("Rule Evaluation: DENIED")
        assert "0. fieldCheck [CONTINUE]" in text
        assert "DENY BY DEFAULT (no rule decided)" in text
