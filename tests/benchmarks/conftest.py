"""Benchmark fixtures — query IRs, rule lists and row batches."""

from __future__ import annotations

from typing import Any

import pytest

from sqla_rls.ir import QueryIR
from sqla_rls.policy import (
    FieldCheck,
    FieldCheckRule,
    LabelsRule,
    RoleRule,
    TeamsRule,
)
from sqla_rls.testing import make_user

# ---------------------------------------------------------------------------
# Query IRs
# ---------------------------------------------------------------------------


@pytest.fixture()
def simple_ir() -> QueryIR:
    return QueryIR.from_dict({"filter": {"status": "active"}, "limit": 20})


@pytest.fixture()
def complex_ir() -> QueryIR:
    return QueryIR.from_dict(
        {
            "filter": {"status": "active"},
            "whereBetween": [{"field": "salary", "value": [50, 150]}],
            "whereIn": {"dept": ["eng", "ops", "sales"]},
            "whereGroups": [
                {
                    "type": "OR",
                    "clauses": [
                        {"field": "age", "operator": ">", "value": 30},
                        {
                            "type": "AND",
                            "clauses": [
                                {"field": "level", "operator": ">=", "value": 2},
                                {"field": "remote", "operator": "=", "value": True},
                            ],
                        },
                    ],
                }
            ],
            "windowFunctions": [
                {"type": "rank", "alias": "pos", "orderBy": [{"field": "salary"}]}
            ],
            "orderBy": [{"field": "salary", "direction": "desc"}],
            "limit": 50,
            "offset": 10,
        }
    )


# ---------------------------------------------------------------------------
# Rules and rows
# ---------------------------------------------------------------------------


@pytest.fixture()
def rule_chain() -> list[Any]:
    """Rules where the last one is the first to decide."""
    return [
        LabelsRule(frozenset({"audit"})),
        TeamsRule(frozenset({"platform"})),
        FieldCheckRule(FieldCheck("owner_id", "===", "userContext", "userId")),
        RoleRule(("user",)),
    ]


@pytest.fixture()
def owner_rule() -> list[Any]:
    return [FieldCheckRule(FieldCheck("owner_id", "===", "userContext", "userId"))]


@pytest.fixture()
def bench_user():
    return make_user(7, labels=["staff"], teams=["eng"])


@pytest.fixture()
def row_batch() -> list[dict[str, Any]]:
    return [{"id": i, "owner_id": i % 10, "status": "active"} for i in range(1000)]
