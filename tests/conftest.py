"""Shared test fixtures for sqla-rls tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio
from sqlalchemy import Column, Engine, Integer, MetaData, String, Table, create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from sqla_rls.config._config import _reset_global_config
from sqla_rls.policy._rules import TablePermissions
from sqla_rls.testing._fixtures import (  # noqa: F401
    fake_clock,
    memory_store,
    permission_store,
    rls_config,
)

# ---------------------------------------------------------------------------
# Test schema
# ---------------------------------------------------------------------------

metadata = MetaData()

employees = Table(
    "employees",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(100)),
    Column("dept", String(50)),
    Column("salary", Integer),
    Column("owner_id", Integer),
    Column("manager_id", Integer, nullable=True),
)

numbers = Table(
    "numbers",
    metadata,
    Column("n", Integer, primary_key=True),
)

EMPLOYEES = [
    {"id": 1, "name": "alice", "dept": "eng", "salary": 120, "owner_id": 1, "manager_id": None},
    {"id": 2, "name": "bob", "dept": "eng", "salary": 100, "owner_id": 2, "manager_id": 1},
    {"id": 3, "name": "carol", "dept": "ops", "salary": 90, "owner_id": 1, "manager_id": 1},
    {"id": 4, "name": "dave", "dept": "ops", "salary": 80, "owner_id": 3, "manager_id": 3},
    {"id": 5, "name": "erin", "dept": "sales", "salary": 70, "owner_id": 2, "manager_id": None},
]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def owner_perms() -> TablePermissions:
    """Every operation is limited to rows whose owner_id is the caller."""
    own_rows = {
        "allow": "fieldCheck",
        "fieldCheck": {
            "field": "owner_id",
            "operator": "===",
            "valueType": "userContext",
            "value": "userId",
        },
    }
    return TablePermissions.from_dict(
        {
            "operations": {
                "SELECT": [own_rows],
                "INSERT": [own_rows],
                "UPDATE": [own_rows],
                "DELETE": [own_rows],
            }
        }
    )


@pytest.fixture(autouse=True)
def _clean_global_config() -> Iterator[None]:
    _reset_global_config()
    yield
    _reset_global_config()


@pytest_asyncio.fixture()
async def engine() -> AsyncIterator[AsyncEngine]:
    """In-memory aiosqlite engine seeded with ``employees`` and ``numbers``."""
    eng = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with eng.begin() as conn:
        await conn.run_sync(metadata.create_all)
        await conn.execute(employees.insert(), EMPLOYEES)
        await conn.execute(numbers.insert(), [{"n": i} for i in range(1, 6)])
    yield eng
    await eng.dispose()


@pytest.fixture()
def schema() -> MetaData:
    """The declared test tables (``employees``, ``numbers``)."""
    return metadata


@pytest.fixture()
def employee_rows() -> list[dict]:
    return [dict(r) for r in EMPLOYEES]


@pytest.fixture()
def sync_engine() -> Iterator[Engine]:
    """Plain in-memory SQLite engine for customSql predicates.

    The gate evaluates customSql in a worker thread, so the one
    connection is shared across threads.
    """
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield eng
    eng.dispose()
