"""sqla-rls testing utilities — user factories, clocks, assertions and fixtures.

Provides test helpers for verifying queries and permission rules:

- **User factories**: ``make_user``, ``make_admin``, ``make_guest``.
- **Clock**: ``FakeClock`` for cache expiry.
- **Assertion helpers**: ``assert_clause_order``, ``assert_allowed``,
  ``assert_denied``, ``assert_sql_contains``.
- **Fixtures**: ``rls_config``, ``permission_store``, ``memory_store``,
  ``fake_clock``.

Example::

    from sqla_rls.policy import RoleRule
    from sqla_rls.testing import assert_allowed, make_admin

    def test_admin_allowed():
        assert_allowed([RoleRule(("admin",))], make_admin())
"""

from sqla_rls.testing._actors import make_admin, make_guest, make_user
from sqla_rls.testing._assertions import (
    assert_allowed,
    assert_clause_order,
    assert_denied,
    assert_sql_contains,
)
from sqla_rls.testing._clock import FakeClock
from sqla_rls.testing._fixtures import (
    fake_clock,
    memory_store,
    permission_store,
    rls_config,
)
from sqla_rls.testing._isolation import isolated_config

__all__ = [
    "FakeClock",
    "assert_allowed",
    "assert_clause_order",
    "assert_denied",
    "assert_sql_contains",
    "fake_clock",
    "isolated_config",
    "make_admin",
    "make_guest",
    "make_user",
    "memory_store",
    "permission_store",
    "rls_config",
]
