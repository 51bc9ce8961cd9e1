"""User context factories for testing sqla-rls rules."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqla_rls.policy._context import UserContext

__all__ = ["make_admin", "make_guest", "make_user"]


def make_user(
    user_id: int | str = 1,
    *,
    role: str | None = "user",
    labels: Iterable[str] = (),
    teams: Iterable[str] = (),
    permissions: Iterable[str] | None = None,
    **attributes: Any,
) -> UserContext:
    """Create an identified ``UserContext``.

    Extra keyword arguments become ``attributes`` reachable from
    ``fieldCheck`` and ``customSql`` rules.

    Example::

        user = make_user(5, teams=["blue"], tenant_id=3)
        assert user.lookup("tenant_id") == 3
    """
    return UserContext(
        user_id=user_id,
        labels=frozenset(labels),
        teams=frozenset(teams),
        role=role,
        permissions=frozenset(permissions) if permissions is not None else None,
        attributes=attributes,
    )


def make_admin(user_id: int | str = 1) -> UserContext:
    """Create a ``UserContext`` with ``role="admin"``.

    Example::

        admin = make_admin()
        assert admin.role == "admin"
    """
    return UserContext(user_id=user_id, role="admin")


def make_guest() -> UserContext:
    """Create a guest ``UserContext`` (no ``user_id``).

    Example::

        assert make_guest().is_guest
    """
    return UserContext()
