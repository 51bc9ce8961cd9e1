"""UserContext — who is asking."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

__all__ = ["UserContext"]

_MISSING: Any = object()


@dataclass(frozen=True, slots=True)
class UserContext:
    """The caller a permission decision is made for.

    Attributes:
        user_id: Identity; ``None`` means a guest.
        labels: Labels the user carries.
        teams: Teams the user belongs to.
        role: Optional single role.
        permissions: Optional explicit permission names.
        attributes: Extra values reachable from ``fieldCheck`` and
            ``customSql`` by name.

    Example::

        user = UserContext(user_id=5, labels=frozenset({"beta"}), role="editor")
        user.is_guest  # False
    """

    user_id: int | str | None = None
    labels: frozenset[str] = frozenset()
    teams: frozenset[str] = frozenset()
    role: str | None = None
    permissions: frozenset[str] | None = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    def lookup(self, name: str, default: Any = _MISSING) -> Any:
        """Return a context value by wire name (``userId``, ``labels``, ...).

        Snake-case names and ``attributes`` keys are accepted as well.
        Returns *default* (or raises ``KeyError``) when the name is unknown.
        """
        if name in ("userId", "user_id"):
            return self.user_id
        if name == "labels":
            return sorted(self.labels)
        if name == "teams":
            return sorted(self.teams)
        if name == "role":
            return self.role
        if name == "permissions":
            return sorted(self.permissions) if self.permissions is not None else None
        if name in self.attributes:
            return self.attributes[name]
        if default is _MISSING:
            raise KeyError(name)
        return default

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> UserContext:
        """Build a context from the wire shape ``{"userId", "labels", "teams", ...}``."""
        known = {"userId", "user_id", "labels", "teams", "role", "permissions"}
        permissions = data.get("permissions")
        return cls(
            user_id=data.get("userId", data.get("user_id")),
            labels=frozenset(data.get("labels") or ()),
            teams=frozenset(data.get("teams") or ()),
            role=data.get("role"),
            permissions=frozenset(permissions) if permissions is not None else None,
            attributes={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "userId": self.user_id,
            "labels": sorted(self.labels),
            "teams": sorted(self.teams),
        }
        if self.role is not None:
            out["role"] = self.role
        if self.permissions is not None:
            out["permissions"] = sorted(self.permissions)
        out.update(self.attributes)
        return out
