"""Permission rules — a tagged union, one frozen dataclass per rule kind."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal, Union

from sqla_rls._types import OPERATIONS, FieldOperator, RuleKind
from sqla_rls.exceptions import ValidationError

__all__ = [
    "DEFAULT_TABLE_PERMISSIONS",
    "AuthRule",
    "CustomSqlRule",
    "FieldCheck",
    "FieldCheckRule",
    "GuestRule",
    "LabelsRule",
    "PermissionRule",
    "PrivateRule",
    "PublicRule",
    "RoleRule",
    "StaticRule",
    "TablePermissions",
    "TeamsRule",
    "parse_rule",
    "rule_to_dict",
]

ValueType = Literal["static", "userContext"]

_FIELD_OPERATORS: frozenset[str] = frozenset({"===", "!==", "in", "notIn"})


@dataclass(frozen=True, slots=True)
class PublicRule:
    kind: ClassVar[RuleKind] = "public"


@dataclass(frozen=True, slots=True)
class PrivateRule:
    kind: ClassVar[RuleKind] = "private"


@dataclass(frozen=True, slots=True)
class RoleRule:
    """Allow if the user's role is one of ``roles``; deny otherwise."""

    kind: ClassVar[RuleKind] = "role"
    roles: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class AuthRule:
    """Allow any identified user."""

    kind: ClassVar[RuleKind] = "auth"


@dataclass(frozen=True, slots=True)
class GuestRule:
    """Allow callers without an identity."""

    kind: ClassVar[RuleKind] = "guest"


@dataclass(frozen=True, slots=True)
class LabelsRule:
    kind: ClassVar[RuleKind] = "labels"
    labels: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class TeamsRule:
    kind: ClassVar[RuleKind] = "teams"
    teams: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class StaticRule:
    kind: ClassVar[RuleKind] = "static"
    value: bool = False


@dataclass(frozen=True, slots=True)
class FieldCheck:
    """Compare ``row[field]`` against a literal or a user-context value.

    Attributes:
        field: Row column to read.
        operator: ``"==="``, ``"!=="``, ``"in"`` or ``"notIn"``.
        value_type: ``"static"`` (``value`` is the literal) or
            ``"userContext"`` (``value`` names a context field such as
            ``"userId"``).
        value: Literal, or context field name.

    Example::

        FieldCheck(field="ownerId", operator="===", value_type="userContext", value="userId")
    """

    field: str
    operator: FieldOperator
    value_type: ValueType = "static"
    value: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> FieldCheck:
        if not isinstance(data, Mapping):
            raise ValidationError(["fieldCheck: expected an object"])
        name = data.get("field")
        operator = data.get("operator")
        value_type = data.get("valueType", "static")
        violations: list[str] = []
        if not name:
            violations.append("fieldCheck: 'field' is required")
        if operator not in _FIELD_OPERATORS:
            violations.append(f"fieldCheck: unsupported operator {operator!r}")
        if value_type not in ("static", "userContext"):
            violations.append(f"fieldCheck: unsupported valueType {value_type!r}")
        if value_type == "userContext" and not isinstance(data.get("value"), str):
            violations.append("fieldCheck: 'value' must name a user-context field")
        if violations:
            raise ValidationError(violations)
        value = data.get("value")
        if isinstance(value, list):
            value = tuple(value)
        return cls(field=str(name), operator=operator, value_type=value_type, value=value)

    def to_dict(self) -> dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {
            "field": self.field,
            "operator": self.operator,
            "valueType": self.value_type,
            "value": value,
        }


@dataclass(frozen=True, slots=True)
class FieldCheckRule:
    kind: ClassVar[RuleKind] = "fieldCheck"
    check: FieldCheck


@dataclass(frozen=True, slots=True)
class CustomSqlRule:
    """A SQL predicate template with ``:name`` user-context placeholders."""

    kind: ClassVar[RuleKind] = "customSql"
    template: str = ""


PermissionRule = Union[
    PublicRule,
    PrivateRule,
    RoleRule,
    AuthRule,
    GuestRule,
    LabelsRule,
    TeamsRule,
    StaticRule,
    FieldCheckRule,
    CustomSqlRule,
]


def _strings(data: Mapping[str, Any], key: str) -> list[str]:
    value = data.get(key) or []
    if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
        raise ValidationError([f"{key}: expected a list of strings"])
    return [str(v) for v in value]


def parse_rule(data: Any) -> PermissionRule:
    """Parse the wire shape ``{"allow": kind, ...payload}`` into a rule.

    Raises:
        ValidationError: Unknown kind or malformed payload.

    Example::

        parse_rule({"allow": "role", "roles": ["admin"]})
        # RoleRule(roles=('admin',))
    """
    if not isinstance(data, Mapping):
        raise ValidationError([f"rule: expected an object, got {type(data).__name__}"])
    kind = data.get("allow")
    if kind == "public":
        return PublicRule()
    if kind == "private":
        return PrivateRule()
    if kind == "role":
        return RoleRule(roles=tuple(_strings(data, "roles")))
    if kind == "auth":
        return AuthRule()
    if kind == "guest":
        return GuestRule()
    if kind == "labels":
        return LabelsRule(labels=frozenset(_strings(data, "labels")))
    if kind == "teams":
        return TeamsRule(teams=frozenset(_strings(data, "teams")))
    if kind == "static":
        value = data.get("static")
        if not isinstance(value, bool):
            raise ValidationError(["static: 'static' must be a boolean"])
        return StaticRule(value=value)
    if kind == "fieldCheck":
        return FieldCheckRule(check=FieldCheck.from_dict(data.get("fieldCheck")))
    if kind == "customSql":
        template = data.get("customSql")
        if not isinstance(template, str) or not template.strip():
            raise ValidationError(["customSql: 'customSql' must be a non-empty string"])
        return CustomSqlRule(template=template)
    raise ValidationError([f"rule: unknown kind {kind!r}"])


def rule_to_dict(rule: PermissionRule) -> dict[str, Any]:
    """Render *rule* back to its wire shape."""
    out: dict[str, Any] = {"allow": rule.kind}
    if isinstance(rule, RoleRule):
        out["roles"] = list(rule.roles)
    elif isinstance(rule, LabelsRule):
        out["labels"] = sorted(rule.labels)
    elif isinstance(rule, TeamsRule):
        out["teams"] = sorted(rule.teams)
    elif isinstance(rule, StaticRule):
        out["static"] = rule.value
    elif isinstance(rule, FieldCheckRule):
        out["fieldCheck"] = rule.check.to_dict()
    elif isinstance(rule, CustomSqlRule):
        out["customSql"] = rule.template
    return out


@dataclass(frozen=True, slots=True)
class TablePermissions:
    """Rule lists per operation for one table.

    A missing operation and an operation with an empty list differ: the
    first is a table-level denial, the second means no restriction.

    Example::

        perms = TablePermissions.from_dict({
            "operations": {
                "SELECT": [{"allow": "public"}],
                "UPDATE": [{"allow": "role", "roles": ["admin"]}],
            }
        })
        perms.rules_for("DELETE")  # None
    """

    operations: Mapping[str, tuple[PermissionRule, ...]] = field(default_factory=dict)

    def rules_for(self, operation: str) -> tuple[PermissionRule, ...] | None:
        return self.operations.get(operation.upper())

    @classmethod
    def from_dict(cls, data: Any) -> TablePermissions:
        if not isinstance(data, Mapping):
            raise ValidationError(["permissions: expected an object"])
        raw = data.get("operations", {})
        if not isinstance(raw, Mapping):
            raise ValidationError(["permissions: 'operations' must be an object"])
        operations: dict[str, tuple[PermissionRule, ...]] = {}
        for name, rules in raw.items():
            op = str(name).upper()
            if op not in OPERATIONS:
                raise ValidationError([f"permissions: unknown operation {name!r}"])
            if rules is None:
                continue
            if not isinstance(rules, (list, tuple)):
                raise ValidationError([f"permissions.{op}: expected a list of rules"])
            operations[op] = tuple(parse_rule(r) for r in rules)
        return cls(operations=operations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operations": {
                op: [rule_to_dict(r) for r in rules] for op, rules in self.operations.items()
            }
        }


# What a newly created table receives.
DEFAULT_TABLE_PERMISSIONS = TablePermissions(
    operations={op: (PublicRule(),) for op in OPERATIONS}
)
