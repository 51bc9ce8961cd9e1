"""Permission rules, their evaluation, storage and enforcement."""

from sqla_rls.policy._context import UserContext
from sqla_rls.policy._evaluator import RuleTrace, decide, evaluate, has_field_check, trace
from sqla_rls.policy._gate import AuthorizationGate
from sqla_rls.policy._rules import (
    DEFAULT_TABLE_PERMISSIONS,
    AuthRule,
    CustomSqlRule,
    FieldCheck,
    FieldCheckRule,
    GuestRule,
    LabelsRule,
    PermissionRule,
    PrivateRule,
    PublicRule,
    RoleRule,
    StaticRule,
    TablePermissions,
    TeamsRule,
    parse_rule,
    rule_to_dict,
)
from sqla_rls.policy._sql import (
    ExecutablePredicate,
    PredicateCompiler,
    SqlPredicateCompiler,
    context_placeholders,
    row_placeholders,
)
from sqla_rls.policy._store import (
    MemoryPermissionStore,
    PermissionStore,
    SqlPermissionStore,
    permissions_table,
)

__all__ = [
    "DEFAULT_TABLE_PERMISSIONS",
    "AuthRule",
    "AuthorizationGate",
    "CustomSqlRule",
    "ExecutablePredicate",
    "FieldCheck",
    "FieldCheckRule",
    "GuestRule",
    "LabelsRule",
    "MemoryPermissionStore",
    "PermissionRule",
    "PermissionStore",
    "PredicateCompiler",
    "PrivateRule",
    "PublicRule",
    "RoleRule",
    "RuleTrace",
    "SqlPermissionStore",
    "SqlPredicateCompiler",
    "StaticRule",
    "TablePermissions",
    "TeamsRule",
    "UserContext",
    "context_placeholders",
    "decide",
    "evaluate",
    "has_field_check",
    "parse_rule",
    "permissions_table",
    "row_placeholders",
    "rule_to_dict",
    "trace",
]
