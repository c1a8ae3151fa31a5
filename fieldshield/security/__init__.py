from fieldshield.security.cache import (
    DecisionCache,
    DecisionScope,
    current_decision_scope,
    decision_cache_for,
    decision_scope,
    request_scope,
    scope_token,
)
from fieldshield.security.context import AuthContext, context_value
from fieldshield.security.decisions import DEFAULT_DENIAL_MESSAGE, Decision, Outcome
from fieldshield.security.error_policy import ErrorPolicy
from fieldshield.security.errors import AuthorizationError, CustomError, NotAuthorisedError
from fieldshield.security.guard import FieldGuard, iter_object_types, shield
from fieldshield.security.permissions import PermissionRules, is_authenticated, is_super_admin
from fieldshield.security.rules import (
    And,
    CacheMode,
    LogicNode,
    Or,
    PolicyNode,
    Rule,
    allow,
    and_,
    deny,
    or_,
    rule,
)
from fieldshield.security.tree import TYPE_DEFAULT_KEY, PolicyTree, TypePolicy

__all__ = [
    "AuthContext",
    "context_value",
    "Decision",
    "Outcome",
    "DEFAULT_DENIAL_MESSAGE",
    "AuthorizationError",
    "CustomError",
    "NotAuthorisedError",
    "PolicyNode",
    "Rule",
    "LogicNode",
    "And",
    "Or",
    "CacheMode",
    "rule",
    "and_",
    "or_",
    "allow",
    "deny",
    "DecisionCache",
    "DecisionScope",
    "current_decision_scope",
    "decision_cache_for",
    "decision_scope",
    "request_scope",
    "scope_token",
    "PolicyTree",
    "TypePolicy",
    "TYPE_DEFAULT_KEY",
    "ErrorPolicy",
    "FieldGuard",
    "iter_object_types",
    "shield",
    "PermissionRules",
    "is_authenticated",
    "is_super_admin",
]
