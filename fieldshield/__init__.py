__version__ = "0.1.0"

from fieldshield.config import Settings, ShieldOptions, get_settings
from fieldshield.security import (
    DEFAULT_DENIAL_MESSAGE,
    And,
    AuthContext,
    AuthorizationError,
    CacheMode,
    CustomError,
    Decision,
    DecisionCache,
    ErrorPolicy,
    FieldGuard,
    NotAuthorisedError,
    Or,
    Outcome,
    PermissionRules,
    PolicyNode,
    PolicyTree,
    Rule,
    allow,
    and_,
    decision_scope,
    deny,
    is_authenticated,
    is_super_admin,
    or_,
    request_scope,
    rule,
    shield,
)

__all__ = [
    "Settings",
    "ShieldOptions",
    "get_settings",
    "AuthContext",
    "Decision",
    "Outcome",
    "DEFAULT_DENIAL_MESSAGE",
    "AuthorizationError",
    "CustomError",
    "NotAuthorisedError",
    "PolicyNode",
    "Rule",
    "And",
    "Or",
    "CacheMode",
    "rule",
    "and_",
    "or_",
    "allow",
    "deny",
    "DecisionCache",
    "decision_scope",
    "request_scope",
    "PolicyTree",
    "ErrorPolicy",
    "FieldGuard",
    "shield",
    "PermissionRules",
    "is_authenticated",
    "is_super_admin",
]
