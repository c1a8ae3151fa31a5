from __future__ import annotations

from collections.abc import Callable
from threading import Lock
from typing import Any

from fieldshield.security.context import context_value
from fieldshield.security.rules import CacheMode, Rule


ANONYMOUS_USER_ID = "anonymous"


class PermissionRules:
    """Builds rules that check grants carried on the request context.

    Grants are the context's ``permissions`` plus whatever its ``roles`` imply
    through ``role_permissions``. Grants support wildcards: ``*``,
    ``crm.contact.*`` and ``crm.contact.field.read:*``.

    Rules are memoized per permission, so every field guarded by
    ``require("x")`` shares one rule identity and one cached decision per request.
    """

    def __init__(self, role_permissions: dict[str, set[str]] | None = None) -> None:
        self._role_permissions = role_permissions or {}
        self._rules: dict[tuple[str, str], Rule] = {}
        self._lock = Lock()

    def require(self, permission: str) -> Rule:
        def check_permission(parent: Any, args: dict[str, Any], context: Any, info: Any) -> bool:
            return self.has_permission(permission, context)

        return self._memoized("permission", permission, check_permission)

    def require_role(self, role: str) -> Rule:
        def check_role(parent: Any, args: dict[str, Any], context: Any, info: Any) -> bool:
            return role in (context_value(context, "roles") or ())

        return self._memoized("role", role, check_role)

    def has_permission(self, required: str, ctx: Any) -> bool:
        if context_value(ctx, "is_super_admin", False):
            return True

        grants = set(context_value(ctx, "permissions") or ())
        for role in context_value(ctx, "roles") or ():
            grants.update(self._role_permissions.get(role, set()))

        return any(self._matches(grant, required) for grant in grants)

    def _memoized(self, kind: str, key: str, predicate: Callable[..., bool]) -> Rule:
        with self._lock:
            existing = self._rules.get((kind, key))
            if existing is None:
                existing = Rule(predicate, name=f"{kind}:{key}", cache=CacheMode.CONTEXTUAL)
                self._rules[(kind, key)] = existing
            return existing

    @staticmethod
    def _matches(grant: str, required: str) -> bool:
        if grant in {"*", required}:
            return True

        if grant.endswith(".*"):
            return required.startswith(grant[:-1])

        if ":" in grant and grant.endswith(":*"):
            return required.startswith(grant[:-1])

        return False


def _authenticated(parent: Any, args: dict[str, Any], context: Any, info: Any) -> bool:
    user_id = context_value(context, "user_id")
    return bool(user_id) and user_id != ANONYMOUS_USER_ID


def _super_admin(parent: Any, args: dict[str, Any], context: Any, info: Any) -> bool:
    if context_value(context, "is_super_admin", False):
        return True
    role_set = {item.lower() for item in context_value(context, "roles") or ()}
    permission_set = {item.lower() for item in context_value(context, "permissions") or ()}
    return "admin" in role_set or "admin" in permission_set or "system.admin" in permission_set


is_authenticated = Rule(_authenticated, name="is_authenticated")
is_super_admin = Rule(_super_admin, name="is_super_admin")
