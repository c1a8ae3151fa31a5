from __future__ import annotations

import asyncio
from typing import Any

from graphql import build_schema, graphql

from fieldshield.config import ShieldOptions
from fieldshield.security.context import AuthContext
from fieldshield.security.decisions import Decision
from fieldshield.security.guard import shield
from fieldshield.security.permissions import PermissionRules, is_authenticated, is_super_admin


def _evaluate(node: Any, ctx: Any) -> Decision:
    return asyncio.run(node.evaluate(None, {}, ctx, None))


def test_require_matches_direct_and_role_grants() -> None:
    rules = PermissionRules(role_permissions={"sales": {"crm.contact.*"}})

    direct = AuthContext(user_id="user-1", permissions=["crm.contact.field.read:email"])
    via_role = AuthContext(user_id="user-2", roles=["sales"])
    outsider = AuthContext(user_id="user-3", permissions=["billing.invoice.read"])

    required = rules.require("crm.contact.field.read:email")

    assert _evaluate(required, direct).is_allowed
    assert _evaluate(required, via_role).is_allowed
    assert _evaluate(required, outsider).is_denied


def test_wildcard_grants() -> None:
    rules = PermissionRules()

    assert rules.has_permission("crm.contact.read", {"permissions": ["*"]})
    assert rules.has_permission("crm.contact.field.read:ssn", {"permissions": ["crm.contact.field.read:*"]})
    assert not rules.has_permission("crm.account.read", {"permissions": ["crm.contact.*"]})
    assert rules.has_permission("anything", AuthContext(user_id="root", is_super_admin=True))


def test_required_rules_are_memoized() -> None:
    rules = PermissionRules()

    assert rules.require("crm.contact.read") is rules.require("crm.contact.read")
    assert rules.require("crm.contact.read") is not rules.require("crm.account.read")
    assert rules.require_role("hr") is rules.require_role("hr")
    assert rules.require("crm.contact.read").name == "permission:crm.contact.read"


def test_require_role() -> None:
    hr_only = PermissionRules().require_role("hr")

    assert _evaluate(hr_only, AuthContext(user_id="user-1", roles=["hr"])).is_allowed
    assert _evaluate(hr_only, {"roles": ["sales"]}).is_denied


def test_builtin_identity_rules() -> None:
    assert _evaluate(is_authenticated, AuthContext(user_id="user-1")).is_allowed
    assert _evaluate(is_authenticated, AuthContext(user_id="anonymous")).is_denied
    assert _evaluate(is_authenticated, {}).is_denied

    assert _evaluate(is_super_admin, AuthContext(user_id="u", roles=["Admin"])).is_allowed
    assert _evaluate(is_super_admin, AuthContext(user_id="u", permissions=["system.admin"])).is_allowed
    assert _evaluate(is_super_admin, AuthContext(user_id="u", roles=["sales"])).is_denied


def test_permission_rules_guard_a_schema() -> None:
    rules = PermissionRules(role_permissions={"hr": {"hr.employee.field.read:*"}})
    schema = build_schema(
        """
        type Query { employees: [Employee!]! }
        type Employee { name: String! salary: Int }
        """
    )
    schema.query_type.fields["employees"].resolve = lambda parent, info: [
        {"name": "Ada", "salary": 100},
        {"name": "Grace", "salary": 120},
    ]
    shield(
        {
            "Query": {"employees": is_authenticated},
            "Employee": {"salary": rules.require("hr.employee.field.read:salary")},
        },
        ShieldOptions(),
    ).apply(schema)

    query = "query { employees { name salary } }"
    hr = asyncio.run(graphql(schema, query, context_value=AuthContext(user_id="u1", roles=["hr"])))
    staff = asyncio.run(graphql(schema, query, context_value=AuthContext(user_id="u2", roles=["staff"])))

    assert hr.errors is None
    assert hr.data == {"employees": [{"name": "Ada", "salary": 100}, {"name": "Grace", "salary": 120}]}
    assert staff.data == {"employees": [{"name": "Ada", "salary": None}, {"name": "Grace", "salary": None}]}
    assert staff.errors is not None
    assert {tuple(error.path) for error in staff.errors} == {("employees", 0, "salary"), ("employees", 1, "salary")}
    assert {error.message for error in staff.errors} == {"Not Authorised!"}
