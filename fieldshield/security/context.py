from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class AuthContext:
    """Per-request context handed to the executor and shared by every guarded field."""

    user_id: str | None = None
    tenant_id: str | None = None
    correlation_id: str | None = None
    is_super_admin: bool = False
    roles: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)


def context_value(ctx: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from an attribute-style or mapping-style request context."""

    if isinstance(ctx, Mapping):
        return ctx.get(name, default)
    return getattr(ctx, name, default)
