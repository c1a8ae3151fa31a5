from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Union

from fieldshield.security.rules import PolicyNode


TYPE_DEFAULT_KEY = "*"

TypeDefinition = Union[PolicyNode, Mapping[str, PolicyNode]]
PolicyDefinition = Mapping[str, TypeDefinition]


@dataclass(frozen=True, slots=True)
class TypePolicy:
    fields: Mapping[str, PolicyNode] = field(default_factory=lambda: MappingProxyType({}))
    default: PolicyNode | None = None

    def lookup(self, field_name: str) -> PolicyNode | None:
        node = self.fields.get(field_name)
        if node is not None:
            return node
        return self.default


class PolicyTree:
    """Read-only routing of (type, field) to the policy node guarding it.

    Built once from a declarative definition such as::

        {
            "Query": {"me": is_authenticated, "admin": and_(is_authenticated, is_admin)},
            "Invoice": is_authenticated,
            "Employee": {"*": is_authenticated, "salary": is_hr},
        }

    A policy node in place of a field mapping guards the whole type; the
    ``"*"`` key sets the same default next to field-specific entries.
    """

    def __init__(self, types: Mapping[str, TypePolicy] | None = None) -> None:
        self._types: Mapping[str, TypePolicy] = MappingProxyType(dict(types or {}))

    @classmethod
    def from_definition(cls, definition: PolicyDefinition) -> PolicyTree:
        if not isinstance(definition, Mapping):
            raise TypeError(f"Policy definition must be a mapping, got {type(definition).__name__}")

        types: dict[str, TypePolicy] = {}
        for type_name, entry in definition.items():
            if isinstance(entry, PolicyNode):
                types[type_name] = TypePolicy(default=entry)
                continue
            if not isinstance(entry, Mapping):
                raise TypeError(
                    f"Policy for type '{type_name}' must be a rule or a mapping of fields, got {type(entry).__name__}"
                )

            fields: dict[str, PolicyNode] = {}
            default: PolicyNode | None = None
            for field_name, node in entry.items():
                if not isinstance(node, PolicyNode):
                    raise TypeError(
                        f"Policy for '{type_name}.{field_name}' must be a rule, got {type(node).__name__}"
                    )
                if field_name == TYPE_DEFAULT_KEY:
                    default = node
                else:
                    fields[field_name] = node
            types[type_name] = TypePolicy(fields=MappingProxyType(fields), default=default)

        return cls(types)

    def lookup(self, type_name: str, field_name: str) -> PolicyNode | None:
        """Field entry, else the type default, else ``None`` (field is unguarded)."""

        type_policy = self._types.get(type_name)
        if type_policy is None:
            return None
        return type_policy.lookup(field_name)

    @property
    def type_names(self) -> frozenset[str]:
        return frozenset(self._types)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types

    def __iter__(self) -> Iterator[str]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)
