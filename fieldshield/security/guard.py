"""Field guard: runs the policy tree ahead of every resolver of a graphql-core schema.

Two ways to hook it into the executor:

* ``guard.apply(schema)`` wraps the resolver of every object-type field
  reachable from the schema's root operation types;
* ``graphql(schema, source, middleware=[guard])`` uses the guard as a
  graphql-core middleware object.

Guarded fields resolve asynchronously, so execute with ``graphql()`` rather
than ``graphql_sync()``. Unguarded fields keep their original sync/async
behavior.

Contextual rule decisions are cached only inside a decision scope, which lives
for exactly one request: ``guard.execute(...)`` opens one per execution and
``request_scope(context)`` opens one explicitly. Outside a scope every rule
evaluates uncached, so reusing a context object never replays old decisions.
"""

from __future__ import annotations

import inspect
import logging
from collections import deque
from collections.abc import Callable, Iterator
from typing import Any

from graphql import (
    ExecutionResult,
    GraphQLFieldResolver,
    GraphQLInterfaceType,
    GraphQLNamedType,
    GraphQLObjectType,
    GraphQLResolveInfo,
    GraphQLSchema,
    GraphQLUnionType,
    default_field_resolver,
    get_named_type,
    graphql,
)

from fieldshield.config import ShieldOptions
from fieldshield.context import get_correlation_id
from fieldshield.metrics import observe_field_denial
from fieldshield.otel import get_tracer
from fieldshield.security.cache import decision_scope
from fieldshield.security.decisions import Decision
from fieldshield.security.error_policy import ErrorPolicy
from fieldshield.security.rules import PolicyNode
from fieldshield.security.tree import PolicyDefinition, PolicyTree


logger = logging.getLogger("fieldshield.guard")

Resolver = Callable[..., Any]

_GUARD_MARKER = "__fieldshield_guard__"


def iter_object_types(schema: GraphQLSchema) -> Iterator[GraphQLObjectType]:
    """Yield every object type reachable from the root operation types once.

    Worklist traversal with a visited set, so self-referencing and mutually
    recursive types terminate.
    """

    roots = (schema.query_type, schema.mutation_type, schema.subscription_type)
    worklist: deque[GraphQLNamedType] = deque(root for root in roots if root is not None)
    visited: set[str] = set()

    while worklist:
        named_type = worklist.popleft()
        if named_type.name in visited:
            continue
        visited.add(named_type.name)

        if isinstance(named_type, GraphQLObjectType):
            yield named_type
            worklist.extend(get_named_type(field.type) for field in named_type.fields.values())
        elif isinstance(named_type, GraphQLInterfaceType):
            worklist.extend(get_named_type(field.type) for field in named_type.fields.values())
            worklist.extend(schema.get_possible_types(named_type))
        elif isinstance(named_type, GraphQLUnionType):
            worklist.extend(named_type.types)


class FieldGuard:
    """Consults the policy tree before a field resolver is allowed to run.

    A denied field never invokes its resolver; the executor receives a
    ``NotAuthorisedError`` for that field and applies its own null
    propagation. Allowed fields return the resolver's value, or raise its
    error, unchanged.
    """

    def __init__(self, tree: PolicyTree, options: ShieldOptions | None = None) -> None:
        self._tree = tree
        self._options = options or ShieldOptions.from_settings()
        self._error_policy = ErrorPolicy(debug=self._options.debug)
        self._tracer = get_tracer("fieldshield.guard")

    @property
    def tree(self) -> PolicyTree:
        return self._tree

    @property
    def options(self) -> ShieldOptions:
        return self._options

    @property
    def error_policy(self) -> ErrorPolicy:
        return self._error_policy

    def apply(self, schema: GraphQLSchema, *, field_resolver: GraphQLFieldResolver | None = None) -> GraphQLSchema:
        """Wrap every reachable field resolver in place and return the schema.

        Fields without their own resolver are wrapped around ``field_resolver``
        (graphql-core's ``default_field_resolver`` when omitted). The executor's
        ``field_resolver=`` argument no longer reaches wrapped fields, so pass
        the same resolver here; middleware mode keeps honoring it.
        """

        fallback = field_resolver or default_field_resolver
        for object_type in iter_object_types(schema):
            for field in object_type.fields.values():
                resolver = field.resolve
                if getattr(resolver, _GUARD_MARKER, None) is self:
                    continue
                field.resolve = self._wrap(resolver or fallback)

        return schema

    async def execute(self, schema: GraphQLSchema, source: str, **kwargs: Any) -> ExecutionResult:
        """Run ``graphql()`` inside a fresh decision scope for this execution."""

        with decision_scope():
            return await graphql(schema, source, **kwargs)

    def resolve(self, next_: Resolver, parent: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        """graphql-core middleware entry point."""

        return self._intercept(next_, parent, info, args)

    async def check(
        self,
        type_name: str,
        field_name: str,
        parent: Any,
        args: dict[str, Any],
        context: Any,
        info: Any = None,
    ) -> Decision:
        """Decide a single field without resolving it; unguarded fields are allowed."""

        node = self._tree.lookup(type_name, field_name)
        if node is None:
            return Decision.allowed()
        return await self._evaluate(node, type_name, field_name, parent, args, context, info)

    def _wrap(self, resolver: Resolver) -> Resolver:
        def guarded(parent: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
            return self._intercept(resolver, parent, info, args)

        setattr(guarded, _GUARD_MARKER, self)
        guarded.__wrapped__ = resolver  # type: ignore[attr-defined]
        return guarded

    def _intercept(self, resolver: Resolver, parent: Any, info: GraphQLResolveInfo, args: dict[str, Any]) -> Any:
        node = self._tree.lookup(info.parent_type.name, info.field_name)
        if node is None:
            return resolver(parent, info, **args)
        return self._resolve_guarded(node, resolver, parent, info, args)

    async def _resolve_guarded(
        self,
        node: PolicyNode,
        resolver: Resolver,
        parent: Any,
        info: GraphQLResolveInfo,
        args: dict[str, Any],
    ) -> Any:
        decision = await self._evaluate(
            node,
            info.parent_type.name,
            info.field_name,
            parent,
            args,
            info.context,
            info,
        )
        if not decision.is_allowed:
            raise self._error_policy.error_for(decision)

        result = resolver(parent, info, **args)
        if inspect.isawaitable(result):
            return await result
        return result

    async def _evaluate(
        self,
        node: PolicyNode,
        type_name: str,
        field_name: str,
        parent: Any,
        args: dict[str, Any],
        context: Any,
        info: Any,
    ) -> Decision:
        with self._tracer.start_as_current_span("fieldshield.guard") as span:
            span.set_attribute("graphql.type", type_name)
            span.set_attribute("graphql.field", field_name)
            correlation_id = get_correlation_id()
            if correlation_id:
                span.set_attribute("correlation_id", correlation_id)
            decision = await node.evaluate(parent, args, context, info)
            span.set_attribute("fieldshield.outcome", decision.outcome.value)

        if not decision.is_allowed:
            observe_field_denial(type_name=type_name, field_name=field_name, outcome=decision.outcome.value)
            logger.info(
                "shield.denied",
                extra={
                    "type_name": type_name,
                    "field_name": field_name,
                    "outcome": decision.outcome.value,
                    "error": decision.reason if decision.is_denied else repr(decision.cause),
                },
            )
        return decision


def shield(definition: PolicyDefinition, options: ShieldOptions | None = None) -> FieldGuard:
    """Build a ``FieldGuard`` from a declarative ``{type: {field: rule}}`` definition."""

    return FieldGuard(PolicyTree.from_definition(definition), options)
