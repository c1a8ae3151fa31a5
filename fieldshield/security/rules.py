"""Policy nodes: atomic rules and their boolean composition.

A ``Rule`` wraps a predicate ``(parent, args, context, info) -> bool``. Logic
nodes (``And`` / ``Or``) combine any policy nodes. Every node evaluates to a
``Decision``; predicate failures are captured as ``ERROR`` decisions and never
escape ``evaluate``.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from enum import StrEnum
from typing import Any, Union

from fieldshield.metrics import observe_rule_evaluation
from fieldshield.security.cache import decision_cache_for, scope_token
from fieldshield.security.decisions import DEFAULT_DENIAL_MESSAGE, Decision
from fieldshield.security.errors import CustomError


logger = logging.getLogger("fieldshield.rules")

Predicate = Callable[[Any, dict[str, Any], Any, Any], Union[bool, Awaitable[bool]]]

_rule_ids = itertools.count(1)


class CacheMode(StrEnum):
    CONTEXTUAL = "contextual"
    NO_CACHE = "no_cache"

    @classmethod
    def coerce(cls, value: CacheMode | str | bool) -> CacheMode:
        if isinstance(value, bool):
            return cls.CONTEXTUAL if value else cls.NO_CACHE
        return cls(value)


class PolicyNode(ABC):
    """Anything that can decide whether a field may be resolved."""

    @abstractmethod
    async def evaluate(self, parent: Any, args: dict[str, Any], context: Any, info: Any) -> Decision:
        ...

    def __and__(self, other: PolicyNode) -> And:
        return And(self, other)

    def __or__(self, other: PolicyNode) -> Or:
        return Or(self, other)


class Rule(PolicyNode):
    """Atomic policy node.

    Identity is a process-unique integer assigned at construction, so two rules
    sharing a display name never share cache entries. Only a predicate result
    of exactly ``True`` allows the field; any other value denies it.
    """

    def __init__(
        self,
        predicate: Predicate,
        *,
        name: str | None = None,
        cache: CacheMode | str | bool = CacheMode.CONTEXTUAL,
    ) -> None:
        if not callable(predicate):
            raise TypeError("Rule predicate must be callable")
        self._id = next(_rule_ids)
        self._name = name or getattr(predicate, "__name__", f"rule-{self._id}")
        self._predicate = predicate
        self._cache_mode = CacheMode.coerce(cache)

    @property
    def id(self) -> int:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def cache_mode(self) -> CacheMode:
        return self._cache_mode

    def __repr__(self) -> str:
        return f"Rule(id={self._id}, name={self._name!r}, cache={self._cache_mode.value!r})"

    async def evaluate(self, parent: Any, args: dict[str, Any], context: Any, info: Any) -> Decision:
        if self._cache_mode == CacheMode.NO_CACHE:
            return await self._execute(parent, args, context, info)

        cache = decision_cache_for(context)
        if cache is None:
            return await self._execute(parent, args, context, info)

        return await cache.get_or_compute(
            self._id,
            scope_token(context),
            lambda: self._execute(parent, args, context, info),
        )

    async def _execute(self, parent: Any, args: dict[str, Any], context: Any, info: Any) -> Decision:
        started = time.perf_counter()
        try:
            result = self._predicate(parent, args, context, info)
            if inspect.isawaitable(result):
                result = await result
        except CustomError as exc:
            decision = Decision.errored(exc)
            logger.info("shield.rule_custom_error", extra={"rule": self._name, "error": exc.message})
        except Exception as exc:
            decision = Decision.errored(exc)
            logger.warning("shield.rule_error", exc_info=True, extra={"rule": self._name, "error": str(exc)})
        else:
            decision = Decision.allowed() if result is True else Decision.denied(DEFAULT_DENIAL_MESSAGE)

        observe_rule_evaluation(rule=self._name, outcome=decision.outcome.value, duration=time.perf_counter() - started)
        return decision


class LogicNode(PolicyNode):
    """Boolean composition of policy nodes.

    All children are dispatched concurrently and awaited to completion; the
    combination step then picks the result by declaration order, independent of
    which child finished first.
    """

    def __init__(self, *children: PolicyNode) -> None:
        if not children:
            raise ValueError(f"{type(self).__name__} requires at least one child rule")
        for child in children:
            if not isinstance(child, PolicyNode):
                raise TypeError(f"{type(self).__name__} children must be policy nodes, got {type(child).__name__}")
        self._children: tuple[PolicyNode, ...] = tuple(children)

    @property
    def children(self) -> tuple[PolicyNode, ...]:
        return self._children

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(repr(child) for child in self._children)})"

    async def evaluate(self, parent: Any, args: dict[str, Any], context: Any, info: Any) -> Decision:
        decisions = await asyncio.gather(
            *(child.evaluate(parent, args, context, info) for child in self._children)
        )
        return self.combine(decisions)

    @classmethod
    @abstractmethod
    def combine(cls, decisions: Sequence[Decision]) -> Decision:
        ...


class And(LogicNode):
    @classmethod
    def combine(cls, decisions: Sequence[Decision]) -> Decision:
        for decision in decisions:
            if not decision.is_allowed:
                return decision
        return Decision.allowed()


class Or(LogicNode):
    @classmethod
    def combine(cls, decisions: Sequence[Decision]) -> Decision:
        if any(decision.is_allowed for decision in decisions):
            return Decision.allowed()
        for decision in decisions:
            if decision.is_errored:
                return decision
        return decisions[-1]


def rule(
    name: str | None = None,
    *,
    cache: CacheMode | str | bool = CacheMode.CONTEXTUAL,
) -> Callable[[Predicate], Rule]:
    """Decorator turning a predicate into a ``Rule``.

    >>> @rule("is_owner")
    ... async def is_owner(parent, args, ctx, info):
    ...     return parent["owner_id"] == ctx.user_id
    """

    def decorator(predicate: Predicate) -> Rule:
        return Rule(predicate, name=name, cache=cache)

    return decorator


def and_(*children: PolicyNode) -> And:
    return And(*children)


def or_(*children: PolicyNode) -> Or:
    return Or(*children)


def _always(parent: Any, args: dict[str, Any], context: Any, info: Any) -> bool:
    return True


def _never(parent: Any, args: dict[str, Any], context: Any, info: Any) -> bool:
    return False


allow = Rule(_always, name="allow", cache=CacheMode.NO_CACHE)
deny = Rule(_never, name="deny", cache=CacheMode.NO_CACHE)
