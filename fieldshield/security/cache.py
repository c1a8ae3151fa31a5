from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from fieldshield.context import reset_correlation_id, set_correlation_id
from fieldshield.metrics import observe_decision_cache_hit, observe_decision_cache_miss
from fieldshield.security.context import context_value
from fieldshield.security.decisions import Decision


class DecisionCache:
    """Per-request memo of rule decisions keyed by (rule id, scope token).

    Entries hold the in-flight task rather than the settled value, so callers
    racing on one key all await the first caller's computation. Failed
    computations stay cached for the rest of the request.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[int, Hashable], asyncio.Future[Decision]] = {}

    async def get_or_compute(
        self,
        rule_id: int,
        scope_token: Hashable,
        compute: Callable[[], Awaitable[Decision]],
    ) -> Decision:
        key = (rule_id, scope_token)
        entry = self._entries.get(key)
        if entry is None:
            observe_decision_cache_miss()
            entry = asyncio.ensure_future(compute())
            self._entries[key] = entry
        else:
            observe_decision_cache_hit()
        # A cancelled waiter must not cancel the computation other fields share.
        return await asyncio.shield(entry)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


def scope_token(context: Any) -> int:
    """Cache scope shared by every field resolved under one request context."""

    return id(context)


class DecisionScope:
    """Decision caches living for exactly one request.

    One cache per request context object seen inside the scope. The scope keeps
    a reference to each context so its scope token stays unique until the
    scope closes. Nothing is stored on the context itself.
    """

    def __init__(self) -> None:
        self._caches: dict[int, tuple[Any, DecisionCache]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def cache_for(self, context: Any) -> DecisionCache | None:
        if self._closed:
            return None
        token = scope_token(context)
        entry = self._caches.get(token)
        if entry is None:
            entry = (context, DecisionCache())
            self._caches[token] = entry
        return entry[1]

    def close(self) -> None:
        self._closed = True
        self._caches.clear()

    def __len__(self) -> int:
        return len(self._caches)


_current_scope: ContextVar[DecisionScope | None] = ContextVar("fieldshield_decision_scope", default=None)


def current_decision_scope() -> DecisionScope | None:
    return _current_scope.get()


def decision_cache_for(context: Any) -> DecisionCache | None:
    """Return the decision cache of the active request scope for ``context``.

    Outside a scope, or for a ``None`` context, there is no cache and
    contextual rules evaluate uncached.
    """

    if context is None:
        return None
    scope = _current_scope.get()
    if scope is None:
        return None
    return scope.cache_for(context)


@contextmanager
def decision_scope() -> Iterator[DecisionScope]:
    """Open a fresh decision scope; its caches are dropped on exit."""

    scope = DecisionScope()
    token = _current_scope.set(scope)
    try:
        yield scope
    finally:
        scope.close()
        _current_scope.reset(token)


@contextmanager
def request_scope(context: Any, correlation_id: str | None = None) -> Iterator[Any]:
    """Bind a request's correlation id and a decision scope for its duration."""

    token = set_correlation_id(correlation_id or context_value(context, "correlation_id"))
    try:
        with decision_scope():
            yield context
    finally:
        reset_correlation_id(token)
