from __future__ import annotations

import asyncio

import pytest
from graphql import build_schema, graphql
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from fieldshield.config import ShieldOptions
from fieldshield.otel import setup_inmemory_otel, setup_otel, span_processors_from_env
from fieldshield.security.cache import request_scope
from fieldshield.security.context import AuthContext
from fieldshield.security.guard import shield
from fieldshield.security.rules import allow, deny


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("fieldshield")
    exporter.clear()
    return exporter


def test_guard_span_records_field_and_outcome(span_exporter: InMemorySpanExporter) -> None:
    schema = build_schema("type Query { open: String closed: String free: String }")
    for name in ("open", "closed", "free"):
        schema.query_type.fields[name].resolve = lambda parent, info: "value"
    shield({"Query": {"open": allow, "closed": deny}}, ShieldOptions()).apply(schema)

    ctx = AuthContext(user_id="user-1", correlation_id="otel-corr-1")
    with request_scope(ctx):
        result = asyncio.run(graphql(schema, "{ open closed free }", context_value=ctx))

    assert result.data == {"open": "value", "closed": None, "free": "value"}

    guard_spans = [span for span in span_exporter.get_finished_spans() if span.name == "fieldshield.guard"]
    assert len(guard_spans) == 2

    by_field = {span.attributes.get("graphql.field"): span for span in guard_spans}
    assert set(by_field) == {"open", "closed"}
    assert by_field["open"].attributes.get("fieldshield.outcome") == "ALLOW"
    assert by_field["closed"].attributes.get("fieldshield.outcome") == "DENY"
    assert all(span.attributes.get("graphql.type") == "Query" for span in guard_spans)
    assert all(span.attributes.get("correlation_id") == "otel-corr-1" for span in guard_spans)


def test_check_opens_a_span_without_resolving(span_exporter: InMemorySpanExporter) -> None:
    guard = shield({"Invoice": deny}, ShieldOptions())

    decision = asyncio.run(guard.check("Invoice", "total", None, {}, AuthContext(user_id="user-1")))
    unguarded = asyncio.run(guard.check("Customer", "name", None, {}, AuthContext(user_id="user-1")))

    assert decision.is_denied
    assert unguarded.is_allowed

    spans = [span for span in span_exporter.get_finished_spans() if span.name == "fieldshield.guard"]
    assert len(spans) == 1
    assert spans[0].attributes.get("graphql.type") == "Invoice"
    assert spans[0].attributes.get("graphql.field") == "total"


def test_exporters_follow_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
    monkeypatch.setenv("OTEL_CONSOLE_EXPORTER", "false")
    assert span_processors_from_env() == []

    monkeypatch.setenv("OTEL_CONSOLE_EXPORTER", "true")
    processors = span_processors_from_env()

    assert len(processors) == 1
    assert isinstance(processors[0], SimpleSpanProcessor)
    assert isinstance(processors[0].span_exporter, ConsoleSpanExporter)


def test_setup_otel_disabled_installs_nothing() -> None:
    assert setup_otel("fieldshield", False) is None
