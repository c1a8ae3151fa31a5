from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from fieldshield.config import get_settings


rule_evaluations_total = Counter(
    "fieldshield_rule_evaluations_total",
    "Total rule predicate executions by outcome",
    ["rule", "outcome"],
)

rule_duration_seconds = Histogram(
    "fieldshield_rule_duration_seconds",
    "Rule predicate execution time in seconds",
    ["rule"],
)

decision_cache_hit_total = Counter(
    "fieldshield_decision_cache_hit_total",
    "Decision cache hits",
)

decision_cache_miss_total = Counter(
    "fieldshield_decision_cache_miss_total",
    "Decision cache misses",
)

field_denials_total = Counter(
    "fieldshield_field_denials_total",
    "Total guarded fields refused by outcome",
    ["type_name", "field_name", "outcome"],
)


def _enabled() -> bool:
    return get_settings().metrics_enabled


def observe_rule_evaluation(rule: str, outcome: str, duration: float) -> None:
    if not _enabled():
        return
    rule_evaluations_total.labels(rule=rule, outcome=outcome).inc()
    rule_duration_seconds.labels(rule=rule).observe(duration)


def observe_decision_cache_hit() -> None:
    if _enabled():
        decision_cache_hit_total.inc()


def observe_decision_cache_miss() -> None:
    if _enabled():
        decision_cache_miss_total.inc()


def observe_field_denial(type_name: str, field_name: str, outcome: str) -> None:
    if _enabled():
        field_denials_total.labels(type_name=type_name, field_name=field_name, outcome=outcome).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
