"""Prometheus metrics for monitoring ledger mutations, price sourcing and HTTP traffic"""

from prometheus_client import Counter, Histogram

# Ledger metrics
ledger_mutation_counter = Counter(
    "budget_ledger_mutation_total",
    "Ledger mutations attempted",
    ["operation", "outcome"],  # outcome: ok | rejected | conflict | error
)

concurrency_conflict_counter = Counter(
    "budget_ledger_conflict_total",
    "Optimistic version conflicts detected on save",
)

investment_warning_counter = Counter(
    "budget_investment_concentration_warning_total",
    "Investments committed with a concentration warning",
)

# Price metrics
price_cache_counter = Counter(
    "price_cache_requests_total",
    "Price cache lookups",
    ["key", "result"],  # hit | miss | unavailable
)

price_source_failure_counter = Counter(
    "price_source_failures_total",
    "Failed upstream price source calls",
    ["source"],
)

price_degraded_counter = Counter(
    "price_degraded_total",
    "Price responses served from fallback or synthetic data",
    ["kind"],  # current | history
)

upstream_latency_histogram = Histogram(
    "price_upstream_latency_seconds",
    "Upstream price API response time",
    ["source"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_mutation(operation: str, outcome: str) -> None:
    """Count a ledger mutation by operation and outcome"""
    ledger_mutation_counter.labels(operation=operation, outcome=outcome).inc()
    if outcome == "conflict":
        concurrency_conflict_counter.inc()
