"""Prometheus metrics for the scoring pipeline."""

from prometheus_client import Counter, Histogram, Info

APP_INFO = Info("brandscore", "Brand-mention scoring pipeline info")
APP_INFO.info({"version": "1.0.0", "name": "brandscore"})

PROVIDER_CALLS = Counter(
    "brandscore_provider_calls_total",
    "Total LLM / classifier provider calls",
    ["vendor", "status"],
)

PROVIDER_LATENCY = Histogram(
    "brandscore_provider_latency_seconds",
    "Provider call latency in seconds",
    ["vendor"],
    buckets=[0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 120],
)

PROVIDER_TOKENS = Counter(
    "brandscore_provider_tokens_total",
    "Tokens consumed by provider calls",
    ["vendor"],
)

CLASSIFICATION_TIER_HITS = Counter(
    "brandscore_citation_tier_hits_total",
    "Citation classifications answered per tier",
    ["source"],
)

CONSOLIDATED_RUNS = Counter(
    "brandscore_consolidated_runs_total",
    "Consolidated analysis attempts",
    ["status"],  # cache_hit | success | failure
)

RECORDS_SCORED = Counter(
    "brandscore_records_scored_total",
    "Raw answer records processed by the orchestrator",
    ["outcome"],  # succeeded | failed | skipped
)
