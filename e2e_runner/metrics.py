"""
Prometheus metrics for the e2e runner, scraped from /metrics.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

E2E_RUNS = Counter(
    "e2e_runs",
    "End-to-end runs triggered over HTTP",
    ["route", "outcome"],
)

E2E_RUN_DURATION = Histogram(
    "e2e_run_duration_seconds",
    "Duration of end-to-end runs",
    ["route"],
    buckets=(0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
)

SETUP_RESULTS = Counter(
    "e2e_setup",
    "Environment setups by outcome",
    ["outcome"],
)

REVOCATIONS = Counter(
    "e2e_key_revocations",
    "API key revocations by key type and outcome",
    ["key_type", "outcome"],
)


def render_latest():
    """Returns (body, content type) for the default registry."""
    return generate_latest(), CONTENT_TYPE_LATEST
