from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# Content acquisition
# ---------------------------------------------------------------------------
content_acquisitions_total = Counter(
    "content_acquisitions_total",
    "Completed content acquisitions by the source that produced the document",
    ["source"],
)
strategy_attempts_total = Counter(
    "strategy_attempts_total",
    "Individual fetch strategy attempts by outcome",
    ["strategy", "outcome"],
)
content_acquisition_duration_seconds = Histogram(
    "content_acquisition_duration_seconds",
    "Time spent walking the fallback chain for one URL",
    buckets=[0.25, 0.5, 1, 2, 5, 10, 20, 40],
)

# ---------------------------------------------------------------------------
# Pass-through proxy
# ---------------------------------------------------------------------------
proxy_requests_total = Counter(
    "proxy_requests_total",
    "Total pass-through proxy requests by upstream status",
    ["status"],
)

# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------
relay_active_connections = Gauge(
    "relay_active_connections",
    "Number of relay requests currently in flight",
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
