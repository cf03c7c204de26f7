"""
Prometheus metrics about the exporter itself

Kept in a dedicated registry so /metrics carries only what the stub prints.
"""
from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Gauge, Histogram, generate_latest)

EXPORTER_REGISTRY = CollectorRegistry()

# ============================================================================
# Scrape Metrics
# ============================================================================

scrapes_total = Counter(
    'gvr_exporter_scrapes_total',
    'Total number of scrapes served',
    ['outcome'],  # success, fetch_error, eval_error, timeout, client_disconnected
    registry=EXPORTER_REGISTRY,
)

scrape_phase_duration_seconds = Histogram(
    'gvr_exporter_scrape_phase_duration_seconds',
    'Duration of each scrape phase in seconds',
    ['phase'],  # fetch, evaluate
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=EXPORTER_REGISTRY,
)

resources_fetched = Gauge(
    'gvr_exporter_resources_fetched',
    'Number of resources returned by the last successful list',
    registry=EXPORTER_REGISTRY,
)


def get_metrics() -> bytes:
    """Render the exporter's own metrics"""
    return generate_latest(EXPORTER_REGISTRY)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
