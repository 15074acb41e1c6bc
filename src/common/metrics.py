"""
Prometheus metrics for monitoring and observability.

Provides counters and histograms for tracking:
- Storage classifications
- Schema conflict resolutions
- Upload intake
- Analysis latency
"""

import time
from typing import Callable
from functools import wraps
from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
)

# Create a global registry
REGISTRY = CollectorRegistry()

# ========== Counters ==========

# Storage decisions
json_classifications_total = Counter(
    "json_classifications_total",
    "Total number of JSON payloads classified",
    ["storage_type"],  # SQL/NoSQL
    registry=REGISTRY,
)

# Conflict resolutions
schema_conflicts_total = Counter(
    "schema_conflicts_total",
    "Total number of schema conflict resolutions",
    ["action", "outcome"],  # overwrite/append/..., permitted/refused
    registry=REGISTRY,
)

# Upload intake
upload_requests_total = Counter(
    "upload_requests_total",
    "Total number of uploaded files",
    ["category", "status"],  # Image/JSON/..., success/failure
    registry=REGISTRY,
)

# ========== Histograms ==========

json_analysis_duration_seconds = Histogram(
    "json_analysis_duration_seconds",
    "Time to analyze, classify and derive a schema for a JSON payload",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
    registry=REGISTRY,
)


# ========== Metric Decorators ==========

def track_analysis_time(func: Callable):
    """Decorator to record how long a JSON analysis call takes."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            json_analysis_duration_seconds.observe(time.perf_counter() - start_time)

    return wrapper


def record_classification(storage_type: str) -> None:
    json_classifications_total.labels(storage_type=storage_type).inc()


def record_conflict_resolution(action: str, permitted: bool) -> None:
    schema_conflicts_total.labels(
        action=action, outcome="permitted" if permitted else "refused").inc()


def record_upload(category: str, success: bool) -> None:
    upload_requests_total.labels(
        category=category, status="success" if success else "failure").inc()


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics as bytes
    """
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get content type for metrics response."""
    return CONTENT_TYPE_LATEST
