"""Prometheus metrics for URL Scanner.

Exposes application-level metrics alongside the standard process metrics
from prometheus_client.

All metrics are module-level singletons registered on the default
``REGISTRY``.  They are imported by the API routes, the result reader and
the chunk task.

Metrics defined here:

  scans_submitted_total
      Counter — scans admitted through ``POST /scans``.

  scan_chunks_total{outcome}
      Counter — chunk messages handled by workers, by outcome
      (processed, rejected).

  scan_results_cache_total{outcome}
      Counter — results-cache lookups for completed scans, by outcome
      (hit, miss, error).

  content_hydration_failures_total
      Counter — stored page bodies that could not be read back.

  http_requests_total{method, path, status}
      Counter — HTTP requests handled by the FastAPI application.

  http_request_duration_seconds{method, path}
      Histogram — HTTP request latency in seconds.

Usage::

    from url_scanner.api.metrics import scan_chunks_total
    scan_chunks_total.labels(outcome="processed").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# Scan pipeline metrics
# ---------------------------------------------------------------------------

scans_submitted_total: Counter = Counter(
    "scans_submitted_total",
    "Scans admitted through the API.",
)

scan_chunks_total: Counter = Counter(
    "scan_chunks_total",
    "Chunk messages handled by workers by outcome.",
    labelnames=["outcome"],
)
"""Counter incremented once per chunk task execution.

Labels:
  outcome: 'processed' or 'rejected' (dead-lettered)
"""

scan_results_cache_total: Counter = Counter(
    "scan_results_cache_total",
    "Results cache lookups for completed scans by outcome.",
    labelnames=["outcome"],
)
"""Counter incremented by the result reader.

Labels:
  outcome: one of hit, miss, error
"""

content_hydration_failures_total: Counter = Counter(
    "content_hydration_failures_total",
    "Stored page bodies that could not be loaded for a results page.",
)

# ---------------------------------------------------------------------------
# HTTP metrics (populated by middleware in main.py)
# ---------------------------------------------------------------------------

http_requests_total: Counter = Counter(
    "http_requests_total",
    "HTTP requests handled by the FastAPI application.",
    labelnames=["method", "path", "status"],
)
"""Counter incremented after every HTTP response.

Labels:
  method: HTTP method (GET, POST, …)
  path:   route template where possible, e.g. '/scans/{request_id}/status'
  status: HTTP response status code as string (e.g. '200', '404')
"""

http_request_duration_seconds: Histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


# ---------------------------------------------------------------------------
# Response helper
# ---------------------------------------------------------------------------


def get_metrics_response() -> tuple[bytes, str]:
    """Generate a Prometheus text-format metrics response.

    Returns:
        A tuple of (body_bytes, content_type_string) suitable for constructing
        a FastAPI ``Response`` object.
    """
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest  # noqa: PLC0415

    return generate_latest(), CONTENT_TYPE_LATEST
