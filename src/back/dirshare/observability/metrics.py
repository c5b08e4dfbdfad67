"""Prometheus metrics for dirshare.

Metric naming follows Prometheus conventions. HTTP metrics are shared
with the request middleware; the ``dirshare_*`` series track the share
registry, boundary rejections and transfer volume.

Usage::

    from dirshare.observability.metrics import SHARES_CREATED_TOTAL

    SHARES_CREATED_TOTAL.inc()
"""

from __future__ import annotations

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------

HTTP_REQUESTS_TOTAL = Counter(
    "http_server_requests_total",
    "Total HTTP requests by method, path pattern, and status code.",
    labelnames=["method", "path", "status"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_server_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_FLIGHT = Gauge(
    "http_server_requests_in_flight",
    "Number of HTTP requests currently being processed.",
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Share registry metrics
# ---------------------------------------------------------------------------

SHARES_CREATED_TOTAL = Counter(
    "dirshare_shares_created_total",
    "Share tokens issued since process start.",
    registry=REGISTRY,
)

SHARE_REDEMPTIONS_TOTAL = Counter(
    "dirshare_share_redemptions_total",
    "Share token redemptions by outcome.",
    labelnames=["outcome"],
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Boundary and transfer metrics
# ---------------------------------------------------------------------------

PATH_REJECTIONS_TOTAL = Counter(
    "dirshare_path_rejections_total",
    "Paths rejected by the boundary validator, by reason.",
    labelnames=["reason"],
    registry=REGISTRY,
)

BYTES_SENT_TOTAL = Counter(
    "dirshare_bytes_sent_total",
    "File bytes streamed to clients.",
    registry=REGISTRY,
)


def metrics_text() -> tuple[bytes, str]:
    """Generate Prometheus exposition text and content-type header."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
