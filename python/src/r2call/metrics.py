"""Prometheus metrics definitions for r2call.

All r2call metrics use the ``r2call_`` prefix for namespace isolation. They
are opt-in: until :func:`init_metrics` runs, the module-level references
stay ``None`` and call sites skip recording.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# Request counter / latency  (labels: method, status)
# ---------------------------------------------------------------------------
requests_total: Counter | None = None
request_duration_seconds: Histogram | None = None

# ---------------------------------------------------------------------------
# Body preparation and bytes
# ---------------------------------------------------------------------------
body_prep_seconds: Histogram | None = None
bytes_sent_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    Safe to call more than once; collectors are registered in the global
    registry only on the first call.
    """
    global _initialized
    global requests_total, request_duration_seconds
    global body_prep_seconds, bytes_sent_total

    if _initialized:
        return

    requests_total = Counter(
        "r2call_requests_total",
        "Total signed requests by method and response status",
        ["method", "status"],
    )

    request_duration_seconds = Histogram(
        "r2call_request_duration_seconds",
        "Time from dispatch to response headers",
        ["method"],
    )

    body_prep_seconds = Histogram(
        "r2call_body_prep_seconds",
        "Time spent reading and hashing request bodies before signing",
    )

    bytes_sent_total = Counter(
        "r2call_bytes_sent_total",
        "Total request body bytes declared for transmission",
    )

    _initialized = True


def record_request(method: str, status: int | str, duration: float, sent: int = 0) -> None:
    """Record one dispatched request, if metrics are enabled."""
    if requests_total is not None:
        requests_total.labels(method=method, status=str(status)).inc()
    if request_duration_seconds is not None:
        request_duration_seconds.labels(method=method).observe(duration)
    if bytes_sent_total is not None and sent:
        bytes_sent_total.inc(sent)
