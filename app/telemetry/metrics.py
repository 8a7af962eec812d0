"""Metric definitions and the helpers the app records them through."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

ANALYSIS_RUNS = Counter(
    "analysis_runs_total",
    "Analysis runs finished, by kind and outcome",
    ("kind", "outcome"),
)

PROVIDER_STREAM_DURATION = Histogram(
    "provider_stream_duration_seconds",
    "Wall time of one streaming call to an LLM vendor",
    ("provider", "outcome"),
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0, 300.0),
)

OPEN_CHANNELS = Gauge(
    "analysis_broadcast_channels",
    "Broadcast channels currently open",
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    status_label = str(status_code)
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=status_label,
    ).inc()
    REQUEST_LATENCY.labels(
        method=safe_method,
        route=safe_route,
    ).observe(observed_duration)

    if status_code >= 500:
        ERROR_COUNTER.labels(
            method=safe_method,
            route=safe_route,
        ).inc()


def record_analysis_outcome(kind: str, outcome: str) -> None:
    """Count one finished run (``completed``, ``stopped`` or ``error``)."""

    ANALYSIS_RUNS.labels(kind=kind or "unknown", outcome=outcome).inc()


def observe_provider_stream(provider: str, outcome: str, duration_seconds: float) -> None:
    PROVIDER_STREAM_DURATION.labels(provider=provider, outcome=outcome).observe(
        max(duration_seconds, 0)
    )


def set_open_channels(count: int) -> None:
    OPEN_CHANNELS.set(count)
