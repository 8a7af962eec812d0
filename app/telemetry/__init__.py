"""Prometheus metrics for HTTP requests, analysis runs and vendor streams."""

from .metrics import (
    ANALYSIS_RUNS,
    ERROR_COUNTER,
    OPEN_CHANNELS,
    PROVIDER_STREAM_DURATION,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    observe_provider_stream,
    observe_request,
    record_analysis_outcome,
    set_open_channels,
)

__all__ = [
    "ANALYSIS_RUNS",
    "ERROR_COUNTER",
    "OPEN_CHANNELS",
    "PROVIDER_STREAM_DURATION",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "observe_provider_stream",
    "observe_request",
    "record_analysis_outcome",
    "set_open_channels",
]
