"""Observability module: structured logging, Prometheus metrics, OpenTelemetry tracing."""

from tinysearch.observability.context import get_trace_context, set_trace_context, trace_context
from tinysearch.observability.logging import JsonFormatter, configure_logging
from tinysearch.observability.metrics import (
    INDEX_BUILD_DOCUMENTS,
    INDEX_BUILD_LATENCY,
    INDEX_DOC_COUNT,
    REQUEST_COUNT,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    get_metrics,
    get_metrics_content_type,
    track_latency,
)
from tinysearch.observability.tracing import configure_trace_exporter, create_span, get_tracer, init_tracing


__all__ = [
    "INDEX_BUILD_DOCUMENTS",
    "INDEX_BUILD_LATENCY",
    "INDEX_DOC_COUNT",
    "REQUEST_COUNT",
    "SEARCH_LATENCY",
    "SEARCH_REQUESTS",
    "JsonFormatter",
    "configure_logging",
    "configure_trace_exporter",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_tracing",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
