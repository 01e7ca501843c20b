"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from docs_quicksearch.observability.context import (
    bind_docs_version,
    generate_span_id,
    generate_trace_id,
    get_trace_context,
    set_trace_context,
)
from docs_quicksearch.observability.logging import JsonFormatter, configure_logging
from docs_quicksearch.observability.metrics import (
    BUILD_PAGES,
    CLASSIFICATION_ISSUES,
    INDEX_LOADS,
    INDEX_PAGE_COUNT,
    SEARCH_LATENCY,
    get_metrics,
    track_latency,
)
from docs_quicksearch.observability.tracing import configure_trace_exporter, create_span, get_tracer, init_tracing


__all__ = [
    "BUILD_PAGES",
    "CLASSIFICATION_ISSUES",
    "INDEX_LOADS",
    "INDEX_PAGE_COUNT",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "bind_docs_version",
    "configure_logging",
    "configure_trace_exporter",
    "create_span",
    "generate_span_id",
    "generate_trace_id",
    "get_metrics",
    "get_trace_context",
    "get_tracer",
    "init_tracing",
    "set_trace_context",
    "track_latency",
]
