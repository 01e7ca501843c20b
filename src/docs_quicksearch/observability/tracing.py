"""OpenTelemetry spans around index builds, index resolution and queries."""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcOTLPSpanExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as HttpOTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode

from docs_quicksearch.observability.context import update_span_id


if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.sdk.trace.export import SpanExporter
    from opentelemetry.trace import Span, Tracer

    from docs_quicksearch.config import Settings

logger = logging.getLogger(__name__)

SERVICE_NAME = "docs-quicksearch"

_tracer_holder: dict[str, Tracer | None] = {"tracer": None}


def init_tracing(
    service_name: str = SERVICE_NAME,
    resource_attributes: dict[str, str] | None = None,
) -> TracerProvider:
    """Install an SDK tracer provider as the global one and return it."""
    resource = Resource.create({"service.name": service_name, **(resource_attributes or {})})
    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)
    _tracer_holder["tracer"] = trace.get_tracer(__name__)
    logger.debug("Tracing initialized for service: %s", service_name)
    return provider


def _build_exporter(settings: Settings) -> SpanExporter:
    if settings.otlp_protocol == "grpc":
        return GrpcOTLPSpanExporter(
            endpoint=settings.otlp_endpoint,
            timeout=settings.otlp_timeout_seconds,
            insecure=settings.otlp_insecure,
        )
    return HttpOTLPSpanExporter(endpoint=settings.otlp_endpoint, timeout=settings.otlp_timeout_seconds)


def configure_trace_exporter(settings: Settings, provider: TracerProvider | None = None) -> bool:
    """Ship spans to ``settings.otlp_endpoint`` over grpc or http.

    Export stays off when no endpoint is configured or the exporter cannot be
    created; the return value says whether it was switched on.
    """
    if not settings.otlp_endpoint:
        return False

    target = provider or trace.get_tracer_provider()
    if not isinstance(target, TracerProvider):
        target = init_tracing()

    try:
        exporter = _build_exporter(settings)
    except Exception as exc:
        logger.error("Failed to configure OTLP exporter: %s", exc, exc_info=True)
        return False

    target.add_span_processor(BatchSpanProcessor(exporter))
    logger.info("OTLP trace export enabled (%s) to %s", settings.otlp_protocol, settings.otlp_endpoint)
    return True


def get_tracer() -> Tracer:
    tracer = _tracer_holder["tracer"]
    if tracer is None:
        tracer = _tracer_holder["tracer"] = trace.get_tracer(__name__)
    return tracer


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Run the enclosed block in a new span; failures mark the span as errored."""
    with get_tracer().start_as_current_span(name, kind=kind, attributes=attributes) as span:
        update_span_id(format(span.get_span_context().span_id, "016x"))
        try:
            yield span
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            raise
