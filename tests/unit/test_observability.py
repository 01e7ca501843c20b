"""Unit tests for observability module."""

import json
import logging
from pathlib import Path
import sys
from unittest.mock import Mock

from opentelemetry import trace as trace_api
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
from prometheus_client import REGISTRY
import pytest

from docs_quicksearch.config import Settings
from docs_quicksearch.observability import (
    INDEX_PAGE_COUNT,
    SEARCH_LATENCY,
    JsonFormatter,
    bind_docs_version,
    configure_logging,
    configure_trace_exporter,
    create_span,
    get_metrics,
    get_trace_context,
    init_tracing,
    set_trace_context,
    track_latency,
)
from docs_quicksearch.observability import tracing as tracing_module
from docs_quicksearch.observability.context import update_span_id
from docs_quicksearch.search.builder import IndexBuilder
from docs_quicksearch.search.query_engine import QueryEngine
from docs_quicksearch.search.storage import VersionedIndexStore
from docs_quicksearch.search.version import MajorMinorVersion
from tests.fixtures.docs_corpus import make_index


def _record(msg: str, name: str = "docs_quicksearch.search.storage", level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="storage.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def _setup_exporter() -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    provider = trace_api.get_tracer_provider()
    if not isinstance(provider, TracerProvider):
        provider = init_tracing("test-service")
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


@pytest.mark.unit
class TestJsonFormatter:
    """Tests for structured JSON logging."""

    def test_format_includes_trace_context(self):
        set_trace_context("ab" * 16, "cd" * 8)

        data = json.loads(JsonFormatter().format(_record("Loaded docs index")))

        assert data["message"] == "Loaded docs index"
        assert data["level"] == "INFO"
        assert data["logger"] == "docs_quicksearch.search.storage"
        assert data["component"] == "storage"
        assert data["trace_id"] == "ab" * 16
        assert data["span_id"] == "cd" * 8
        assert "timestamp" in data

    def test_format_includes_docs_version(self):
        set_trace_context("ab" * 16, "cd" * 8)
        bind_docs_version("001B")

        data = json.loads(JsonFormatter().format(_record("query")))

        assert data["docs_version"] == "001B"

    def test_format_includes_extra_fields(self):
        record = _record("built", level=logging.WARNING)
        record.index_path = Path("/tmp/DocsIndex-2019.3-001B.json")
        record.page_types = {"Class", "Struct"}

        data = json.loads(JsonFormatter().format(record))

        assert data["index_path"] == "/tmp/DocsIndex-2019.3-001B.json"
        assert data["page_types"] == ["Class", "Struct"]

    def test_format_truncates_long_values(self):
        record = _record("x" * 5000)
        record.detail = "y" * 1000

        data = json.loads(JsonFormatter().format(record))

        assert len(data["message"]) == JsonFormatter.MAX_MESSAGE_LEN + 3
        assert data["message"].endswith("...")
        assert data["detail"].endswith("...")

    def test_format_includes_exception(self):
        try:
            raise ValueError("corrupt index")
        except ValueError:
            record = logging.LogRecord("docs", logging.ERROR, "x.py", 1, "failed", (), sys.exc_info())

        data = json.loads(JsonFormatter().format(record))

        assert "ValueError: corrupt index" in data["exception"]

    def test_json_default_handles_set_and_bytes(self):
        formatter = JsonFormatter()
        assert formatter._json_default({3, 1, 2}) == [1, 2, 3]
        assert formatter._json_default(b"ok") == "ok"

    def test_json_default_handles_unorderable_set(self):
        value = JsonFormatter()._json_default({1, "a"})
        assert isinstance(value, list)
        assert len(value) == 2


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for root logger setup."""

    @pytest.fixture(autouse=True)
    def _restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)
        logging.getLogger("docs_quicksearch.search").setLevel(logging.NOTSET)

    def test_json_output(self):
        configure_logging("debug", json_output=True)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("opentelemetry").level == logging.WARNING

    def test_plain_output_and_logger_levels(self):
        configure_logging("warning", json_output=False, logger_levels={"docs_quicksearch.search": "debug"})

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("docs_quicksearch.search").level == logging.DEBUG


@pytest.mark.unit
class TestTraceContext:
    """Tests for trace context propagation."""

    def test_get_trace_context_generates_ids(self):
        ctx = get_trace_context()
        assert len(ctx["trace_id"]) == 32
        assert len(ctx["span_id"]) == 16

    def test_update_span_id_preserves_trace_id(self):
        set_trace_context("aa" * 16, "bb" * 8, command="search")
        update_span_id("cc" * 8)
        ctx = get_trace_context()
        assert ctx["trace_id"] == "aa" * 16
        assert ctx["span_id"] == "cc" * 8
        assert ctx["command"] == "search"

    def test_bind_docs_version_preserves_ids(self):
        set_trace_context("aa" * 16, "bb" * 8)
        bind_docs_version("002A")
        ctx = get_trace_context()
        assert ctx["trace_id"] == "aa" * 16
        assert ctx["docs_version"] == "002A"


@pytest.mark.unit
class TestTracing:
    """Tests for OpenTelemetry spans around builds, resolution and queries."""

    def test_create_span_sets_attributes(self):
        exporter = _setup_exporter()

        with create_span("test.operation", attributes={"test.key": "value"}):
            pass

        span = exporter.get_finished_spans()[-1]
        assert span.name == "test.operation"
        assert span.attributes["test.key"] == "value"

    def test_create_span_records_errors(self):
        exporter = _setup_exporter()

        with pytest.raises(RuntimeError, match="boom"), create_span("test.failure"):
            raise RuntimeError("boom")

        span = exporter.get_finished_spans()[-1]
        assert span.status.status_code == StatusCode.ERROR

    def test_build_span(self, sample_docs, tmp_path):
        exporter = _setup_exporter()

        IndexBuilder(Settings()).build_from_docs(sample_docs, tmp_path / "out")

        span = next(span for span in exporter.get_finished_spans() if span.name == "index.build")
        assert span.attributes["build.page_count"] == 12
        assert span.attributes["build.issue_count"] == 0

    def test_resolve_and_query_spans(self, tmp_path):
        exporter = _setup_exporter()
        VersionedIndexStore([tmp_path]).resolve(MajorMinorVersion(2019, 3))
        QueryEngine(index=make_index()).search(["transform"], "transform")

        names = [span.name for span in exporter.get_finished_spans()]
        assert "index.resolve" in names
        query_span = [span for span in exporter.get_finished_spans() if span.name == "search.query"][-1]
        assert query_span.attributes["search.token_count"] == 1
        assert query_span.attributes["search.result_count"] == 1

    def test_get_tracer_resets_when_missing(self):
        tracing_module._tracer_holder["tracer"] = None
        assert tracing_module.get_tracer() is not None

    def test_configure_trace_exporter_disabled_without_endpoint(self):
        assert configure_trace_exporter(Settings(otlp_endpoint="")) is False

    @pytest.mark.parametrize(
        ("protocol", "attribute"),
        [("http", "HttpOTLPSpanExporter"), ("grpc", "GrpcOTLPSpanExporter")],
    )
    def test_configure_trace_exporter_selects_protocol(self, monkeypatch, protocol, attribute):
        exporter_cls = Mock()
        monkeypatch.setattr(tracing_module, attribute, exporter_cls)
        provider = TracerProvider()
        settings = Settings(otlp_endpoint="http://collector:4318", otlp_protocol=protocol)

        assert configure_trace_exporter(settings, provider) is True

        exporter_cls.assert_called_once()
        assert exporter_cls.call_args.kwargs["endpoint"] == "http://collector:4318"
        provider.shutdown()

    def test_configure_trace_exporter_handles_exporter_failure(self, monkeypatch):
        monkeypatch.setattr(tracing_module, "HttpOTLPSpanExporter", Mock(side_effect=RuntimeError("boom")))
        settings = Settings(otlp_endpoint="http://collector:4318")

        assert configure_trace_exporter(settings, TracerProvider()) is False


@pytest.mark.unit
class TestMetrics:
    """Tests for Prometheus metrics mirrored to OpenTelemetry."""

    def test_track_latency_observes_histogram(self):
        labels = {"docs_version": "metrics-test"}
        before = REGISTRY.get_sample_value("docs_search_latency_seconds_count", labels) or 0

        with track_latency(SEARCH_LATENCY, docs_version="metrics-test"):
            pass

        assert REGISTRY.get_sample_value("docs_search_latency_seconds_count", labels) == before + 1

    def test_gauge_tracks_page_count(self):
        INDEX_PAGE_COUNT.labels(docs_version="gauge-test").set(12)
        INDEX_PAGE_COUNT.labels(docs_version="gauge-test").set(7)

        assert REGISTRY.get_sample_value("docs_index_page_count", {"docs_version": "gauge-test"}) == 7

    def test_index_loads_counted_by_outcome(self, tmp_path):
        labels = {"outcome": "not_found"}
        before = REGISTRY.get_sample_value("docs_index_loads_total", labels) or 0

        VersionedIndexStore([tmp_path]).resolve(MajorMinorVersion(2019, 3))

        assert REGISTRY.get_sample_value("docs_index_loads_total", labels) == before + 1

    def test_get_metrics_exposes_all_families(self):
        payload = get_metrics().decode("utf-8")
        for name in (
            "docs_search_latency_seconds",
            "docs_index_loads_total",
            "docs_index_page_count",
            "docs_build_pages_total",
            "docs_classification_issues_total",
        ):
            assert name in payload
