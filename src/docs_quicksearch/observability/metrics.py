"""Prometheus metrics for index builds and queries, mirrored to OpenTelemetry.

Each metric is declared once with ``MetricBridge``; the Prometheus collector is
registered immediately and the OTel instrument is created on first use, so the
meter provider may be configured after import.
"""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING, Any, Literal

from opentelemetry import metrics as otel_metrics
from prometheus_client import Counter, Gauge, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator, Sequence

MetricKind = Literal["counter", "histogram", "gauge"]

_PROMETHEUS_TYPES = {"counter": Counter, "histogram": Histogram, "gauge": Gauge}
# Gauges are exported to OTel as up/down counters fed with deltas
_OTEL_FACTORIES = {"counter": "create_counter", "histogram": "create_histogram", "gauge": "create_up_down_counter"}

_meter_holder: dict[str, Any] = {"meter": None}


def _get_meter():
    if _meter_holder["meter"] is None:
        _meter_holder["meter"] = otel_metrics.get_meter(__name__)
    return _meter_holder["meter"]


class _BoundMetric:
    def __init__(self, bridge: MetricBridge, labels: dict[str, str]) -> None:
        self._bridge = bridge
        self._labels = labels

    def inc(self, amount: float = 1.0) -> None:
        self._bridge.record(self._labels, amount, "inc")

    def observe(self, value: float) -> None:
        self._bridge.record(self._labels, value, "observe")

    def set(self, value: float) -> None:
        self._bridge.record(self._labels, value, "set")


class MetricBridge:
    """One metric recorded to both Prometheus and OpenTelemetry."""

    def __init__(
        self,
        kind: MetricKind,
        name: str,
        description: str,
        label_names: Sequence[str],
        **prometheus_options: Any,
    ) -> None:
        self.kind = kind
        self.name = name
        self.description = description
        self._prom_metric = _PROMETHEUS_TYPES[kind](name, description, list(label_names), **prometheus_options)
        self._otel_instrument = None
        self._gauge_values: dict[tuple[tuple[str, str], ...], float] = {}

    def labels(self, **labels: str) -> _BoundMetric:
        return _BoundMetric(self, labels)

    def _instrument(self):
        if self._otel_instrument is None:
            factory = getattr(_get_meter(), _OTEL_FACTORIES[self.kind])
            self._otel_instrument = factory(self.name, description=self.description)
        return self._otel_instrument

    def record(self, labels: dict[str, str], value: float, operation: str) -> None:
        getattr(self._prom_metric.labels(**labels), operation)(value)

        if self.kind == "histogram":
            self._instrument().record(value, labels)
            return
        if self.kind == "counter":
            self._instrument().add(value, labels)
            return

        key = tuple(sorted(labels.items()))
        delta = value - self._gauge_values.get(key, 0.0)
        self._gauge_values[key] = value
        if delta:
            self._instrument().add(delta, labels)


SEARCH_LATENCY = MetricBridge(
    "histogram",
    "docs_search_latency_seconds",
    "Docs query latency",
    ["docs_version"],
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1),
)
INDEX_LOADS = MetricBridge("counter", "docs_index_loads_total", "Index resolution attempts by outcome", ["outcome"])
INDEX_PAGE_COUNT = MetricBridge("gauge", "docs_index_page_count", "Pages in the active index", ["docs_version"])
BUILD_PAGES = MetricBridge("counter", "docs_build_pages_total", "Pages processed by index builds", ["page_type"])
CLASSIFICATION_ISSUES = MetricBridge(
    "counter",
    "docs_classification_issues_total",
    "Pages that could not be typed during a build",
    ["severity"],
)


@contextmanager
def track_latency(histogram: MetricBridge, **labels: str) -> Generator[None, None, None]:
    """Observe the wall time of the enclosed block on ``histogram``."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Render every registered metric in the Prometheus text format."""
    return generate_latest()
