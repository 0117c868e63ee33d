"""Prometheus metrics for indexing and query serving, mirrored to OpenTelemetry."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics as otel_metrics
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator


_meter_holder: dict[str, Any] = {"meter": None}


def _get_meter():
    meter = _meter_holder.get("meter")
    if meter is None:
        meter = otel_metrics.get_meter("tinysearch")
        _meter_holder["meter"] = meter
    return meter


def _label_key(labels: dict[str, str]) -> tuple[tuple[str, str], ...]:
    return tuple(sorted(labels.items()))


class _BoundMetric:
    def __init__(self, wrapper: MetricBridge, labels: dict[str, str]) -> None:
        self._wrapper = wrapper
        self._labels = labels

    def inc(self, amount: float = 1.0) -> None:
        self._wrapper.inc(self._labels, amount)

    def observe(self, value: float) -> None:
        self._wrapper.observe(self._labels, value)

    def set(self, value: float) -> None:
        self._wrapper.set(self._labels, value)


class MetricBridge:
    """Bridge a Prometheus metric to a lazily created OTel instrument."""

    def __init__(
        self,
        prom_metric: Counter | Histogram | Gauge,
        *,
        otel_name: str,
        otel_description: str,
        otel_kind: str,
    ) -> None:
        self._prom_metric = prom_metric
        self._otel_name = otel_name
        self._otel_description = otel_description
        self._otel_kind = otel_kind
        self._otel_instrument = None
        self._last_values: dict[tuple[tuple[str, str], ...], float] = {}

    def labels(self, **labels: str) -> _BoundMetric:
        return _BoundMetric(self, labels)

    def _prom(self, labels: dict[str, str]):
        # Unlabelled Prometheus metrics reject .labels() calls.
        return self._prom_metric.labels(**labels) if labels else self._prom_metric

    def _ensure_otel_instrument(self):
        if self._otel_instrument is not None:
            return self._otel_instrument
        meter = _get_meter()
        if self._otel_kind == "counter":
            self._otel_instrument = meter.create_counter(self._otel_name, description=self._otel_description)
        elif self._otel_kind == "histogram":
            self._otel_instrument = meter.create_histogram(self._otel_name, description=self._otel_description)
        elif self._otel_kind == "gauge":
            self._otel_instrument = meter.create_up_down_counter(self._otel_name, description=self._otel_description)
        else:
            raise ValueError(f"Unknown metric kind: {self._otel_kind}")
        return self._otel_instrument

    def inc(self, labels: dict[str, str], amount: float) -> None:
        self._prom(labels).inc(amount)
        self._ensure_otel_instrument().add(amount, labels)

    def observe(self, labels: dict[str, str], value: float) -> None:
        self._prom(labels).observe(value)
        self._ensure_otel_instrument().record(value, labels)

    def set(self, labels: dict[str, str], value: float) -> None:
        self._prom(labels).set(value)
        otel = self._ensure_otel_instrument()
        key = _label_key(labels)
        delta = value - self._last_values.get(key, 0.0)
        if delta:
            otel.add(delta, labels)
        self._last_values[key] = value


_REQUEST_COUNT_PROM = Counter(
    "tinysearch_http_requests_total",
    "Total HTTP requests",
    ["route", "status"],
)

_SEARCH_REQUESTS_PROM = Counter(
    "tinysearch_search_queries_total",
    "Total evaluated search queries",
    ["mode"],
)

_SEARCH_LATENCY_PROM = Histogram(
    "tinysearch_search_latency_seconds",
    "Search query latency",
    ["mode"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25),
)

_INDEX_BUILD_DOCUMENTS_PROM = Counter(
    "tinysearch_index_build_documents_total",
    "Documents applied to an index under construction",
)

_INDEX_BUILD_LATENCY_PROM = Histogram(
    "tinysearch_index_build_seconds",
    "Wall time of full index builds",
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0),
)

_INDEX_DOC_COUNT_PROM = Gauge(
    "tinysearch_index_document_count",
    "Documents in the live index",
)

REQUEST_COUNT = MetricBridge(
    _REQUEST_COUNT_PROM,
    otel_name="tinysearch_http_requests_total",
    otel_description="Total HTTP requests",
    otel_kind="counter",
)

SEARCH_REQUESTS = MetricBridge(
    _SEARCH_REQUESTS_PROM,
    otel_name="tinysearch_search_queries_total",
    otel_description="Total evaluated search queries",
    otel_kind="counter",
)

SEARCH_LATENCY = MetricBridge(
    _SEARCH_LATENCY_PROM,
    otel_name="tinysearch_search_latency_seconds",
    otel_description="Search query latency",
    otel_kind="histogram",
)

INDEX_BUILD_DOCUMENTS = MetricBridge(
    _INDEX_BUILD_DOCUMENTS_PROM,
    otel_name="tinysearch_index_build_documents_total",
    otel_description="Documents applied to an index under construction",
    otel_kind="counter",
)

INDEX_BUILD_LATENCY = MetricBridge(
    _INDEX_BUILD_LATENCY_PROM,
    otel_name="tinysearch_index_build_seconds",
    otel_description="Wall time of full index builds",
    otel_kind="histogram",
)

INDEX_DOC_COUNT = MetricBridge(
    _INDEX_DOC_COUNT_PROM,
    otel_name="tinysearch_index_document_count",
    otel_description="Documents in the live index",
    otel_kind="gauge",
)


@contextmanager
def track_latency(histogram: MetricBridge, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
