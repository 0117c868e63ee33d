"""OpenTelemetry tracing with Starlette middleware."""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import TYPE_CHECKING, Any, Literal

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcOTLPSpanExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as HttpOTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode

from tinysearch.observability.context import (
    generate_span_id,
    get_trace_context,
    set_trace_context,
    update_span_id,
)


if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span, Tracer
    from starlette.requests import Request
    from starlette.responses import Response

logger = logging.getLogger(__name__)

_tracer_holder: dict[str, Any] = {"tracer": None, "provider": None}


def init_tracing(service_name: str = "tinysearch") -> TracerProvider:
    """Initialize an SDK tracer provider (idempotent)."""
    provider = _tracer_holder.get("provider")
    if isinstance(provider, TracerProvider):
        return provider
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    trace.set_tracer_provider(provider)
    _tracer_holder["provider"] = provider
    _tracer_holder["tracer"] = trace.get_tracer("tinysearch")
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def configure_trace_exporter(
    endpoint: str | None,
    protocol: Literal["grpc", "http"] = "http",
    *,
    provider: TracerProvider | None = None,
) -> bool:
    """Attach an OTLP span exporter when an endpoint is configured."""
    if not endpoint:
        return False

    active_provider = provider or _tracer_holder.get("provider")
    if not isinstance(active_provider, TracerProvider):
        active_provider = init_tracing()

    if protocol == "grpc":
        exporter = GrpcOTLPSpanExporter(endpoint=endpoint, insecure=True)
    else:
        exporter = HttpOTLPSpanExporter(endpoint=endpoint)

    active_provider.add_span_processor(BatchSpanProcessor(exporter))
    logger.info("OTLP trace export enabled (%s) to %s", protocol, endpoint)
    return True


def get_tracer() -> Tracer:
    """Get the configured tracer, falling back to the global provider."""
    tracer = _tracer_holder.get("tracer")
    if tracer is None:
        tracer = trace.get_tracer("tinysearch")
        _tracer_holder["tracer"] = tracer
    return tracer


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Create a traced span and publish its id to the log context."""
    tracer = get_tracer()
    with tracer.start_as_current_span(name, kind=kind, record_exception=False, set_status_on_exception=False) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, value)

        ctx = span.get_span_context()
        if ctx.is_valid:
            update_span_id(format(ctx.span_id, "016x"))

        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.record_exception(exc)
            raise


class TraceContextMiddleware:
    """ASGI middleware that seeds the log trace context per request."""

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        trace_id = headers.get(b"x-trace-id", b"").decode() or None
        if not trace_id:
            trace_id = get_trace_context()["trace_id"]

        set_trace_context(trace_id, generate_span_id(), route=scope.get("path", ""))
        await self.app(scope, receive, send)


async def trace_request(request: Request, call_next: Any) -> Response:
    """Function middleware wrapping each request in a server span."""
    attributes = {
        "http.method": request.method,
        "http.route": request.url.path,
    }
    with create_span("http.request", kind=SpanKind.SERVER, attributes=attributes) as span:
        response: Response = await call_next(request)
        span.set_attribute("http.status_code", response.status_code)
        if response.status_code >= 500:
            span.set_status(Status(StatusCode.ERROR, f"HTTP {response.status_code}"))
        return response
