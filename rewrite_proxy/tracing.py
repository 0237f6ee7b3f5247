"""
OpenTelemetry setup for the proxy.

The API package is always present and gives no-op spans. The SDK, the
FastAPI instrumentation and the OTLP exporter come from the ``otel`` extra;
without them :func:`configure_tracing` leaves the no-op provider in place.
"""

import logging
from typing import Sequence

from fastapi import FastAPI
from opentelemetry import trace

from rewrite_proxy.proxy.settings import ProxySettings

try:
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider, ReadableSpan
    from opentelemetry.sdk.trace.export import (
        BatchSpanProcessor,
        SpanExporter,
        SpanExportResult,
    )
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    OTEL_SDK_AVAILABLE = True
except ImportError:  # pragma: no cover - otel extra not installed
    Resource = TracerProvider = ReadableSpan = BatchSpanProcessor = None  # type: ignore
    SpanExporter = SpanExportResult = None  # type: ignore
    FastAPIInstrumentor = OTLPSpanExporter = None  # type: ignore
    OTEL_SDK_AVAILABLE = False

logger = logging.getLogger("uvicorn.error")

# One span per relayed chunk of a streamed download
BODY_CHUNK_EVENT = "http.response.body"


def is_body_chunk_span(span) -> bool:
    attributes = span.attributes or {}
    return attributes.get("asgi.event.type") == BODY_CHUNK_EVENT


class BodyChunkSpanFilter(SpanExporter if OTEL_SDK_AVAILABLE else object):
    """Exporter wrapper that keeps streamed downloads down to a few spans."""

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        kept = [span for span in spans if not is_body_chunk_span(span)]
        if not kept:
            return SpanExportResult.SUCCESS
        return self.exporter.export(kept)

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def configure_tracing(
    app: FastAPI,
    settings: ProxySettings,
    service_name: str,
    otlp_endpoint: str = None,
    otlp_headers: str = "",
    excluded_urls: str = "",
) -> bool:
    """Install the SDK provider and instrument the app; False when the SDK is missing."""
    if not OTEL_SDK_AVAILABLE:
        logger.info("OpenTelemetry SDK not installed, proxy spans are not exported")
        return False

    provider = TracerProvider(
        resource=Resource.create(
            {"service.name": service_name, "proxy.target_host": settings.target_host}
        )
    )
    if otlp_endpoint:
        exporter = OTLPSpanExporter(
            endpoint=otlp_endpoint,
            headers=(otlp_headers.split(",") if otlp_headers else None),
        )
        provider.add_span_processor(BatchSpanProcessor(BodyChunkSpanFilter(exporter)))
        logger.info(f"Exporting proxy spans to {otlp_endpoint}")
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, excluded_urls=excluded_urls)
    return True
