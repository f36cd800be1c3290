"""OpenTelemetry setup for the payments API.

Inbound requests are traced by the FastAPI instrumentation; outbound provider
calls get manual `provider.<op>` spans from `get_tracer()`.
"""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from framepay.common.config import settings


def setup_tracing(service_name: str) -> None:
    """Register an OTLP-exporting tracer provider unless tracing is disabled."""

    if not settings.tracing_enabled:
        return
    resource = Resource.create({"service.name": service_name, "deployment.environment": settings.environment})
    provider = TracerProvider(
        resource=resource,
        sampler=ParentBased(TraceIdRatioBased(settings.tracing_sample_ratio)),
    )
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    trace.set_tracer_provider(provider)


def instrument_app(app: FastAPI) -> None:
    if not settings.tracing_enabled:
        return
    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")


def get_tracer() -> trace.Tracer:
    return trace.get_tracer("framepay")
