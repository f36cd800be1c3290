"""Prometheus metric definitions shared across the service."""

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
payment_requests_total = Counter(
    "payment_requests_total",
    "Total payment creation requests",
    ["service", "method"],
)
payment_failure_total = Counter(
    "payment_failure_total",
    "Total failed payment creations",
    ["service", "method", "kind"],
)
provider_call_seconds = Histogram(
    "provider_call_seconds",
    "Outbound provider call latency seconds",
    ["provider", "op"],
)
provider_errors_total = Counter(
    "provider_errors_total",
    "Provider call failures by canonical error kind",
    ["provider", "op", "kind"],
)
provider_up = Gauge(
    "provider_up",
    "1 when the last health check reached the provider, else 0",
    ["provider"],
)
retries_total = Counter("retries_total", "Retry count", ["service", "dependency"])
terminal_status_conflicts_total = Counter(
    "terminal_status_conflicts_total",
    "Polls that observed a status different from an already latched terminal status",
    ["service", "method"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
