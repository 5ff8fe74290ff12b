"""Observability: structured logging, request context, metrics, tracing, Sentry."""

import logging
import time
import uuid
from typing import Any

import sentry_sdk
import structlog
from fastapi import FastAPI, Request, Response
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from clicklog.core.config import get_settings

settings = get_settings()

REQUEST_ID_HEADER = "X-Request-ID"

# HTTP metrics
REQUEST_COUNT = Counter(
    "clicklog_http_requests_total",
    "HTTP requests by route and status",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "clicklog_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

# Click pipeline metrics
CLICKS_CAPTURED = Counter(
    "clicklog_clicks_captured_total",
    "Clicks captured",
    ["mode"],  # redirect, bait
)

STORAGE_FAILURES = Counter(
    "clicklog_storage_failures_total",
    "Click store writes that failed",
    ["operation"],  # insert, enrich
)

ENRICHMENT_REPORTS = Counter(
    "clicklog_enrichment_reports_total",
    "Browser enrichment reports",
    ["outcome"],  # updated, unknown_id, missing_token, too_large, failed
)

GEO_LOOKUPS = Counter(
    "clicklog_geo_lookups_total",
    "Approximate location lookups",
    ["result"],  # hit, miss, error
)

# Never forwarded to Sentry: the cookie is the correlation secret, the
# query string carries the admin key
SCRUBBED_REQUEST_FIELDS = ("cookies", "query_string")


def _endpoint_label(request: Request) -> str:
    """Route template for metric labels; unmatched paths share one label."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "other"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the log context and echo it back.

    An incoming X-Request-ID is reused so ids line up with the proxy's logs.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request once it completes and feed the HTTP metrics."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        endpoint = _endpoint_label(request)
        REQUEST_COUNT.labels(request.method, endpoint, response.status_code).inc()
        REQUEST_LATENCY.labels(request.method, endpoint).observe(elapsed)

        structlog.get_logger().info(
            "Request completed",
            endpoint=endpoint,
            status_code=response.status_code,
            duration_ms=round(elapsed * 1000, 2),
        )
        return response


def configure_structlog() -> None:
    """JSON logs through the stdlib root logger; console output when debugging."""
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.debug
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if settings.debug else logging.INFO,
    )


def _scrub_event(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    request = event.get("request") or {}
    for field in SCRUBBED_REQUEST_FIELDS:
        request.pop(field, None)
    headers = request.get("headers")
    if isinstance(headers, dict):
        for name in list(headers):
            if name.lower() in ("cookie", "x-forwarded-for"):
                headers.pop(name)
    return event


def setup_sentry() -> None:
    """Enable Sentry error reporting when a DSN is configured."""
    if not settings.sentry_dsn:
        structlog.get_logger().info("Sentry disabled (no DSN configured)")
        return

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment="development" if settings.debug else "production",
        release=settings.app_version,
        traces_sample_rate=0.1,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        send_default_pii=False,
        before_send=_scrub_event,
    )
    structlog.get_logger().info("Sentry configured")


def setup_opentelemetry(app: FastAPI) -> None:
    """Export traces over OTLP when an endpoint is configured."""
    if not settings.otlp_endpoint:
        structlog.get_logger().info("OpenTelemetry disabled (no OTLP endpoint configured)")
        return

    provider = TracerProvider(resource=Resource(attributes={SERVICE_NAME: "clicklog"}))
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=True))
    )
    trace.set_tracer_provider(provider)

    # Probes would drown out the click traffic
    FastAPIInstrumentor.instrument_app(app, excluded_urls="healthz,metrics")
    structlog.get_logger().info("OpenTelemetry configured", otlp_endpoint=settings.otlp_endpoint)


def setup_observability(app: FastAPI) -> None:
    """Configure logging, Sentry and tracing, and mount ``/metrics``."""
    configure_structlog()
    setup_sentry()
    setup_opentelemetry(app)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def record_click_captured(mode: str) -> None:
    CLICKS_CAPTURED.labels(mode=mode).inc()


def record_storage_failure(operation: str) -> None:
    STORAGE_FAILURES.labels(operation=operation).inc()


def record_enrichment(outcome: str) -> None:
    ENRICHMENT_REPORTS.labels(outcome=outcome).inc()


def record_geo_lookup(result: str) -> None:
    GEO_LOOKUPS.labels(result=result).inc()
