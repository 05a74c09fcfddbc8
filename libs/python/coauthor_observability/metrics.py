"""Prometheus metrics helpers and middleware."""

from __future__ import annotations

from time import perf_counter

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

_HTTP_REQUEST_COUNT = Counter(
    "coauthor_http_requests_total",
    "Total HTTP requests processed by service",
    labelnames=("service", "method", "route", "status"),
)

_HTTP_REQUEST_LATENCY = Histogram(
    "coauthor_http_request_duration_seconds",
    "Latency of HTTP requests",
    labelnames=("service", "method", "route"),
)

_SYNC_DURATION = Histogram(
    "coauthor_sync_duration_seconds",
    "Duration of outline/chapter synchronisation operations",
    labelnames=("operation", "outcome"),
)

_SYNC_FAILURES = Counter(
    "coauthor_sync_failures_total",
    "Synchronisation failures by kind",
    labelnames=("kind",),
)

_COALESCED_PAYLOADS = Counter(
    "coauthor_reorder_payloads_total",
    "Reorder payloads either flushed to the backend or superseded before sending",
    labelnames=("result",),
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect request metrics for FastAPI services."""

    def __init__(self, app: FastAPI, service_name: str) -> None:
        super().__init__(app)
        self.service_name = service_name

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        start = perf_counter()
        response = await call_next(request)
        elapsed = perf_counter() - start

        route_template = request.url.path
        route = request.scope.get("route")
        if route and getattr(route, "path", None):
            route_template = route.path  # type: ignore[assignment]

        method = request.method
        status = getattr(response, "status_code", 500)

        _HTTP_REQUEST_COUNT.labels(self.service_name, method, route_template, str(status)).inc()
        _HTTP_REQUEST_LATENCY.labels(self.service_name, method, route_template).observe(elapsed)
        return response


def setup_fastapi_metrics(app: FastAPI, service_name: str, endpoint: str = "/metrics") -> None:
    """Register Prometheus middleware and metrics endpoint for a FastAPI app."""

    if getattr(app.state, "metrics_configured", False):
        return

    app.add_middleware(PrometheusMiddleware, service_name=service_name)

    @app.get(endpoint, include_in_schema=False)
    async def _metrics_endpoint() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.state.metrics_configured = True


def observe_sync_duration(operation: str, duration_seconds: float, *, outcome: str = "success") -> None:
    _SYNC_DURATION.labels(operation, outcome).observe(max(duration_seconds, 0.0))


def record_sync_failure(kind: str) -> None:
    _SYNC_FAILURES.labels(kind).inc()


def record_coalesced_flush(*, superseded: int = 0) -> None:
    """Count one flushed payload plus the payloads it replaced while pending."""

    _COALESCED_PAYLOADS.labels("flushed").inc()
    if superseded > 0:
        _COALESCED_PAYLOADS.labels("superseded").inc(superseded)
