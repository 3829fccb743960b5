"""Prometheus metrics for the relay."""

import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from relay import __version__

# --- Metrics ---

APP_INFO = Info("relay", "Azure OpenAI relay info")
APP_INFO.info({"version": __version__, "name": "azure_openai_relay"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "Time to response headers, in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

UPSTREAM_CALLS = Counter(
    "relay_upstream_calls_total",
    "Calls made to the Azure OpenAI backend",
    ["path", "status"],
)

STREAMED_RECORDS = Counter(
    "relay_streamed_records_total",
    "Complete event records forwarded to clients",
)


# --- Middleware ---

_KNOWN_PATHS = frozenset({"/v1/chat/completions", "/v1/completions", "/v1/embeddings", "/v1/models", "/health"})


def _normalize_path(path: str) -> str:
    """Collapse unknown paths to one label to keep cardinality bounded."""
    return path if path in _KNOWN_PATHS else "other"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = _normalize_path(request.url.path)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        REQUEST_COUNT.labels(method=method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
