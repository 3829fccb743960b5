import logging
import traceback
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from relay import __version__
from relay.api.v1.router import api_v1_router
from relay.core.config import GatewayConfig, Settings, settings, validate_settings
from relay.core.exceptions import InvalidRequestError, RelayError, UpstreamStatusError
from relay.core.logging import setup_logging
from relay.core.metrics import PrometheusMiddleware, metrics_response
from relay.core.sentry import init_sentry
from relay.gateway.backend import AzureBackend, build_client
from relay.gateway.responses import status_error_response

logger = logging.getLogger(__name__)

CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


def create_app(s: Settings | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """Build the relay application.

    ``transport`` replaces the network layer of the shared backend client
    (tests pass an ``httpx.MockTransport``).
    """
    s = s or settings
    setup_logging(s)

    gateway_config = GatewayConfig.from_settings(s)
    backend = AzureBackend(gateway_config, build_client(gateway_config, transport=transport))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        validate_settings(s)
        init_sentry(s)
        logger.info(
            "Relaying to %s (api-version=%s, %d model mappings, static token: %s)",
            gateway_config.endpoint,
            gateway_config.api_version,
            len(gateway_config.model_map),
            "yes" if gateway_config.token else "no",
        )

        yield

        # Shutdown
        await backend.aclose()
        logger.info("Relay shut down")

    app = FastAPI(
        title="Azure OpenAI Relay",
        description="OpenAI-compatible API in front of Azure OpenAI deployments",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.gateway_config = gateway_config
    app.state.backend = backend

    @app.exception_handler(UpstreamStatusError)
    async def _upstream_status_handler(request: Request, exc: UpstreamStatusError):
        logger.info("Backend returned %d for %s %s", exc.status_code, request.method, request.url.path)
        return status_error_response(exc)

    @app.exception_handler(RelayError)
    async def _relay_error_handler(request: Request, exc: RelayError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        else:
            logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def _validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(part for part in first.get("loc", ()) if isinstance(part, str) and part != "body")
        message = first.get("msg", "Invalid request body")
        if location:
            message = f"{location}: {message}"
        err = InvalidRequestError(message)
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    # Log unhandled exceptions with the full traceback
    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
        logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
        return JSONResponse(status_code=500, content=RelayError("Internal server error").to_dict())

    if s.metrics_enabled:
        app.add_middleware(PrometheusMiddleware)

        @app.get("/metrics", include_in_schema=False)
        async def metrics():
            return metrics_response()

    # CORS preflight for any path, answered before routing
    @app.middleware("http")
    async def preflight(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_PREFLIGHT_HEADERS)
        return await call_next(request)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(api_v1_router)

    return app
