"""Backend caller — one outbound request against an Azure OpenAI deployment.

No transformation happens here: the backend's status, headers and body come
back to the caller unchanged. Re-shaping is the job of the reframer and the
aggregator.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from relay.core.config import GatewayConfig
from relay.core.exceptions import (
    AuthorizationError,
    UpstreamResponseError,
    UpstreamStatusError,
    UpstreamTransportError,
)
from relay.core.metrics import UPSTREAM_CALLS

logger = logging.getLogger(__name__)


def build_client(config: GatewayConfig, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Shared client for connection pooling across requests."""
    return httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_seconds), transport=transport)


class AzureBackend:
    """Issues requests to ``{endpoint}/openai/deployments/{deployment}/{path}``."""

    def __init__(self, config: GatewayConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client

    def resolve_deployment(self, model: str | None) -> str:
        """Map a client-facing model name to a deployment; unknown names pass through."""
        if not model:
            return ""
        return self.config.model_map.get(model, model)

    def build_url(self, path: str, deployment: str) -> str:
        return f"{self.config.endpoint}/openai/deployments/{deployment}/{path}?api-version={self.config.api_version}"

    async def send(
        self,
        method: str,
        payload: dict[str, Any] | None,
        path: str,
        credential: str | None,
        *,
        stream: bool = False,
    ) -> httpx.Response:
        """Forward one request. With ``stream=True`` the caller must ``aclose()`` the response."""
        if not credential:
            raise AuthorizationError()

        deployment = ""
        if method == "POST" and payload:
            deployment = self.resolve_deployment(payload.get("model"))

        request = self.client.build_request(
            method,
            self.build_url(path, deployment),
            content=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "api-key": credential,
            },
        )

        try:
            response = await self.client.send(request, stream=stream)
        except httpx.TransportError as e:
            UPSTREAM_CALLS.labels(path=path, status="error").inc()
            logger.warning(
                "Backend %s %s unreachable: %s", method, path, e, extra={"upstream_path": request.url.path}
            )
            raise UpstreamTransportError(f"Backend request failed: {type(e).__name__}") from e

        UPSTREAM_CALLS.labels(path=path, status=str(response.status_code)).inc()
        logger.debug(
            "Backend %s %s → %d (deployment=%s)",
            method,
            path,
            response.status_code,
            deployment,
            extra={"upstream_path": request.url.path},
        )
        return response

    async def send_json(
        self,
        method: str,
        payload: dict[str, Any],
        path: str,
        credential: str | None,
    ) -> Any:
        """Forward one request and decode the JSON body.

        Non-2xx raises UpstreamStatusError carrying the raw backend response.
        """
        response = await self.send(method, payload, path, credential)

        if not response.is_success:
            raise UpstreamStatusError(response.status_code, response.content, dict(response.headers))

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamResponseError(f"Backend returned non-JSON body for {path}") from e

    async def aclose(self) -> None:
        await self.client.aclose()
