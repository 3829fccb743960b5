"""Chat and text completions — single pass-through to the deployment."""

import logging

from fastapi import APIRouter, Depends
from starlette.responses import Response

from relay.core.config import GatewayConfig
from relay.core.dependencies import get_backend, get_credential, get_gateway_config
from relay.gateway.backend import AzureBackend
from relay.gateway.responses import buffered_response, reframed_response
from relay.schemas.openai import ChatCompletionRequest, CompletionRequest, request_payload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["completions"])


async def _pass_through(
    body: ChatCompletionRequest | CompletionRequest,
    path: str,
    backend: AzureBackend,
    config: GatewayConfig,
    credential: str | None,
) -> Response:
    response = await backend.send("POST", request_payload(body), path, credential, stream=True)

    # Only a successful streamed answer is re-framed; errors and plain JSON go back as-is
    if body.stream and response.is_success:
        return reframed_response(response, pacing_ms=config.stream_pacing_ms)
    return await buffered_response(response)


@router.post("/chat/completions")
async def chat_completions(
    body: ChatCompletionRequest,
    backend: AzureBackend = Depends(get_backend),
    config: GatewayConfig = Depends(get_gateway_config),
    credential: str | None = Depends(get_credential),
):
    return await _pass_through(body, "chat/completions", backend, config, credential)


@router.post("/completions")
async def completions(
    body: CompletionRequest,
    backend: AzureBackend = Depends(get_backend),
    config: GatewayConfig = Depends(get_gateway_config),
    credential: str | None = Depends(get_credential),
):
    return await _pass_through(body, "completions", backend, config, credential)
