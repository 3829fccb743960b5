"""Embeddings — a string input passes through, an array input fans out per item."""

import logging

from fastapi import APIRouter, Depends
from pydantic import ValidationError
from starlette.responses import JSONResponse, Response

from relay.core.config import GatewayConfig
from relay.core.dependencies import get_backend, get_credential, get_gateway_config
from relay.core.exceptions import AuthorizationError, UpstreamResponseError
from relay.gateway.aggregator import aggregate
from relay.gateway.backend import AzureBackend
from relay.gateway.responses import buffered_response
from relay.gateway.types import BatchItem, SubResult
from relay.schemas.openai import EmbeddingRequest, request_payload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["embeddings"])

EMBEDDINGS_PATH = "embeddings"


@router.post("/embeddings")
async def create_embeddings(
    body: EmbeddingRequest,
    backend: AzureBackend = Depends(get_backend),
    config: GatewayConfig = Depends(get_gateway_config),
    credential: str | None = Depends(get_credential),
) -> Response:
    payload = request_payload(body)

    if isinstance(body.input, str):
        response = await backend.send("POST", payload, EMBEDDINGS_PATH, credential, stream=True)
        return await buffered_response(response)

    # Reject before fanning out so an empty credential never costs N tasks
    if not credential:
        raise AuthorizationError()

    async def _embed_one(item: BatchItem) -> SubResult:
        data = await backend.send_json("POST", {**payload, "input": item.value}, EMBEDDINGS_PATH, credential)
        try:
            return SubResult.from_payload(data)
        except ValidationError as e:
            raise UpstreamResponseError(f"Unexpected embeddings response for item {item.index}") from e

    items = [BatchItem(index=i, value=value) for i, value in enumerate(body.input)]
    logger.debug("Fanning out %d embedding inputs (concurrency=%d)", len(items), config.embedding_concurrency)

    merged = await aggregate(
        items,
        _embed_one,
        concurrency_limit=config.embedding_concurrency,
        model=body.model,
    )
    return JSONResponse(content=merged.to_dict())
