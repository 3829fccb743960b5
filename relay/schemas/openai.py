"""Request/response shapes of the OpenAI surface the relay exposes.

Only the fields the relay inspects are declared; everything else the client
sends is kept (``extra="allow"``) and forwarded to the backend as-is.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Passthrough(BaseModel):
    model_config = ConfigDict(extra="allow")

    model: str | None = None


class ChatCompletionRequest(_Passthrough):
    stream: bool = False


class CompletionRequest(_Passthrough):
    stream: bool = False


class EmbeddingRequest(_Passthrough):
    input: str | list[Any] = Field(description="A single text, or an array of texts / token arrays")


def request_payload(body: BaseModel) -> dict[str, Any]:
    """Serialize a request body back into exactly what the client sent."""
    return body.model_dump(exclude_unset=True)


# ── Embeddings response ─────────────────────────────────────────


class EmbeddingUsage(BaseModel):
    prompt_tokens: int = 0
    total_tokens: int = 0


class EmbeddingResult(BaseModel):
    """One backend embeddings response, as far as aggregation needs it."""

    model_config = ConfigDict(extra="allow")

    data: list[dict[str, Any]]
    usage: EmbeddingUsage = Field(default_factory=EmbeddingUsage)


# ── Models catalog ──────────────────────────────────────────────


class ModelPermission(BaseModel):
    id: str
    object: str = "model_permission"
    created: int
    allow_create_engine: bool = False
    allow_sampling: bool = True
    allow_logprobs: bool = True
    allow_search_indices: bool = False
    allow_view: bool = True
    allow_fine_tuning: bool = False
    organization: str = "*"
    group: str | None = None
    is_blocking: bool = False


class ModelCard(BaseModel):
    id: str
    object: str = "model"
    created: int
    owned_by: str = "openai"
    permission: list[ModelPermission] = []
    root: str
    parent: str | None = None


class ModelList(BaseModel):
    object: str = "list"
    data: list[ModelCard]
