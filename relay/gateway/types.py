"""Core types for the fan-out aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from relay.schemas.openai import EmbeddingResult


@dataclass(frozen=True)
class BatchItem:
    """One element of a client-submitted array, with its original position."""

    index: int
    value: Any


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_dict(self) -> dict[str, int]:
        return {"prompt_tokens": self.prompt_tokens, "total_tokens": self.total_tokens}


@dataclass
class SubResult:
    """Decoded result of the backend call made for one BatchItem."""

    data: list[dict[str, Any]] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)

    @classmethod
    def from_payload(cls, payload: Any) -> SubResult:
        """Build from a backend JSON body. Raises pydantic.ValidationError on bad shape."""
        result = EmbeddingResult.model_validate(payload)
        return cls(
            data=result.data,
            usage=Usage(
                prompt_tokens=result.usage.prompt_tokens,
                total_tokens=result.usage.total_tokens,
            ),
        )


@dataclass
class MergedResult:
    """Order-preserving, usage-summed combination of all SubResults."""

    data: list[dict[str, Any]] = field(default_factory=list)
    model: str | None = None
    usage: Usage = field(default_factory=Usage)

    def to_dict(self) -> dict:
        return {
            "object": "list",
            "data": self.data,
            "model": self.model,
            "usage": self.usage.to_dict(),
        }
