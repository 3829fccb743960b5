from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

# Client-facing model name → Azure deployment name
DEFAULT_MODEL_MAP: dict[str, str] = {
    "gpt-3.5-turbo": "gpt35",
    "gpt-4": "gpt4",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Azure OpenAI backend
    azure_openai_endpoint: str = ""
    azure_openai_api_ver: str = "2023-03-15-preview"
    azure_openai_model_mapper: str = ""  # comma-separated, e.g. "gpt-4o=prod-4o,gpt-4=gpt4-32k"
    azure_openai_token: str | None = None  # static api-key; falls back to the client's bearer token

    # Relay behavior
    stream_pacing_ms: int = 30
    embedding_concurrency: int = 3
    upstream_timeout_seconds: float | None = None  # None = wait as long as the backend takes

    # App
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Observability
    sentry_dsn: str = ""  # leave empty to disable
    metrics_enabled: bool = False


settings = Settings()


def parse_model_mapper(text: str) -> dict[str, str]:
    """Parse ``"a=b,c=d"`` into ``{"a": "b", "c": "d"}``.

    Blank entries and entries without ``=`` are ignored.
    """
    mapping: dict[str, str] = {}
    for entry in text.split(","):
        name, sep, deployment = entry.partition("=")
        name, deployment = name.strip(), deployment.strip()
        if not sep or not name or not deployment:
            continue
        mapping[name] = deployment
    return mapping


@dataclass(frozen=True)
class GatewayConfig:
    """Read-only relay configuration, built once at startup."""

    endpoint: str
    api_version: str = "2023-03-15-preview"
    model_map: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_MODEL_MAP)))
    token: str | None = None
    stream_pacing_ms: int = 30
    embedding_concurrency: int = 3
    timeout_seconds: float | None = None

    @classmethod
    def from_settings(cls, s: Settings) -> GatewayConfig:
        model_map = {**DEFAULT_MODEL_MAP, **parse_model_mapper(s.azure_openai_model_mapper)}
        return cls(
            endpoint=s.azure_openai_endpoint.rstrip("/"),
            api_version=s.azure_openai_api_ver,
            model_map=MappingProxyType(model_map),
            token=s.azure_openai_token or None,
            stream_pacing_ms=s.stream_pacing_ms,
            embedding_concurrency=s.embedding_concurrency,
            timeout_seconds=s.upstream_timeout_seconds,
        )


def validate_settings(s: Settings | None = None) -> None:
    """Validate critical settings. Called on startup."""
    s = s or settings
    errors: list[str] = []

    if not s.azure_openai_endpoint:
        errors.append("AZURE_OPENAI_ENDPOINT must be set (e.g. https://my-resource.openai.azure.com)")
    else:
        parsed = urlparse(s.azure_openai_endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append(f"AZURE_OPENAI_ENDPOINT is not a valid http(s) URL: {s.azure_openai_endpoint!r}")

    if s.stream_pacing_ms < 0:
        errors.append("STREAM_PACING_MS must be >= 0")

    if s.embedding_concurrency < 1:
        errors.append("EMBEDDING_CONCURRENCY must be >= 1")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
