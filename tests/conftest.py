import inspect
import json
from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from relay.core.config import GatewayConfig, Settings
from relay.main import create_app

TEST_ENDPOINT = "https://unit-test.openai.azure.com"


def make_settings(**overrides) -> Settings:
    values = {
        "azure_openai_endpoint": TEST_ENDPOINT,
        "azure_openai_api_ver": "2023-05-15",
        "azure_openai_model_mapper": "",
        "azure_openai_token": None,
        "stream_pacing_ms": 0,
        "embedding_concurrency": 3,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeAzure:
    """Records every backend request and answers through a pluggable handler."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.handler: Callable = self.default_handler

    @staticmethod
    def default_handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/embeddings"):
            return httpx.Response(
                200,
                json={
                    "object": "list",
                    "data": [{"object": "embedding", "embedding": [0.1, 0.2], "index": 0}],
                    "model": "ada",
                    "usage": {"prompt_tokens": 1, "total_tokens": 1},
                },
            )
        return httpx.Response(200, json={"id": "chatcmpl-1", "choices": []})

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def fake_azure() -> FakeAzure:
    return FakeAzure()


@pytest.fixture
def relay_settings() -> Settings:
    return make_settings()


@pytest.fixture
def gateway_config(relay_settings: Settings) -> GatewayConfig:
    return GatewayConfig.from_settings(relay_settings)


@pytest.fixture
async def client(relay_settings: Settings, fake_azure: FakeAzure) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(relay_settings, transport=httpx.MockTransport(fake_azure))
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await app.state.backend.aclose()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": "Bearer azure-key-123"}


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings
