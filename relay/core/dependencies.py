from fastapi import Depends, Header, Request

from relay.core.config import GatewayConfig
from relay.gateway.backend import AzureBackend

BEARER_PREFIX = "Bearer "


def get_gateway_config(request: Request) -> GatewayConfig:
    return request.app.state.gateway_config


def get_backend(request: Request) -> AzureBackend:
    return request.app.state.backend


async def get_credential(
    config: GatewayConfig = Depends(get_gateway_config),
    authorization: str | None = Header(None, description="Bearer <azure api-key>"),
) -> str | None:
    """Resolve the backend api-key: the configured token wins, then the client's bearer token.

    Returns None when neither is present; the backend caller rejects that
    before any network I/O.
    """
    if config.token:
        return config.token
    if not authorization:
        return None
    return authorization.replace(BEARER_PREFIX, "", 1) or None
