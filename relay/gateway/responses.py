"""Helpers for handing backend responses back to the client."""

from __future__ import annotations

import httpx
from starlette.responses import Response, StreamingResponse

from relay.core.exceptions import UpstreamStatusError, UpstreamTransportError
from relay.gateway.reframer import relay_stream

# httpx decodes the body, and the ASGI server sets its own framing
_DROPPED_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding", "connection", "keep-alive"})


def filter_response_headers(headers: httpx.Headers | dict[str, str]) -> dict[str, str]:
    """Drop headers that no longer describe the body once it is re-sent."""
    return {k: v for k, v in headers.items() if k.lower() not in _DROPPED_HEADERS}


async def buffered_response(response: httpx.Response) -> Response:
    """Read the backend body fully and return it unchanged."""
    try:
        content = await response.aread()
    except httpx.TransportError as e:
        raise UpstreamTransportError(f"Backend response interrupted: {type(e).__name__}") from e
    finally:
        await response.aclose()
    return Response(
        content=content,
        status_code=response.status_code,
        headers=filter_response_headers(response.headers),
    )


def reframed_response(response: httpx.Response, *, pacing_ms: int) -> StreamingResponse:
    """Stream the backend body to the client through the reframer."""
    return StreamingResponse(
        relay_stream(response, pacing_ms=pacing_ms),
        status_code=response.status_code,
        headers=filter_response_headers(response.headers),
    )


def status_error_response(exc: UpstreamStatusError) -> Response:
    """Backend-reported errors reach the client verbatim."""
    return Response(
        content=exc.body,
        status_code=exc.status_code,
        headers=filter_response_headers(exc.headers),
    )
