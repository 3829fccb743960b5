"""Stream Reframer — forwards only whole delimiter-terminated records.

The backend streams server-sent events separated by a blank line. Network
chunks do not respect that boundary: one chunk can carry several records, a
fraction of one, or split a multi-byte character. The reframer buffers
decoded text until a delimiter shows up and emits complete records one at a
time, with a short pause between them so incremental renderers on the
client side get a steady trickle instead of bursts.

Lifecycle of one session:
  start  — RecordBuffer created, decoder state empty
  drain  — records yielded as they complete, paced
  close  — tail flushed verbatim, trailing newline, generator returns

The consumer of the ``reframe`` generator is the sink. When the consumer
goes away (client disconnect) the generator is closed and nothing more is
written; ``relay_stream`` then releases the upstream connection.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

import httpx

from relay.core.exceptions import UpstreamTransportError
from relay.core.metrics import STREAMED_RECORDS

logger = logging.getLogger(__name__)

DEFAULT_DELIMITER = b"\n\n"
DEFAULT_PACING_MS = 30
TRAILER = b"\n"


class RecordBuffer:
    """Pending Buffer plus incremental UTF-8 decode state for one stream."""

    def __init__(self, delimiter: bytes = DEFAULT_DELIMITER, encoding: str = "utf-8"):
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self.encoding = encoding
        self.delimiter = delimiter.decode(encoding)
        # Undecodable bytes become U+FFFD; the stream keeps going
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, chunk: bytes) -> list[bytes]:
        """Add a chunk; return every record it completed, delimiter included."""
        self._pending += self._decoder.decode(chunk)
        *complete, self._pending = self._pending.split(self.delimiter)
        return [(piece + self.delimiter).encode(self.encoding) for piece in complete]

    def drain(self) -> bytes:
        """Return whatever is left after the last delimiter and reset."""
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return tail.encode(self.encoding)


async def reframe(
    source: AsyncIterator[bytes],
    *,
    delimiter: bytes = DEFAULT_DELIMITER,
    pacing_ms: int = DEFAULT_PACING_MS,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> AsyncIterator[bytes]:
    """Re-emit ``source`` as whole records, pausing ``pacing_ms`` after each one.

    When ``source`` is exhausted the unterminated tail (if any) is emitted
    verbatim, followed by a single newline. A failure raised by ``source``
    propagates as-is and the tail is discarded.
    """
    buffer = RecordBuffer(delimiter)
    delay = pacing_ms / 1000

    async for chunk in source:
        for record in buffer.feed(chunk):
            yield record
            STREAMED_RECORDS.inc()
            await sleep(delay)

    tail = buffer.drain()
    if tail:
        yield tail
    yield TRAILER


async def relay_stream(
    response: httpx.Response,
    *,
    delimiter: bytes = DEFAULT_DELIMITER,
    pacing_ms: int = DEFAULT_PACING_MS,
) -> AsyncIterator[bytes]:
    """Reframe an open upstream response; the response is always closed on exit."""
    try:
        async for record in reframe(response.aiter_bytes(), delimiter=delimiter, pacing_ms=pacing_ms):
            yield record
    except httpx.TransportError as e:
        logger.warning(
            "Upstream stream broke mid-read: %s",
            e,
            extra={"upstream_path": response.request.url.path},
        )
        raise UpstreamTransportError(f"Backend stream interrupted: {type(e).__name__}") from e
    finally:
        await response.aclose()
