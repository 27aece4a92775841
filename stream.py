# stream.py
# Upstream records look like `data: {"candidates": [...]}`; each recognized
# record becomes one `data: {"type": ...}` event for the client, in arrival
# order. Everything else is dropped.

import codecs
import json
import logging
from typing import TYPE_CHECKING, AsyncIterator

import httpx
from fastapi.responses import StreamingResponse

from events import SSE_DATA_PREFIX, OutboundEvent

if TYPE_CHECKING:
    from proxy import CancelToken

logger = logging.getLogger(__name__)

_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class EventStreamReframer:
    """Incremental parser: bytes in, encoded outbound SSE frames out.

    Holds two pieces of carry-over state between reads: undecoded trailing
    bytes (inside the decoder) and the last, unterminated line.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._partial = ""
        self.dropped = 0

    def feed(self, chunk: bytes) -> list[bytes]:
        text = self._partial + self._decoder.decode(chunk)
        lines = text.split("\n")
        self._partial = lines.pop()
        return self._frames(lines)

    def flush(self) -> list[bytes]:
        """Finish the stream: emit whatever the last unterminated line holds."""
        text = self._partial + self._decoder.decode(b"", final=True)
        self._partial = ""
        return self._frames([text]) if text else []

    def _frames(self, lines: list[str]) -> list[bytes]:
        frames = []
        for line in lines:
            event = self._parse_line(line)
            if event is not None:
                frames.append(event.to_sse())
        return frames

    def _parse_line(self, line: str) -> OutboundEvent | None:
        line = line.rstrip("\r")
        if not line.startswith(SSE_DATA_PREFIX):
            return None
        try:
            payload = json.loads(line[len(SSE_DATA_PREFIX):])
        except (ValueError, RecursionError) as exc:
            self.dropped += 1
            logger.warning("Error parsing event data: %s", exc)
            return None
        return OutboundEvent.from_payload(payload)


async def _next_chunk(chunks: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


async def reframe(upstream: httpx.Response, token: "CancelToken") -> AsyncIterator[bytes]:
    """Yield outbound frames, reading upstream only as fast as they are consumed.

    Every upstream read is guarded by the request's cancel token. The upstream
    response is closed on every exit, including the consumer going away.
    """
    reframer = EventStreamReframer()
    chunks = upstream.aiter_bytes()
    try:
        while True:
            chunk = await token.guard(_next_chunk(chunks))
            if chunk is None:
                break
            for frame in reframer.feed(chunk):
                yield frame
        for frame in reframer.flush():
            yield frame
    finally:
        await upstream.aclose()
        if reframer.dropped:
            logger.info("Stream finished, %d malformed event lines dropped", reframer.dropped)


def streaming_response(upstream: httpx.Response, token: "CancelToken") -> StreamingResponse:
    return StreamingResponse(
        reframe(upstream, token),
        media_type="text/event-stream",
        headers=_STREAM_HEADERS,
    )
