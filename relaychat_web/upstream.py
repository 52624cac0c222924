# relaychat_web/upstream.py
"""
Streaming client for the orchestrator's `/orchestrator/stream-answer` endpoint.

The orchestrator streams one JSON object per line, each prefixed with
`data:`. Unlike the downstream codec in `relaychat_web.sse`, a frame ends at a
single newline, so lines are decoded as soon as they are complete. The two
framings are deliberately kept as separate decoders.

One `stream_answer` call performs exactly one upstream attempt under a hard
total deadline. Failures are raised as `UpstreamError` subclasses; the relay
turns them into a downstream `error` event.
"""
import asyncio
import codecs
import json
import logging
from typing import Any, AsyncGenerator, Awaitable, Dict, List, Optional, TypeVar, Union

import httpx

from .config import RelayConfig
from .exceptions import (
    UpstreamConnectionError,
    UpstreamEmptyBodyError,
    UpstreamStatusError,
    UpstreamTimeoutError,
)
from .models import UpstreamEvent, parse_upstream_event

logger = logging.getLogger("relaychat_web.upstream")

T = TypeVar("T")


def parse_stream_line(line: str) -> Optional[Dict[str, Any]]:
    """
    Parses one `data: {...}` line from the orchestrator.

    Returns the decoded object, or None for blank lines, lines without the
    `data:` prefix, unparseable JSON and objects without a string `type`.
    """
    trimmed = line.strip()
    if not trimmed.startswith("data:"):
        return None
    try:
        decoded = json.loads(trimmed[len("data:"):].strip())
    except json.JSONDecodeError:
        logger.debug(f"Skipping unparseable upstream line: {trimmed[:80]!r}")
        return None
    if not isinstance(decoded, dict) or not isinstance(decoded.get("type"), str):
        logger.debug(f"Skipping upstream line without an event type: {trimmed[:80]!r}")
        return None
    return decoded


class UpstreamLineDecoder:
    """Splits an orchestrator byte stream into parsed `data:` lines."""

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[str, bytes]) -> List[Dict[str, Any]]:
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer += chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return [event for event in map(parse_stream_line, lines) if event is not None]

    def flush(self) -> List[Dict[str, Any]]:
        self._buffer += self._utf8.decode(b"", final=True)
        residual, self._buffer = self._buffer, ""
        if not residual.strip():
            return []
        event = parse_stream_line(residual)
        return [event] if event is not None else []


class UpstreamStreamClient:
    """
    Opens one streaming POST to the orchestrator and yields its events.

    Args:
        config: The process-wide relay configuration.
        transport: Optional httpx transport, used to point the client at a
            mock orchestrator in tests.
    """

    def __init__(self, config: RelayConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    async def _before_deadline(self, awaitable: Awaitable[T], deadline: float) -> T:
        remaining = deadline - asyncio.get_running_loop().time()
        try:
            return await asyncio.wait_for(awaitable, timeout=max(remaining, 0))
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(self.config.upstream_timeout_s) from e

    async def stream_answer(self, request_id: str, session_id: str, question: str) -> AsyncGenerator[UpstreamEvent, None]:
        """
        Streams the orchestrator's answer to one question.

        Yields:
            Typed upstream events in arrival order.

        Raises:
            UpstreamStatusError: Non-success HTTP status (carries status and body).
            UpstreamEmptyBodyError: The response carried no body at all.
            UpstreamTimeoutError: The whole exchange exceeded the deadline.
            UpstreamConnectionError: The orchestrator could not be reached.
        """
        url = self.config.stream_answer_url
        payload = {"session_id": session_id, "request_id": request_id, "question": question}
        deadline = asyncio.get_running_loop().time() + self.config.upstream_timeout_s
        logger.info(f"Opening orchestrator stream for request {request_id} at {url}.")
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.config.upstream_timeout_s), transport=self._transport) as client:
                request = client.build_request("POST", url, json=payload)
                response = await self._before_deadline(client.send(request, stream=True), deadline)
                try:
                    if not response.is_success:
                        body = await self._before_deadline(response.aread(), deadline)
                        body_text = body.decode("utf-8", errors="replace").strip()
                        logger.warning(f"Orchestrator returned {response.status_code} for request {request_id}: {body_text[:200]}")
                        raise UpstreamStatusError(response.status_code, body_text, response.reason_phrase)

                    decoder = UpstreamLineDecoder()
                    received_bytes = 0
                    chunks = response.aiter_bytes().__aiter__()
                    while True:
                        try:
                            chunk = await self._before_deadline(chunks.__anext__(), deadline)
                        except StopAsyncIteration:
                            break
                        received_bytes += len(chunk)
                        for raw_event in decoder.feed(chunk):
                            logger.debug(f"Upstream event for request {request_id}: {raw_event.get('type')}")
                            yield parse_upstream_event(raw_event)
                    if not received_bytes:
                        raise UpstreamEmptyBodyError()
                    for raw_event in decoder.flush():
                        logger.debug(f"Upstream event (flushed) for request {request_id}: {raw_event.get('type')}")
                        yield parse_upstream_event(raw_event)
                    logger.info(f"Orchestrator stream for request {request_id} ended after {received_bytes} bytes.")
                finally:
                    await response.aclose()
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(self.config.upstream_timeout_s) from e
        except httpx.TransportError as e:
            logger.error(f"Could not reach orchestrator at {url}: {e!r}")
            raise UpstreamConnectionError(str(e) or type(e).__name__) from e
