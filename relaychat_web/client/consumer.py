# relaychat_web/client/consumer.py
"""
Client for the relay's `/api/chat` and `/api/feedback` endpoints.

`StreamConsumer` is the state machine that applies decoded downstream events
(`status`, `result_chunk`, `result`, `error`) to a `ChatState`. `ChatClient`
owns the HTTP side: it opens the chat stream (retrying the very first
connection attempt once), decodes frames incrementally with
`relaychat_web.sse.FrameDecoder`, and guarantees the loading/status indicator
is cleared however the turn ends.
"""
import json
import logging
from typing import Any, Optional, Tuple

import httpx

from ..exceptions import ChatClientError
from ..sse import FrameDecoder
from .state import ChatMessage, ChatState
from .typewriter import TypewriterReveal

logger = logging.getLogger("relaychat_web.client")

REWRITE_PREFIX = "I think your question is:"
CONTENT_SEP = "\n\n"
NETWORK_ERROR_MESSAGE = "Network error. Check the server is running and try again."
REQUEST_FAILED_MESSAGE = "Request failed"


def compose_result_content(rewrite: Optional[str], answer: str) -> Tuple[str, int]:
    """Returns `(full_content, prefix_length)` for a terminal result."""
    prefix = f"{REWRITE_PREFIX} {rewrite}{CONTENT_SEP}" if rewrite else ""
    return prefix + answer, len(prefix)


class StreamConsumer:
    """Applies downstream events for one chat view to its state and reveal engine."""

    def __init__(self, state: ChatState, reveal: TypewriterReveal):
        self.state = state
        self.reveal = reveal
        self._building_id: Optional[str] = None
        self.terminal_seen = False

    def reset_turn(self) -> None:
        self._building_id = None
        self.terminal_seen = False

    def handle_event(self, event: str, data: Any) -> None:
        handler = {
            "status": self._on_status,
            "result_chunk": self._on_result_chunk,
            "result": self._on_result,
            "error": self._on_error,
        }.get(event)
        if handler is None:
            logger.debug(f"Ignoring unknown downstream event '{event}'.")
            return
        # A turn ends at its terminal event; late status updates must not resurrect the indicator.
        if self.terminal_seen:
            logger.debug(f"Ignoring '{event}' event received after the terminal event.")
            return
        handler(data)

    def _on_status(self, data: Any) -> None:
        self.state.status = data if isinstance(data, str) else json.dumps(data)

    def _on_result_chunk(self, data: Any) -> None:
        delta = data.get("delta") if isinstance(data, dict) else None
        if not isinstance(delta, str) or not delta:
            return
        last = self.state.messages[-1] if self.state.messages else None
        if last is not None and last.role == "assistant" and last.id == self._building_id:
            last.content += delta
            self.reveal.extend(last.id)
            return
        message = self.state.append("assistant", delta)
        self._building_id = message.id
        self.reveal.start(message.id)

    def _on_result(self, data: Any) -> None:
        obj = data if isinstance(data, dict) else {"response": data}
        response = obj.get("response")
        answer = response if isinstance(response, str) else json.dumps(response if response is not None else data)
        rewrite = obj.get("rewrite") if isinstance(obj.get("rewrite"), str) else None
        run_id = obj.get("run_id") if isinstance(obj.get("run_id"), str) else None
        content, prefix_length = compose_result_content(rewrite, answer)
        message = self.state.append("assistant", content, run_id=run_id)
        self._building_id = None
        self.terminal_seen = True
        self.reveal.start(message.id, prefix_length)
        self.state.clear_turn()

    def _on_error(self, data: Any) -> None:
        self.state.append("assistant", f"Error: {data}")
        self._building_id = None
        self.terminal_seen = True
        self.state.clear_turn()


class ChatClient:
    """
    Async chat client driving a `ChatState` from the relay's event stream.

    Usage:
        async with ChatClient("http://localhost:5000") as chat:
            await chat.send("How many open jobs are there?")
            await chat.reveal.wait()
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        state: Optional[ChatState] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout_s: float = 65.0,
        reveal: Optional[TypewriterReveal] = None,
    ):
        self.state = state or ChatState()
        self.reveal = reveal or TypewriterReveal(self.state)
        self.consumer = StreamConsumer(self.state, self.reveal)
        self._http = httpx.AsyncClient(base_url=base_url.rstrip("/"), transport=transport, timeout=httpx.Timeout(timeout_s))

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self.reveal.cancel()
        await self._http.aclose()

    async def _open_chat_stream(self, message: str) -> httpx.Response:
        request = self._http.build_request("POST", "/api/chat", json={"message": message})
        try:
            return await self._http.send(request, stream=True)
        except httpx.ConnectError as first_error:
            logger.warning(f"Connecting to the relay failed ({first_error!r}); retrying once.")
        try:
            return await self._http.send(request, stream=True)
        except httpx.ConnectError as e:
            raise ChatClientError(NETWORK_ERROR_MESSAGE) from e

    async def send(self, text: str) -> None:
        """Sends one user message and consumes the whole response stream."""
        user_message = text.strip()
        if not user_message or self.state.loading:
            return
        self.state.append("user", user_message)
        self.state.loading = True
        self.state.status = None
        self.reveal.cancel()
        self.state.streaming_message_id = None
        self.state.prefix_length = 0
        self.consumer.reset_turn()
        try:
            response = await self._open_chat_stream(user_message)
            try:
                await self._consume_response(response)
            finally:
                await response.aclose()
        except (ChatClientError, httpx.HTTPError, ValueError) as e:
            if self.consumer.terminal_seen:
                logger.warning(f"Chat stream broke after its terminal event: {e!r}")
            else:
                logger.error(f"Chat request failed: {e!r}")
                self.state.append("assistant", f"Error: {e}")
        finally:
            self.state.clear_turn()

    async def _consume_response(self, response: httpx.Response) -> None:
        if not response.is_success:
            raise ChatClientError(REQUEST_FAILED_MESSAGE)

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            body = json.loads(await response.aread())
            if isinstance(body, dict) and body.get("response") is not None:
                self.state.append("assistant", str(body["response"]))
                self.consumer.terminal_seen = True
            return

        decoder = FrameDecoder()
        async for chunk in response.aiter_bytes():
            for event, payload in decoder.feed(chunk):
                self.consumer.handle_event(event, payload)
        for event, payload in decoder.flush():
            self.consumer.handle_event(event, payload)

    async def submit_feedback(
        self,
        message: ChatMessage,
        feedback_type: str,
        reason: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> bool:
        """
        Sends thumbs-up/down feedback for an assistant message.

        For thumbs-down the preceding user message is sent as the question.
        Returns True when the relay accepted the feedback.
        """
        if not message.run_id:
            return False
        payload = {"run_id": message.run_id, "feedback_type": feedback_type}
        if feedback_type == "thumbs_down":
            index = self.state.index_of(message.id)
            if index > 0 and self.state.messages[index - 1].role == "user":
                payload["question"] = self.state.messages[index - 1].content
            if reason is not None:
                payload["reason"] = reason
            if comment and comment.strip():
                payload["comment"] = comment.strip()
        try:
            response = await self._http.post("/api/feedback", json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"Sending feedback for run {message.run_id} failed: {e!r}")
            return False
        if not response.is_success:
            logger.warning(f"Relay rejected feedback for run {message.run_id}: {response.status_code} {response.text}")
            return False
        if feedback_type == "thumbs_up":
            self.state.thumbs_up.add(message.id)
            self.state.thumbs_down.discard(message.id)
        else:
            self.state.thumbs_down.add(message.id)
            self.state.thumbs_up.discard(message.id)
        return True

    def regenerate(self, message: ChatMessage) -> Optional[str]:
        """
        Drops the last exchange so it can be asked again.

        Only the last assistant message can be regenerated. Returns the user
        text that produced it, or None when nothing was removed.
        """
        if message.id != self.state.last_assistant_id:
            return None
        index = self.state.index_of(message.id)
        if index <= 0 or self.state.messages[index - 1].role != "user":
            return None
        question = self.state.messages[index - 1].content
        del self.state.messages[index - 1:]
        return question
