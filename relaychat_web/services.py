# relaychat_web/services.py
"""
Service layer for relaychat-web.

Holds the request-scoped relay pipeline behind `/api/chat` and the feedback
forwarder behind `/api/feedback`. Route handlers stay thin: they validate the
request, pull the `RelayConfig` from the app, and call into this module.
"""
import logging
import time
import uuid
from contextlib import aclosing
from typing import AsyncGenerator, Optional

import httpx

from .config import RelayConfig
from .exceptions import FeedbackForwardError, UpstreamError
from .models import FeedbackSubmission
from .sse import encode_frame
from .translator import EventTranslator
from .upstream import UpstreamStreamClient

logger = logging.getLogger("relaychat_web.services")


async def relay_chat_stream(
    message: str,
    config: RelayConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncGenerator[str, None]:
    """
    Relays one user message to the orchestrator and yields downstream frames.

    The first frame is always `status` with `config.initial_status`, sent before
    the upstream call is opened. The last frame is always exactly one terminal
    event (`result` or `error`); every failure, expected or not, is converted
    into that `error` frame instead of escaping to the transport.
    """
    session_id = uuid.uuid4().hex
    request_id = uuid.uuid4().hex
    translator = EventTranslator(request_id)
    started_at = time.monotonic()
    logger.info(f"Relaying chat request {request_id} (session {session_id}): '{message[:50]}'")

    yield encode_frame("status", config.initial_status)
    try:
        upstream = UpstreamStreamClient(config, transport=transport)
        async with aclosing(upstream.stream_answer(request_id, session_id, message)) as upstream_events:
            async for upstream_event in upstream_events:
                for event in translator.translate(upstream_event):
                    yield encode_frame(event.event, event.data)
        for event in translator.finish():
            yield encode_frame(event.event, event.data)
    except UpstreamError as e:
        if translator.finished:
            logger.warning(f"Upstream error for chat request {request_id} after its terminal event: {e}")
        else:
            logger.error(f"Upstream error for chat request {request_id}: {e}")
            error_event = translator.translate_error(e)
            yield encode_frame(error_event.event, error_event.data)
    except Exception as e:
        logger.error(f"Unexpected error while relaying chat request {request_id}: {e}", exc_info=True)
        if not translator.finished:
            error_event = translator.translate_error(e)
            yield encode_frame(error_event.event, error_event.data)
    finally:
        logger.info(f"Ending chat stream for request {request_id} after {time.monotonic() - started_at:.2f}s.")


class FeedbackForwarder:
    """Sends one feedback submission to the orchestrator's `/feedback` endpoint."""

    def __init__(self, config: RelayConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    async def forward(self, submission: FeedbackSubmission) -> None:
        """
        Raises:
            FeedbackForwardError: On transport failure, a non-success status, or
                a success status whose JSON body reports `status: "error"`.
        """
        payload = submission.to_orchestrator_payload()
        url = self.config.feedback_url
        logger.info(f"Forwarding {payload['rating']} feedback for run {submission.run_id} to {url}.")
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.config.feedback_timeout_s), transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise FeedbackForwardError(f"Orchestrator: {str(e) or type(e).__name__}") from e

        if not response.is_success:
            raise FeedbackForwardError(f"Orchestrator: {response.status_code} {response.text}", status_code=response.status_code)

        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("status") == "error":
            raise FeedbackForwardError(f"Orchestrator: {body.get('message') or 'feedback rejected'}", status_code=response.status_code)
        logger.debug(f"Orchestrator accepted feedback for run {submission.run_id}: {body}")
