# relaychat_web/routes/chat_routes.py
"""
Flask routes for chat functionalities in the relaychat-web application.

`POST /api/chat` validates the user's message and streams the orchestrator's
answer back as `text/event-stream` frames (`status`, then one `result` or
`error`). The actual relay pipeline lives in `relaychat_web.services`.
"""
import logging
from typing import Any

from flask import Response, jsonify, request, stream_with_context
from pydantic import ValidationError

from . import chat_bp
from ..app import get_http_transport, get_relay_config, run_async_generator_synchronously
from ..models import ChatRequest
from ..services import relay_chat_stream

logger = logging.getLogger("relaychat_web.routes.chat")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@chat_bp.route("", methods=["POST"])
def api_chat_route() -> Any:
    """
    Relays one chat message to the orchestrator.

    JSON Payload:
        message (str): The user's message.

    Returns:
        400 with `{"error": ...}` when the message is missing or not a string;
        otherwise a streamed event-stream response.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        logger.warning("/api/chat called without a JSON object body.")
        return jsonify({"error": "Missing message"}), 400
    try:
        chat_request = ChatRequest.model_validate(data)
    except ValidationError as e:
        logger.warning(f"/api/chat rejected invalid payload: {e.errors()[0].get('msg') if e.errors() else e}")
        return jsonify({"error": "Missing message"}), 400

    relay_config = get_relay_config()
    transport = get_http_transport()
    logger.info(f"Dispatching chat message to orchestrator: '{chat_request.message[:50]}...'")
    sync_generator = run_async_generator_synchronously(relay_chat_stream, chat_request.message, relay_config, transport)
    return Response(stream_with_context(sync_generator), content_type="text/event-stream", headers=SSE_HEADERS)
