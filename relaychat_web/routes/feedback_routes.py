# relaychat_web/routes/feedback_routes.py
"""
Flask routes for thumbs-up/down feedback in relaychat-web.
Validates the submission and forwards it to the orchestrator's `/feedback`.
"""
import logging
from typing import Any

from flask import jsonify, request
from pydantic import ValidationError

from . import feedback_bp
from ..app import async_to_sync_in_flask, get_http_transport, get_relay_config
from ..exceptions import FeedbackForwardError
from ..models import FeedbackSubmission, describe_feedback_error
from ..services import FeedbackForwarder

logger = logging.getLogger("relaychat_web.routes.feedback")


@feedback_bp.route("", methods=["POST"])
def api_feedback_route() -> Any:
    """
    JSON Payload:
        run_id (str): The run id of the rated answer (required).
        feedback_type (Optional[str]): "thumbs_up" or "thumbs_down".
        reason (Optional[str]): Thumbs-down reason id.
        question (Optional[str]): The user question that produced the answer.
        comment (Optional[str]): Free-text details.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Missing run_id"}), 400
    try:
        submission = FeedbackSubmission.model_validate(data)
    except ValidationError as e:
        message = describe_feedback_error(e)
        logger.warning(f"/api/feedback rejected payload: {message}")
        return jsonify({"error": message}), 400

    forwarder = FeedbackForwarder(get_relay_config(), transport=get_http_transport())
    try:
        async_to_sync_in_flask(forwarder.forward)(submission)
    except FeedbackForwardError as e:
        logger.error(f"Forwarding feedback for run {submission.run_id} failed: {e}", exc_info=True)
        return jsonify({"error": str(e)}), 502
    logger.info(f"Feedback for run {submission.run_id} forwarded.")
    return jsonify({"success": True})
