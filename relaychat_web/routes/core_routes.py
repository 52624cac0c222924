# relaychat_web/routes/core_routes.py
"""
Core Flask routes for the relaychat-web application.
Currently only the status endpoint used by health checks and the chat UI.
"""
import logging
from typing import Any

from flask import jsonify

from . import core_bp
from ..app import APP_VERSION, get_relay_config

logger = logging.getLogger("relaychat_web.routes.core")


@core_bp.route("/api/status", methods=["GET"])
def api_status_route() -> Any:
    """Reports that the relay is up and which orchestrator it forwards to."""
    relay_config = get_relay_config()
    logger.debug("Status requested.")
    return jsonify({
        "status": "ok",
        "version": APP_VERSION,
        "orchestrator_url": relay_config.orchestrator_url,
    })
