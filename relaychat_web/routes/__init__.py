# relaychat_web/routes/__init__.py
"""
Initialization module for the Flask routes sub-package.

This module defines and collects Blueprints for the relaychat-web API.
These blueprints are registered with the Flask application by
`relaychat_web.app.create_app`. It also imports the route modules to ensure
routes are registered on the blueprints.
"""
import logging
from flask import Blueprint

# --- Logger for this routes package ---
logger = logging.getLogger("relaychat_web.routes")

# --- Blueprint Definitions ---
core_bp = Blueprint('core_bp', __name__) # Handles /api/status
chat_bp = Blueprint('chat_bp', __name__, url_prefix='/api/chat')
feedback_bp = Blueprint('feedback_bp', __name__, url_prefix='/api/feedback')


# --- Import route modules to register their routes with the blueprints ---
# These imports are crucial for the @bp.route decorators in each file to execute.
from . import core_routes
from . import chat_routes
from . import feedback_routes

# List of all blueprints to be registered by the app
all_blueprints = [
    core_bp,
    chat_bp,
    feedback_bp,
]

logger.debug(f"Defined and collected {len(all_blueprints)} blueprints for relaychat_web routes.")
