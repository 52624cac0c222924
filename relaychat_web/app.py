# relaychat_web/app.py
"""
Main Flask application file for relaychat-web.

This module configures logging, provides the helpers that let synchronous
Flask routes drive async code (one-shot coroutines and streaming async
generators), and builds the Flask app through `create_app`, which resolves
the `RelayConfig` once and registers the blueprints from the 'routes'
sub-package. A module-level `app` is created for WSGI servers such as
Gunicorn (`gunicorn relaychat_web.app:app`).

Relay configuration:
The orchestrator URL and timeouts are read from the environment exactly once,
when the app is created, and stored in `app.config["RELAY_CONFIG"]`. Routes
read it through `get_relay_config()`; nothing caches it at module level.
"""

# --- Start: Fix for direct script execution and relative imports ---
# This block MUST be at the very top of the file, before any other imports.
import os
import sys
from pathlib import Path

if __name__ == "__main__" and (__package__ is None or __package__ == ''):
    current_file_path = Path(__file__).resolve()
    package_dir = current_file_path.parent
    project_root = package_dir.parent
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))
    __package__ = package_dir.name
# --- End: Fix for direct script execution ---

import asyncio
import logging
import time
from functools import wraps
from importlib.metadata import version, PackageNotFoundError
from typing import Any, AsyncGenerator, Callable, Coroutine, Optional

import httpx
from flask import Flask, current_app, g, request

from .config import RelayConfig

# --- Application Version ---
try:
    APP_VERSION = version("relaychat-web")
except PackageNotFoundError:
    APP_VERSION = "0.1.0"
    logging.getLogger("relaychat_web_startup").info(
        f"relaychat-web package not found, using fallback version: {APP_VERSION}."
    )

# --- Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("relaychat_web")
logger.setLevel(logging.DEBUG if os.environ.get("FLASK_ENV", "production").lower() == "development" else logging.INFO)


# --- Async to Sync Wrapper for Flask Routes ---
def async_to_sync_in_flask(f: Callable[..., Coroutine[Any, Any, Any]]) -> Callable[..., Any]:
    """
    A decorator that allows running an async function from a synchronous Flask route.
    It uses `asyncio.run()`, which creates a new event loop for the call and closes
    it afterwards, so per-call httpx clients never outlive their loop.
    """
    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No event loop is running in this thread (standard Flask/Gunicorn sync worker).
            return asyncio.run(f(*args, **kwargs))
        raise RuntimeError("async_to_sync_in_flask should not be used in an already-running event loop.")
    return wrapper


# --- run_async_generator_synchronously ---
def run_async_generator_synchronously(async_gen_func: Callable[..., AsyncGenerator[str, None]], *args: Any, **kwargs: Any) -> Any:
    """
    Runs an asynchronous generator function synchronously from a synchronous context.
    This is necessary for streaming responses in Flask with `stream_with_context`.
    It creates and manages a dedicated event loop for the generator's lifecycle,
    and closes the async generator when the consumer stops early (client
    disconnect), so upstream resources are released on every exit path.
    """
    utility_logger = logging.getLogger("relaychat_web.utils.async_gen_sync_runner")
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    utility_logger.debug(f"Created new event loop for run_async_generator_synchronously of {async_gen_func.__name__}")
    async_gen = async_gen_func(*args, **kwargs)
    try:
        while True:
            try:
                item = loop.run_until_complete(async_gen.__anext__())
            except StopAsyncIteration:
                utility_logger.debug(f"Async generator {async_gen_func.__name__} completed.")
                break
            except Exception as e_inner:
                utility_logger.error(f"Error during iteration of async generator {async_gen_func.__name__}: {e_inner}", exc_info=True)
                break
            yield item
    finally:
        utility_logger.debug(f"Cleaning up event loop for run_async_generator_synchronously of {async_gen_func.__name__}.")
        try:
            loop.run_until_complete(async_gen.aclose())
            tasks = [t for t in asyncio.all_tasks(loop=loop) if not t.done()]
            if tasks:
                utility_logger.debug(f"Cancelling {len(tasks)} outstanding tasks in sync generator's loop for {async_gen_func.__name__}.")
                for task in tasks:
                    task.cancel()
                loop.run_until_complete(asyncio.gather(*tasks, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
        except Exception as e_shutdown:
            utility_logger.error(f"Error during shutdown of tasks/asyncgens in sync generator's loop for {async_gen_func.__name__}: {e_shutdown}")
        finally:
            loop.close()
            asyncio.set_event_loop(None)
            utility_logger.debug(f"Event loop for {async_gen_func.__name__} closed.")


# --- Relay Helpers for Routes ---
def get_relay_config() -> RelayConfig:
    return current_app.config["RELAY_CONFIG"]

def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport override for outbound orchestrator calls (None in production)."""
    return current_app.config.get("RELAY_HTTP_TRANSPORT")


# --- Request/Response Logging ---
def log_request_info() -> None:
    g.request_started_at = time.monotonic()
    logger.debug(f"{request.method} {request.path} from {request.remote_addr}")

def log_response_info(response: Any) -> Any:
    elapsed = time.monotonic() - g.get("request_started_at", time.monotonic())
    # Streamed responses are still being produced at this point; the relay logs their end itself.
    logger.info(f"{request.method} {request.path} -> {response.status_code} ({response.mimetype}) in {elapsed:.3f}s")
    return response


# --- App Factory ---
def create_app(relay_config: Optional[RelayConfig] = None, http_transport: Optional[httpx.AsyncBaseTransport] = None) -> Flask:
    """
    Builds the Flask application.

    Args:
        relay_config: Explicit configuration; resolved from the environment when omitted.
        http_transport: Optional httpx transport for orchestrator calls (tests use
            `httpx.MockTransport`).
    """
    flask_app = Flask(__name__)
    flask_app.config["RELAY_CONFIG"] = relay_config or RelayConfig.from_env()
    flask_app.config["RELAY_HTTP_TRANSPORT"] = http_transport
    flask_app.before_request(log_request_info)
    flask_app.after_request(log_response_info)

    from . import routes as routes_package
    for bp in routes_package.all_blueprints:
        flask_app.register_blueprint(bp)
        logger.info(f"Registered blueprint '{bp.name}' with url_prefix '{bp.url_prefix}'.")
    logger.info(f"relaychat-web {APP_VERSION} ready. Orchestrator: {flask_app.config['RELAY_CONFIG'].orchestrator_url}")
    return flask_app


app = create_app()

# --- Main Execution ---
if __name__ == "__main__":
    port = int(os.environ.get("FLASK_RUN_PORT", 5000))
    is_debug_mode = os.environ.get("FLASK_ENV", "production").lower() == "development"
    logger.info(f"Starting relaychat-web Flask server directly on port {port} (Debug: {is_debug_mode})...")
    app.run(host="0.0.0.0", port=port, debug=is_debug_mode, threaded=True)
