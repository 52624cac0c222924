"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path
from typing import Iterable, List

import httpx
import pytest

# Add project root to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from relaychat_web.app import create_app  # noqa: E402
from relaychat_web.config import RelayConfig  # noqa: E402

ORCHESTRATOR_URL = "http://orchestrator.test"


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in fixed chunks, optionally with a delay before each."""

    def __init__(self, chunks: Iterable[bytes], delay_s: float = 0.0):
        self.chunks: List[bytes] = list(chunks)
        self.delay_s = delay_s
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def orchestrator_lines(*events: str) -> bytes:
    """Builds an orchestrator body from raw JSON event strings."""
    return "".join(f"data: {event}\n" for event in events).encode("utf-8")


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig(orchestrator_url=ORCHESTRATOR_URL)


@pytest.fixture
def make_app(relay_config):
    """Factory: a Flask app whose orchestrator calls are answered by `handler`."""

    def _make(handler, config: RelayConfig = None):
        flask_app = create_app(config or relay_config, http_transport=httpx.MockTransport(handler))
        flask_app.config["TESTING"] = True
        return flask_app

    return _make
