# relaychat_web/exceptions.py
"""
Exception hierarchy for relaychat-web.

Upstream failures are raised by the stream client and the feedback forwarder,
and converted by the relay into a single downstream `error` event (chat) or a
502 JSON body (feedback). They are never propagated raw to the browser.
"""
from typing import Optional


class RelayError(Exception):
    """Base class for all relaychat-web errors."""


class ConfigError(RelayError):
    """Raised when the relay configuration is invalid."""


class UpstreamError(RelayError):
    """Base class for failures talking to the orchestrator."""


class UpstreamStatusError(UpstreamError):
    """The orchestrator answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str = "", reason: str = ""):
        self.status_code = status_code
        self.body = body
        self.reason = reason
        super().__init__(f"{status_code}: {body or reason}")


class UpstreamTimeoutError(UpstreamError):
    """The orchestrator stream did not finish within the relay deadline."""

    def __init__(self, timeout_s: float):
        self.timeout_s = timeout_s
        super().__init__(f"Orchestrator did not respond within {timeout_s:g}s")


class UpstreamConnectionError(UpstreamError):
    """The orchestrator could not be reached."""


class UpstreamEmptyBodyError(UpstreamError):
    """The orchestrator answered without a response body."""

    def __init__(self, message: str = "No response body"):
        super().__init__(message)


class FeedbackForwardError(RelayError):
    """Forwarding a feedback submission to the orchestrator failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ChatClientError(RelayError):
    """A chat turn could not be completed by the client (network or HTTP failure)."""
