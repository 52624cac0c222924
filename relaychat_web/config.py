# relaychat_web/config.py
"""
Configuration for relaychat-web.

The orchestrator base URL and the relay timeouts are resolved once, when the
Flask app is created, and stored in `app.config["RELAY_CONFIG"]`. Components
that talk to the orchestrator receive the `RelayConfig` explicitly instead of
reading the environment themselves.

Environment variables:
    MCP_TOOL_ORCHESTRATOR_URL: Preferred orchestrator base URL.
    ORCHESTRATOR_URL: Fallback orchestrator base URL.
    RELAY_UPSTREAM_TIMEOUT: Hard deadline (seconds) for one upstream stream.
    RELAY_FEEDBACK_TIMEOUT: Timeout (seconds) for one feedback call.
"""
import logging
import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .exceptions import ConfigError

logger = logging.getLogger("relaychat_web.config")

DEFAULT_ORCHESTRATOR_URL = "https://mcp-orchestrator-v1-dev.fly.dev"
DEFAULT_UPSTREAM_TIMEOUT_S = 55.0
DEFAULT_RELAY_BUDGET_S = 60.0
DEFAULT_FEEDBACK_TIMEOUT_S = 10.0


def _clean_env_value(raw: Optional[str]) -> str:
    """Strips inline `#` comments and surrounding quotes from an env value."""
    if raw is None:
        return ""
    value = raw.split("#")[0].strip()
    if len(value) >= 1 and value[0] in "\"'":
        value = value[1:]
    if len(value) >= 1 and value[-1] in "\"'":
        value = value[:-1]
    return value.strip()


class RelayConfig(BaseModel):
    """Process-lifetime settings shared by the upstream client and feedback forwarder."""

    model_config = ConfigDict(frozen=True)

    orchestrator_url: str = DEFAULT_ORCHESTRATOR_URL
    upstream_timeout_s: float = DEFAULT_UPSTREAM_TIMEOUT_S
    relay_budget_s: float = DEFAULT_RELAY_BUDGET_S
    feedback_timeout_s: float = DEFAULT_FEEDBACK_TIMEOUT_S
    initial_status: str = "thinking"

    @field_validator("orchestrator_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("orchestrator_url must not be empty")
        return value

    @model_validator(mode="after")
    def _timeout_within_budget(self) -> "RelayConfig":
        # A hung upstream must be reported before the outer deadline hits.
        if self.upstream_timeout_s >= self.relay_budget_s:
            raise ValueError(
                f"upstream_timeout_s ({self.upstream_timeout_s}) must be shorter than relay_budget_s ({self.relay_budget_s})"
            )
        return self

    @property
    def stream_answer_url(self) -> str:
        return f"{self.orchestrator_url}/orchestrator/stream-answer"

    @property
    def feedback_url(self) -> str:
        return f"{self.orchestrator_url}/feedback"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RelayConfig":
        """Builds the configuration from environment variables."""
        env = os.environ if environ is None else environ
        orchestrator_url = (
            _clean_env_value(env.get("MCP_TOOL_ORCHESTRATOR_URL"))
            or _clean_env_value(env.get("ORCHESTRATOR_URL"))
            or DEFAULT_ORCHESTRATOR_URL
        )
        kwargs = {"orchestrator_url": orchestrator_url}
        for env_name, field_name in (("RELAY_UPSTREAM_TIMEOUT", "upstream_timeout_s"), ("RELAY_FEEDBACK_TIMEOUT", "feedback_timeout_s")):
            raw_value = _clean_env_value(env.get(env_name))
            if raw_value:
                try:
                    kwargs[field_name] = float(raw_value)
                except ValueError as e:
                    raise ConfigError(f"{env_name} must be a number, got {raw_value!r}") from e
        try:
            config = cls(**kwargs)
        except ValueError as e:
            raise ConfigError(f"Invalid relay configuration: {e}") from e
        logger.info(f"Relay configuration resolved. Orchestrator: {config.orchestrator_url}, upstream timeout: {config.upstream_timeout_s}s.")
        return config
