# relaychat_web/models.py
"""
Pydantic models for API request validation and the event vocabularies
relayed by relaychat-web.

Upstream events (what the orchestrator streams) form an open tagged union:
known `type` values map to typed models and anything else becomes an
`UnknownEvent` that the translator ignores. A wrongly typed optional field on a
known event is dropped (read as absent); the event itself is kept.
Downstream events (what the browser receives) are a small closed vocabulary.
"""
import logging
from typing import Any, Dict, Literal, Optional, Type

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)

logger = logging.getLogger("relaychat_web.models")

# --- Upstream (orchestrator) events ---

class UpstreamEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str

    @field_validator("*", mode="wrap")
    @classmethod
    def _drop_wrongly_typed(cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        if info.field_name == "type":
            return handler(value)
        try:
            return handler(value)
        except ValidationError:
            logger.debug(f"Dropping wrongly typed '{info.field_name}' on upstream event: {value!r}")
            return None


class StateEvent(UpstreamEvent):
    type: Literal["state"] = "state"
    phase: Optional[str] = None
    message: Optional[str] = None


class RewriteEvent(UpstreamEvent):
    type: Literal["rewrite"] = "rewrite"
    text: Optional[str] = None


class RouteEvent(UpstreamEvent):
    type: Literal["route"] = "route"
    route: Optional[str] = None


class AnswerEvent(UpstreamEvent):
    type: Literal["answer"] = "answer"
    text: Optional[str] = None
    run_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("agent_graph_run_id", "run_id"))


class UnknownEvent(UpstreamEvent):
    """Any event type the relay does not understand; carried only for logging."""


_UPSTREAM_EVENT_TYPES: Dict[str, Type[UpstreamEvent]] = {
    "state": StateEvent,
    "rewrite": RewriteEvent,
    "route": RouteEvent,
    "answer": AnswerEvent,
}


def parse_upstream_event(raw: Dict[str, Any]) -> UpstreamEvent:
    """
    Converts a decoded JSON object from the orchestrator into a typed event.

    Args:
        raw: A JSON object that carries a string `type` field.

    Returns:
        The matching typed event, or an `UnknownEvent` for unrecognized types.
        Optional fields of the wrong type come back as None.
    """
    model = _UPSTREAM_EVENT_TYPES.get(raw.get("type"), UnknownEvent)
    return model.model_validate(raw)


# --- Downstream (browser) events ---

DownstreamEventName = Literal["status", "result", "result_chunk", "error"]


class ResultPayload(BaseModel):
    rewrite: Optional[str] = None
    response: str = ""
    run_id: str


class DownstreamEvent(BaseModel):
    event: DownstreamEventName
    data: Any = None


# --- API requests ---

class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, strict=True, description="The user's chat message.")


THUMBS_DOWN_REASONS = (
    "not_factually_correct",
    "didnt_follow_instructions",
    "offensive_unsafe",
    "wrong_language",
    "other",
)

# Canonical mapping from the UI's reason ids to the orchestrator's feedback_type values.
REASON_TO_ORCHESTRATOR: Dict[str, str] = {
    "not_factually_correct": "not_factual",
    "didnt_follow_instructions": "didnt_follow_instructions",
    "offensive_unsafe": "offensive_unsafe",
    "wrong_language": "wrong_language",
    "other": "other",
}


class FeedbackSubmission(BaseModel):
    run_id: str = Field(..., min_length=1, strict=True)
    feedback_type: Optional[Literal["thumbs_up", "thumbs_down"]] = None
    reason: Optional[str] = None
    question: Optional[str] = None
    comment: Optional[str] = None

    @field_validator("question", "comment", mode="wrap")
    @classmethod
    def _drop_non_string(cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Optional[str]:
        # A wrongly typed context field is left out of the forwarded payload.
        try:
            return handler(value)
        except ValidationError:
            logger.warning(f"Dropping non-string feedback {info.field_name}: {type(value).__name__}")
            return None

    @model_validator(mode="after")
    def _check_reason(self) -> "FeedbackSubmission":
        if self.feedback_type == "thumbs_down" and self.reason is not None and self.reason not in THUMBS_DOWN_REASONS:
            raise ValueError("Invalid reason")
        return self

    def to_orchestrator_payload(self) -> Dict[str, Any]:
        """Builds the body expected by the orchestrator's `/feedback` endpoint."""
        payload: Dict[str, Any] = {
            "agent_graph_run_id": self.run_id,
            "rating": "thumbs_up" if self.feedback_type == "thumbs_up" else "thumbs_down",
        }
        if self.feedback_type == "thumbs_down" and self.reason:
            payload["feedback_type"] = REASON_TO_ORCHESTRATOR.get(self.reason, self.reason)
        if self.question:
            payload["question"] = self.question
        if self.comment:
            payload["comment"] = self.comment
        return payload


def describe_feedback_error(error: ValidationError) -> str:
    """Turns a `FeedbackSubmission` validation failure into the API's error message."""
    first = error.errors()[0] if error.errors() else {}
    field = first.get("loc", ("",))[0] if first.get("loc") else ""
    if field == "run_id":
        return "Missing run_id"
    if field == "feedback_type":
        return "feedback_type must be thumbs_up or thumbs_down"
    return "Invalid reason"
