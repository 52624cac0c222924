# relaychat_web/translator.py
"""
Maps the orchestrator's event vocabulary onto the relay's downstream one.

    state (phase != "done")  -> status(message)
    rewrite                  -> (carried until the answer arrives)
    answer                   -> result{rewrite, response, run_id}
    route / anything else    -> ignored
    upstream failure         -> error(text)

One translator instance serves exactly one request.
"""
import logging
from typing import List, Optional

from .models import AnswerEvent, DownstreamEvent, ResultPayload, RewriteEvent, StateEvent, UpstreamEvent

logger = logging.getLogger("relaychat_web.translator")

NO_ANSWER_MESSAGE = "Orchestrator stream ended without an answer"


class EventTranslator:
    """
    Translates upstream events for a single request.

    Attributes:
        request_id: Used as the run id when the answer does not carry one.
        pending_rewrite: The latest rewritten question, attached to the result.
        finished: True once a terminal event has been produced.
    """

    def __init__(self, request_id: str):
        self.request_id = request_id
        self.pending_rewrite: Optional[str] = None
        self.finished = False

    def translate(self, event: UpstreamEvent) -> List[DownstreamEvent]:
        if self.finished:
            logger.debug(f"Ignoring '{event.type}' event received after the terminal event for request {self.request_id}.")
            return []

        if isinstance(event, StateEvent):
            if event.phase == "done" or event.message is None:
                return []
            logger.info(f"[stream {self.request_id}] status: {event.message}")
            return [DownstreamEvent(event="status", data=event.message)]

        if isinstance(event, RewriteEvent):
            if event.text is not None:
                self.pending_rewrite = event.text
                logger.info(f"[stream {self.request_id}] rewrite: {event.text}")
            return []

        if isinstance(event, AnswerEvent):
            result = ResultPayload(
                rewrite=self.pending_rewrite,
                response=event.text or "",
                run_id=event.run_id or self.request_id,
            )
            self.finished = True
            logger.info(f"[stream {self.request_id}] answer ({len(result.response)} chars), run_id={result.run_id}")
            return [DownstreamEvent(event="result", data=result.model_dump())]

        logger.debug(f"[stream {self.request_id}] ignoring upstream event type '{event.type}'.")
        return []

    def translate_error(self, error: BaseException) -> DownstreamEvent:
        """Converts a failure while streaming into the request's terminal `error` event."""
        self.finished = True
        return DownstreamEvent(event="error", data=str(error) or type(error).__name__)

    def finish(self) -> List[DownstreamEvent]:
        """Closes the translation pass, producing an error if no answer ever arrived."""
        if self.finished:
            return []
        self.finished = True
        logger.warning(f"[stream {self.request_id}] upstream stream ended without an answer.")
        return [DownstreamEvent(event="error", data=NO_ANSWER_MESSAGE)]
