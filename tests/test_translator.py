"""
tests/test_translator.py

Tests for EventTranslator and upstream event parsing.

Verifies:
✔ state events become status, except phase "done"
✔ rewrite text is carried and attached to the result
✔ answer without run id falls back to the request id
✔ unknown events are ignored without touching carry state
✔ wrongly typed optional fields read as absent; the event still counts
✔ exactly one terminal event per translation pass
"""

import pytest

from relaychat_web.exceptions import UpstreamStatusError, UpstreamTimeoutError
from relaychat_web.models import AnswerEvent, StateEvent, UnknownEvent, parse_upstream_event
from relaychat_web.translator import NO_ANSWER_MESSAGE, EventTranslator

REQUEST_ID = "req-123"


def translate_all(*raw_events):
    translator = EventTranslator(REQUEST_ID)
    out = []
    for raw in raw_events:
        out.extend((e.event, e.data) for e in translator.translate(parse_upstream_event(raw)))
    return translator, out


# ─────────────────────────────────────────────────────
# Parsing
# ─────────────────────────────────────────────────────


class TestParseUpstreamEvent:
    def test_known_types(self):
        assert isinstance(parse_upstream_event({"type": "state", "phase": "thinking", "message": "x"}), StateEvent)
        assert isinstance(parse_upstream_event({"type": "answer", "text": "A."}), AnswerEvent)

    def test_agent_graph_run_id_alias(self):
        event = parse_upstream_event({"type": "answer", "text": "A.", "agent_graph_run_id": "g-1"})
        assert event.run_id == "g-1"

    def test_unknown_type_keeps_fields(self):
        event = parse_upstream_event({"type": "sql_plan", "plan": [1, 2]})
        assert isinstance(event, UnknownEvent)
        assert event.type == "sql_plan"
        assert event.model_extra == {"plan": [1, 2]}

    def test_wrongly_typed_field_reads_as_absent(self):
        event = parse_upstream_event({"type": "state", "phase": "thinking", "message": 42})
        assert isinstance(event, StateEvent)
        assert event.phase == "thinking"
        assert event.message is None

    def test_wrongly_typed_run_id_keeps_answer(self):
        event = parse_upstream_event({"type": "answer", "text": "A.", "agent_graph_run_id": 7})
        assert isinstance(event, AnswerEvent)
        assert event.text == "A."
        assert event.run_id is None


# ─────────────────────────────────────────────────────
# Translation rules
# ─────────────────────────────────────────────────────


class TestEventTranslator:
    def test_state_done_is_suppressed(self):
        _, out = translate_all({"type": "state", "phase": "done", "message": "x"})
        assert out == []

    def test_state_becomes_status(self):
        _, out = translate_all({"type": "state", "phase": "thinking", "message": "x"})
        assert out == [("status", "x")]

    def test_state_without_message_is_ignored(self):
        _, out = translate_all({"type": "state", "phase": "thinking"})
        assert out == []

    def test_rewrite_is_carried_into_result(self):
        _, out = translate_all(
            {"type": "rewrite", "text": "Q?"},
            {"type": "answer", "text": "A.", "run_id": "r1"},
        )
        assert out == [("result", {"rewrite": "Q?", "response": "A.", "run_id": "r1"})]

    def test_answer_alone_uses_request_id(self):
        _, out = translate_all({"type": "answer", "text": "A."})
        assert out == [("result", {"rewrite": None, "response": "A.", "run_id": REQUEST_ID})]

    def test_answer_without_text_has_empty_response(self):
        _, out = translate_all({"type": "answer"})
        assert out == [("result", {"rewrite": None, "response": "", "run_id": REQUEST_ID})]

    def test_answer_with_numeric_run_id_uses_request_id(self):
        translator, out = translate_all({"type": "answer", "text": "A.", "agent_graph_run_id": 12345})
        assert out == [("result", {"rewrite": None, "response": "A.", "run_id": REQUEST_ID})]
        assert translator.finish() == []

    def test_answer_with_non_string_text_has_empty_response(self):
        _, out = translate_all({"type": "rewrite", "text": ["Q?"]}, {"type": "answer", "text": {"rows": 3}, "run_id": "r1"})
        assert out == [("result", {"rewrite": None, "response": "", "run_id": "r1"})]

    def test_latest_rewrite_wins(self):
        _, out = translate_all(
            {"type": "rewrite", "text": "first"},
            {"type": "rewrite", "text": "second"},
            {"type": "answer", "text": "A."},
        )
        assert out[0][1]["rewrite"] == "second"

    @pytest.mark.parametrize("raw", [
        {"type": "route", "route": "sql"},
        {"type": "telemetry", "ms": 12},
        {"type": ""},
    ])
    def test_ignored_types_leave_carry_state_unchanged(self, raw):
        translator = EventTranslator(REQUEST_ID)
        translator.translate(parse_upstream_event({"type": "rewrite", "text": "Q?"}))
        assert translator.translate(parse_upstream_event(raw)) == []
        assert translator.pending_rewrite == "Q?"

    def test_events_after_answer_are_ignored(self):
        translator, out = translate_all(
            {"type": "answer", "text": "A."},
            {"type": "state", "phase": "thinking", "message": "late"},
            {"type": "answer", "text": "B."},
        )
        assert [event for event, _ in out] == ["result"]
        assert translator.finish() == []

    def test_full_sequence(self):
        _, out = translate_all(
            {"type": "state", "phase": "thinking", "message": "Thinking"},
            {"type": "rewrite", "text": "How many open jobs?"},
            {"type": "route", "route": "sql"},
            {"type": "state", "phase": "searching_sql", "message": "searching_sql"},
            {"type": "state", "phase": "done", "message": "done"},
            {"type": "answer", "text": "42.", "agent_graph_run_id": "g-9"},
        )
        assert out == [
            ("status", "Thinking"),
            ("status", "searching_sql"),
            ("result", {"rewrite": "How many open jobs?", "response": "42.", "run_id": "g-9"}),
        ]


class TestTerminalErrors:
    def test_status_error_carries_status_and_body(self):
        translator = EventTranslator(REQUEST_ID)
        event = translator.translate_error(UpstreamStatusError(500, "boom", "Internal Server Error"))
        assert event.event == "error"
        assert "500" in event.data and "boom" in event.data
        assert translator.finished

    def test_status_error_falls_back_to_reason(self):
        event = EventTranslator(REQUEST_ID).translate_error(UpstreamStatusError(503, "", "Service Unavailable"))
        assert event.data == "503: Service Unavailable"

    def test_timeout_error(self):
        event = EventTranslator(REQUEST_ID).translate_error(UpstreamTimeoutError(55.0))
        assert event.data == "Orchestrator did not respond within 55s"

    def test_unexpected_exception_without_message(self):
        event = EventTranslator(REQUEST_ID).translate_error(RuntimeError())
        assert event.data == "RuntimeError"

    def test_finish_without_answer_reports_error(self):
        translator, _ = translate_all({"type": "state", "phase": "thinking", "message": "x"})
        events = translator.finish()
        assert [(e.event, e.data) for e in events] == [("error", NO_ANSWER_MESSAGE)]
        assert translator.finish() == []
