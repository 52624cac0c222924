"""
tests/test_feedback_routes.py

Tests for POST /api/feedback and the feedback forwarder.

Verifies:
✔ Missing run_id / bad feedback_type / bad thumbs-down reason → 400, nothing forwarded
✔ Reason is only validated for thumbs_down
✔ Payload mapping to the orchestrator vocabulary
✔ Upstream failures (status, error body, transport) → 502
"""

import json

import httpx
import pytest

from conftest import ORCHESTRATOR_URL


class RecordingOrchestrator:
    def __init__(self, response=None):
        self.response = response or httpx.Response(200, json={"status": "ok"})
        self.payloads = []
        self.urls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.urls.append(str(request.url))
        self.payloads.append(json.loads(request.content))
        return self.response


def post_feedback(flask_app, payload):
    with flask_app.test_client() as client:
        response = client.post("/api/feedback", json=payload)
        return response.status_code, response.get_json()


# ─────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────


class TestFeedbackValidation:
    @pytest.mark.parametrize("payload, message", [
        ({"feedback_type": "thumbs_up"}, "Missing run_id"),
        ({"run_id": "", "feedback_type": "thumbs_up"}, "Missing run_id"),
        ({"run_id": "r1", "feedback_type": "meh"}, "feedback_type must be thumbs_up or thumbs_down"),
        ({"run_id": "r1", "feedback_type": "thumbs_down", "reason": "invalid_value"}, "Invalid reason"),
    ])
    def test_rejected(self, make_app, payload, message):
        orchestrator = RecordingOrchestrator()
        status, body = post_feedback(make_app(orchestrator), payload)
        assert status == 400
        assert body == {"error": message}
        assert orchestrator.payloads == []

    def test_reason_ignored_for_thumbs_up(self, make_app):
        orchestrator = RecordingOrchestrator()
        status, body = post_feedback(make_app(orchestrator), {"run_id": "r1", "feedback_type": "thumbs_up", "reason": "invalid_value"})
        assert status == 200
        assert body == {"success": True}
        assert orchestrator.payloads == [{"agent_graph_run_id": "r1", "rating": "thumbs_up"}]


# ─────────────────────────────────────────────────────
# Forwarding
# ─────────────────────────────────────────────────────


class TestFeedbackForwarding:
    def test_thumbs_down_without_reason(self, make_app):
        orchestrator = RecordingOrchestrator()
        status, body = post_feedback(make_app(orchestrator), {"run_id": "r1", "feedback_type": "thumbs_down"})
        assert status == 200
        assert body == {"success": True}
        assert orchestrator.urls == [f"{ORCHESTRATOR_URL}/feedback"]
        assert orchestrator.payloads == [{"agent_graph_run_id": "r1", "rating": "thumbs_down"}]
        assert "feedback_type" not in orchestrator.payloads[0]

    def test_thumbs_down_with_reason_question_and_comment(self, make_app):
        orchestrator = RecordingOrchestrator()
        status, _ = post_feedback(make_app(orchestrator), {
            "run_id": "r1",
            "feedback_type": "thumbs_down",
            "reason": "not_factually_correct",
            "question": "How many jobs?",
            "comment": "Only returned 3 titles",
        })
        assert status == 200
        assert orchestrator.payloads == [{
            "agent_graph_run_id": "r1",
            "rating": "thumbs_down",
            "feedback_type": "not_factual",
            "question": "How many jobs?",
            "comment": "Only returned 3 titles",
        }]

    def test_non_string_context_fields_are_dropped(self, make_app):
        orchestrator = RecordingOrchestrator()
        status, body = post_feedback(make_app(orchestrator), {
            "run_id": "r1",
            "feedback_type": "thumbs_down",
            "reason": "other",
            "question": 42,
            "comment": ["too", "short"],
        })
        assert status == 200
        assert body == {"success": True}
        assert orchestrator.payloads == [{"agent_graph_run_id": "r1", "rating": "thumbs_down", "feedback_type": "other"}]

    def test_missing_feedback_type_defaults_to_thumbs_down(self, make_app):
        orchestrator = RecordingOrchestrator()
        status, _ = post_feedback(make_app(orchestrator), {"run_id": "r1"})
        assert status == 200
        assert orchestrator.payloads[0]["rating"] == "thumbs_down"

    def test_upstream_error_status(self, make_app):
        orchestrator = RecordingOrchestrator(httpx.Response(500, text="db down"))
        status, body = post_feedback(make_app(orchestrator), {"run_id": "r1", "feedback_type": "thumbs_up"})
        assert status == 502
        assert body == {"error": "Orchestrator: 500 db down"}

    def test_upstream_error_body(self, make_app):
        orchestrator = RecordingOrchestrator(httpx.Response(200, json={"status": "error", "message": "unknown run"}))
        status, body = post_feedback(make_app(orchestrator), {"run_id": "r1", "feedback_type": "thumbs_up"})
        assert status == 502
        assert body == {"error": "Orchestrator: unknown run"}

    def test_upstream_unreachable(self, make_app):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        status, body = post_feedback(make_app(refuse), {"run_id": "r1", "feedback_type": "thumbs_up"})
        assert status == 502
        assert body == {"error": "Orchestrator: Connection refused"}
