import json
import uuid
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from deskagent.application import dependencies
from deskagent.application.api.api_server import create_app
from deskagent.application.websocket import ws_server
from deskagent.domain.prompt.personas import PERSONALITY_REGISTERS
from deskagent.infrastructure.config.settings import get_settings

from .conftest import function_call_item, output_turn, text_turn


def sse_events(body: str) -> List[Dict[str, Any]]:
    return [
        json.loads(chunk[len("data: "):])
        for chunk in body.split("\n\n")
        if chunk.startswith("data: ")
    ]


@pytest.fixture
def build_client(settings, message_store, make_orchestrator, monkeypatch):
    """TestClient whose engine plays back the given turns"""

    def _build(turns):
        orchestrator, service = make_orchestrator(turns)
        app = create_app(settings)
        app.dependency_overrides[dependencies.get_orchestrator] = lambda: orchestrator
        app.dependency_overrides[dependencies.get_message_store] = lambda: message_store
        app.dependency_overrides[get_settings] = lambda: settings
        monkeypatch.setattr(ws_server, "get_orchestrator", lambda: orchestrator)
        monkeypatch.setattr(ws_server, "get_message_store", lambda: message_store)
        monkeypatch.setattr(ws_server, "get_settings", lambda: settings)
        return TestClient(app), service

    return _build


CHAT_BODY = {
    "message": "How do refunds work?",
    "user_id": "user-1",
    "company_id": "company-1",
    "persona_id": "emma",
    "company_name": "Acme",
}


class TestChatRespond:

    def test_streams_events_then_done(self, build_client) -> None:
        client, _ = build_client([text_turn("Refunds take 5 days.", deltas=["Refunds ", "take 5 days."])])

        response = client.post("/api/chat/chat-1/respond", json=CHAT_BODY)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = sse_events(response.text)
        assert [event["type"] for event in events] == [
            "message_delta", "message_delta", "assistant_message_saved", "done",
        ]
        assert events[1]["data"]["text"] == "Refunds take 5 days."
        assert events[-1]["data"] == {
            "success": True, "messages_persisted": 1, "stop_reason": "terminal_text",
        }

    def test_user_and_assistant_turns_are_listed(self, build_client) -> None:
        client, service = build_client([text_turn("Hi there.")])

        client.post("/api/chat/chat-1/respond", json={
            **CHAT_BODY,
            "conversation_history": [
                {"role": "user", "content": "Hello"},
                {"role": "assistant", "content": "Hi, how can I help?"},
            ],
        })
        listed = client.get("/api/chat/chat-1/messages", params={"company_id": "company-1"}).json()

        assert [(m["role"], m["content"]) for m in listed["messages"]] == [
            ("user", "How do refunds work?"),
            ("assistant", "Hi there."),
        ]
        assert listed["total"] == 2
        assert listed["has_more"] is False
        assert len(service.requests[0].input) == 3
        assert "working for Acme" in service.requests[0].instructions

    def test_tool_events_are_relayed(self, build_client, product_api) -> None:
        client, _ = build_client([
            output_turn(function_call_item("get_categories", {})),
            text_turn("Here are the categories."),
        ])

        events = sse_events(client.post("/api/chat/chat-1/respond", json=CHAT_BODY).text)

        types = [event["type"] for event in events]
        assert types.index("tool_call_start") < types.index("tool_call_complete")
        assert types[-1] == "done"
        assert product_api.requests[0].url.path == "/api/category"

    def test_personality_defaults_to_settings(self, build_client, settings) -> None:
        settings.default_personality = 0
        client, service = build_client([text_turn("Good day.")])

        client.post("/api/chat/chat-1/respond", json=CHAT_BODY)

        assert PERSONALITY_REGISTERS[0] in service.requests[0].instructions

    def test_explicit_personality_wins(self, build_client, settings) -> None:
        settings.default_personality = 0
        client, service = build_client([text_turn("Hey!")])

        client.post("/api/chat/chat-1/respond", json={**CHAT_BODY, "personality_level": 3})

        assert PERSONALITY_REGISTERS[3] in service.requests[0].instructions
        assert PERSONALITY_REGISTERS[0] not in service.requests[0].instructions

    def test_missing_message_is_rejected(self, build_client) -> None:
        client, service = build_client([])

        response = client.post("/api/chat/chat-1/respond", json={"user_id": "user-1", "company_id": "c"})

        assert response.status_code == 422
        assert service.requests == []


class TestActionRespond:

    def test_runs_in_action_thread(self, build_client, message_store) -> None:
        client, service = build_client([text_turn("Ticket answered.")])

        events = sse_events(client.post("/api/actions/events/event-1/respond", json={
            "user_id": "user-1",
            "company_id": "company-1",
            "action_id": "action-1",
            "action_prompt": "Answer the new ticket",
            "persona_id": "charlie",
            "trigger_data": {"ticketId": "t-1"},
        }).text)

        assert events[-1]["data"]["success"] is True
        assert service.requests[0].input[0]["content"].startswith("Action Triggered: Answer the new ticket")
        assert "escalate_to_human" in service.requests[0].instructions

        listed = client.get(
            "/api/actions/events/event-1/messages",
            params={"company_id": "company-1", "action_id": "action-1"},
        ).json()
        assert [m["role"] for m in listed["messages"]] == ["user", "assistant"]

        chat = client.get("/api/chat/event-1/messages", params={"company_id": "company-1"}).json()
        assert chat["messages"] == []


class TestServerEndpoints:

    def test_health(self, build_client) -> None:
        client, _ = build_client([])

        body = client.get("/health").json()

        assert body["status"] == "healthy"

    def test_create_session(self, build_client) -> None:
        client, _ = build_client([])

        body = client.post("/api/v1/agent/session/create", params={"tenant_id": "company-1"}).json()

        uuid.UUID(body["session_id"])
        assert body["websocket_url"] == f"/ws/agent/company-1/{body['session_id']}"


class TestWebSocket:

    def test_user_message_is_answered(self, build_client) -> None:
        client, _ = build_client([text_turn("Hello from Emma.")])
        session_id = str(uuid.uuid4())

        with client.websocket_connect(f"/ws/agent/company-1/{session_id}?user_id=user-1") as websocket:
            assert websocket.receive_json()["type"] == "connection"

            websocket.send_json({"type": "user_message", "content": "Hi", "persona_id": "emma"})

            received = []
            while not received or received[-1]["type"] != "done":
                received.append(websocket.receive_json())

        assert [event["type"] for event in received] == [
            "message_delta", "assistant_message_saved", "done",
        ]
        assert received[-1]["data"]["success"] is True

    def test_unsupported_event_type(self, build_client) -> None:
        client, _ = build_client([])

        with client.websocket_connect(f"/ws/agent/company-1/{uuid.uuid4()}") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "ping"})

            error = websocket.receive_json()

        assert error["type"] == "error"
        assert error["error_code"] == "unsupported_event"
