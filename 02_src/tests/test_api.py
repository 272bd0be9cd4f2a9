"""Tests for the HTTP API."""

import json

import pytest
from fastapi.testclient import TestClient

from agent_bridge.api.app import create_fastapi_app
from agent_bridge.app import Application
from agent_bridge.models import TurnResult


def message_payload(text: str, message_id: str = "om_in1", token: str = "vtoken") -> dict:
    return {
        "schema": "2.0",
        "header": {"event_type": "im.message.receive_v1", "token": token},
        "event": {
            "sender": {"sender_id": {"open_id": "ou_alice"}},
            "message": {
                "message_id": message_id,
                "chat_id": "oc_chat",
                "chat_type": "p2p",
                "message_type": "text",
                "content": json.dumps({"text": text}),
            },
        },
    }


@pytest.fixture
def application(settings, sink, selector):
    settings.ai_provider = "claude"
    settings.feishu_verification_token = "vtoken"
    return Application(settings, db_path=":memory:", sink=sink, selector=selector)


@pytest.fixture
def client(application):
    with TestClient(create_fastapi_app(application)) as test_client:
        yield test_client


class TestFeishuWebhook:
    """Tests for POST /feishu/events."""

    def test_url_verification(self, client):
        response = client.post(
            "/feishu/events",
            json={"type": "url_verification", "challenge": "c123", "token": "vtoken"},
        )
        assert response.status_code == 200
        assert response.json() == {"challenge": "c123"}

    def test_bad_token_is_unauthorized(self, client):
        response = client.post("/feishu/events", json=message_payload("hi", token="nope"))
        assert response.status_code == 401

    def test_invalid_json_is_bad_request(self, client):
        response = client.post(
            "/feishu/events",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_message_is_handled(self, client, application, provider, sink):
        provider.script = [TurnResult("pong", "S1")]

        response = client.post("/feishu/events", json=message_payload("ping"))
        client.portal.call(application.gateway.drain)

        assert response.status_code == 200
        assert response.json() == {}
        assert provider.calls[0]["prompt"] == "ping"
        assert sink.final_update[2] == "\npong"


class TestTraceEvents:
    """Tests for GET /api/trace-events."""

    def test_lists_orchestrator_events(self, client, application, provider):
        provider.script = [TurnResult("ok", "S1")]
        client.post("/feishu/events", json=message_payload("go"))
        client.portal.call(application.gateway.drain)

        response = client.get("/api/trace-events", params={"event_type": "turn_completed"})

        assert response.status_code == 200
        events = response.json()
        assert len(events) == 1
        assert events[0]["actor"] == "orchestrator"
        assert events[0]["data"]["conversation_key"] == "oc_chat"

    def test_invalid_after(self, client):
        response = client.get("/api/trace-events", params={"after": "yesterday"})
        assert response.status_code == 400


class TestStatus:
    """Tests for GET /api/status."""

    def test_status(self, client):
        response = client.get("/api/status")
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "provider": "claude",
            "display_name": "Claude Code",
            "workspace": "/tmp/agent-workspace",
            "processing": [],
        }
