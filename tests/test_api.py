"""Tests for the FastAPI endpoints."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from src.agent import CompletionError
from src.server import app

FLOW_PAYLOAD = {
    "reply": "入れ歯を外すとお食事がしにくいですか？",
    "source": "faq_flow_start",
    "faq_flow": {"key": "入れ歯が割れた", "step": 1, "slots": {}},
    "suggest_end": False,
    "reply_options": [{"label": "はい", "value": "はい"}, {"label": "いいえ", "value": "いいえ"}],
}


@pytest.fixture
def mock_agent():
    """Create a mock graph and attach it to app state (mirrors the lifespan)."""
    agent = MagicMock()
    agent.invoke.return_value = {"response": dict(FLOW_PAYLOAD)}
    app.state.agent = agent
    yield agent
    app.state.agent = None


@pytest.fixture
def mock_app_store():
    store = MagicMock()
    app.state.store = store
    yield store
    app.state.store = None


@pytest.fixture
def client(mock_agent, mock_app_store):
    """FastAPI test client with the mock graph and store wired up."""
    return TestClient(app)


def _chat(client, text: str = "入れ歯が割れました", **extra):
    return client.post(
        "/api/chat",
        json={"messages": [{"role": "user", "content": text}], **extra},
    )


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "clinic-inquiry"}


class TestChatEndpoint:
    def test_chat_returns_flow_payload(self, client):
        response = _chat(client)
        assert response.status_code == 200
        assert response.json() == FLOW_PAYLOAD

    def test_chat_passes_query_and_flow_to_graph(self, client, mock_agent):
        flow = {"key": "入れ歯が割れた", "step": 1, "slots": {}}
        _chat(client, "はい", faq_flow=flow)
        state = mock_agent.invoke.call_args[0][0]
        assert state["query"] == "はい"
        assert state["faq_flow"] == flow
        assert state["messages"][-1].content == "はい"

    def test_malformed_flow_is_passed_through_for_the_engine(self, client, mock_agent):
        response = _chat(client, "はい", faq_flow="garbage")
        assert response.status_code == 200
        assert mock_agent.invoke.call_args[0][0]["faq_flow"] == "garbage"

    def test_query_is_normalized(self, client, mock_agent):
        _chat(client, "  ＹＥＳ　 ")
        assert mock_agent.invoke.call_args[0][0]["query"] == "YES"

    def test_terminal_reply_has_no_flow(self, client, mock_agent):
        mock_agent.invoke.return_value = {"response": {
            "reply": "平日9時からです。",
            "source": "faq",
            "faq_flow": None,
            "suggest_end": True,
            "reply_options": None,
        }}
        data = _chat(client, "診療時間").json()
        assert data["faq_flow"] is None
        assert data["suggest_end"] is True
        assert data["reply_options"] is None

    def test_too_many_messages_rejected(self, client):
        messages = [{"role": "user", "content": "a"}] * 201
        response = client.post("/api/chat", json={"messages": messages})
        assert response.status_code == 422

    def test_chat_handles_agent_error(self, client, mock_agent):
        mock_agent.invoke.side_effect = RuntimeError("graph exploded")
        response = _chat(client)
        assert response.status_code == 500
        # Verify we do NOT leak the internal error message to the client
        detail = response.json()["detail"]
        assert "graph exploded" not in detail
        assert "internal error" in detail.lower()

    def test_completion_failure_is_502(self, client, mock_agent):
        mock_agent.invoke.side_effect = CompletionError("General completion failed")
        response = _chat(client)
        assert response.status_code == 502
        assert "temporarily unavailable" in response.json()["detail"]

    def test_response_includes_request_id_header(self, client):
        assert "X-Request-ID" in _chat(client).headers

    def test_client_supplied_request_id_is_echoed(self, client):
        response = client.post(
            "/api/chat",
            json={"messages": [{"role": "user", "content": "こんにちは"}]},
            headers={"X-Request-ID": "my-trace-id-123"},
        )
        assert response.headers["X-Request-ID"] == "my-trace-id-123"


class TestAuditLog:
    def test_log_entry_written_after_reply(self, client, mock_app_store):
        _chat(
            client,
            session_id="s" * 200,
            patient={"name": "山田 花子", "dob": "1990-01-01"},
            user_agent="WidgetUA/1.0",
            page_url="https://clinic.example/faq",
        )
        mock_app_store.record_log.assert_called_once()
        entry = mock_app_store.record_log.call_args[0][0]
        assert entry["session_id"] == "s" * 120
        assert entry["name"] == "山田 花子"
        assert entry["dob"] == "1990-01-01"
        assert entry["user_text"] == "入れ歯が割れました"
        assert entry["assistant_text"] == FLOW_PAYLOAD["reply"]
        assert entry["user_agent"] == "WidgetUA/1.0"
        assert entry["page_url"] == "https://clinic.example/faq"

    def test_user_agent_falls_back_to_header(self, client, mock_app_store):
        client.post(
            "/api/chat",
            json={"messages": [{"role": "user", "content": "こんにちは"}]},
            headers={"User-Agent": "HeaderUA/2.0"},
        )
        entry = mock_app_store.record_log.call_args[0][0]
        assert entry["user_agent"] == "HeaderUA/2.0"
        assert entry["name"] == ""

    def test_logged_user_text_is_trimmed(self, client, mock_app_store):
        client.post("/api/chat", json={"messages": [{"role": "user", "content": "あ" * 5000}]})
        entry = mock_app_store.record_log.call_args[0][0]
        assert entry["user_text"] == "あ" * 1000

    def test_no_log_without_user_text(self, client, mock_app_store):
        client.post("/api/chat", json={"messages": []})
        mock_app_store.record_log.assert_not_called()


class TestAgentNotReady:
    def test_returns_503_when_agent_not_initialised(self):
        """If the graph hasn't been set via lifespan, return 503."""
        # Enter the test client (triggers lifespan), then wipe the agent
        # to simulate the state before lifespan completes.
        with TestClient(app) as tc:
            app.state.agent = None
            response = tc.post(
                "/api/chat",
                json={"messages": [{"role": "user", "content": "こんにちは"}]},
            )
            assert response.status_code == 503
            assert "starting up" in response.json()["detail"].lower()
        app.state.store = None


class TestRootEndpoint:
    def test_root_returns_service_info(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "Clinic Inquiry API"
        assert "docs" in data
