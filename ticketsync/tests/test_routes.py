"""
Tests for the HTTP surface

The application lifespan runs against an in-memory store, so both sessions
start exactly as they do in production.
"""
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from ticketsync import main
from ticketsync.exceptions import SuggestionGenerationError
from ticketsync.middleware.logging_middleware import level_for_status
from ticketsync.models.schemas import SuggestionsOutput
from ticketsync.services.suggestion_generator import get_suggestion_generator
from ticketsync.tests.fakes import InMemoryStore, make_ticket

SEEDED = "ticket-uuid-0042"


@pytest.fixture
def seeded_store():
    return InMemoryStore({"tickets": {SEEDED: make_ticket(
        customer={"09:00:00": {"content": "Missing cash from ATM"}},
        agent={"09:00:30": {"content": "Which ATM was it?", "agent_id": "agent001"}},
        bot_output={"09:00:40": {
            "agent_script_suggestions_block": "Suggestion A: Ask for the location\nSuggestion B: Open a dispute",
            "context_tags": "[ATM,CashDispute] Priority: High",
        }},
    )}})


def make_client(monkeypatch, settings, store):
    monkeypatch.setattr(main, "settings", settings)
    monkeypatch.setattr(main, "create_store", lambda _settings: store)
    return TestClient(main.app)


@pytest.fixture
def client(monkeypatch, settings, seeded_store):
    with make_client(monkeypatch, settings, seeded_store) as client:
        yield client
    main.app.dependency_overrides.clear()


@pytest.fixture
def offline_client(monkeypatch, settings):
    with make_client(monkeypatch, settings, None) as client:
        yield client


class TestClientRoutes:
    def test_startup_creates_ticket(self, client):
        response = client.get("/api/v1/client/state")

        assert response.status_code == 200
        data = response.json()
        assert data["available"] is True
        assert data["current_ticket_id"] == "ticket-uuid-0001"
        assert data["is_chat_active"] is True
        assert len(data["query_suggestions"]) == 5
        assert data["notices"][0]["title"] == "New Ticket Started"

    def test_send_message(self, client):
        response = client.post("/api/v1/client/messages", json={"text": "Card declined"})

        assert response.status_code == 201
        data = response.json()
        assert [m["text"] for m in data["messages"]] == ["Card declined"]
        assert data["messages"][0]["sender"] == "customer"
        assert data["query_suggestions"] == []

    def test_send_after_end_conflicts(self, client):
        assert client.post("/api/v1/client/end").json()["is_chat_active"] is False

        response = client.post("/api/v1/client/messages", json={"text": "hello?"})

        assert response.status_code == 409
        assert response.json()["error"] == "TicketEndedError"

    def test_missing_text_is_validation_error(self, client):
        assert client.post("/api/v1/client/messages", json={}).status_code == 422

    def test_switch_and_new_ticket(self, client):
        response = client.post(f"/api/v1/client/tickets/{SEEDED}/select")
        assert response.json()["current_ticket_id"] == SEEDED
        assert [m["text"] for m in response.json()["messages"]] == [
            "Missing cash from ATM", "Which ATM was it?"
        ]

        response = client.post("/api/v1/client/tickets")
        assert response.status_code == 201
        assert response.json()["current_ticket_id"] == "ticket-uuid-0002"

    def test_delete_ticket(self, client):
        response = client.delete("/api/v1/client/ticket")

        assert response.status_code == 200
        data = response.json()
        assert data["current_ticket_id"] == "ticket-uuid-0002"
        assert "ticket-uuid-0001" not in data["all_ticket_ids"]

    def test_smart_suggestions_use_recent_messages(self, client):
        generator = MagicMock()
        generator.smart_suggestions = AsyncMock(return_value=SuggestionsOutput(suggestions=["Block my card"]))
        main.app.dependency_overrides[get_suggestion_generator] = lambda: generator
        client.post("/api/v1/client/messages", json={"text": "Card declined"})

        response = client.post("/api/v1/client/suggestions/generate")

        assert response.status_code == 200
        assert response.json()["suggestions"] == ["Block my card"]
        assert "Customer: Card declined" in generator.smart_suggestions.call_args[0][0]

    def test_smart_suggestions_skip_empty_chat(self, client):
        generator = MagicMock()
        generator.smart_suggestions = AsyncMock()
        main.app.dependency_overrides[get_suggestion_generator] = lambda: generator

        response = client.post("/api/v1/client/suggestions/generate")

        assert response.json()["suggestions"] == []
        generator.smart_suggestions.assert_not_called()


class TestAdminRoutes:
    def test_list_tickets(self, client):
        response = client.get("/api/v1/admin/tickets")

        assert response.status_code == 200
        assert {t["id"] for t in response.json()} == {SEEDED, "ticket-uuid-0001"}

    def test_select_ticket(self, client):
        response = client.post(f"/api/v1/admin/tickets/{SEEDED}/select")

        assert response.status_code == 200
        data = response.json()
        assert data["selected_ticket_id"] == SEEDED
        assert data["suggestions"] == ["Ask for the location", "Open a dispute"]
        assert data["context_tags"] == ["Priority: High", "ATM", "Cash Dispute"]
        assert len(data["messages"]) == 2

    def test_unknown_ticket_is_404(self, client):
        response = client.post("/api/v1/admin/tickets/ticket-uuid-9999/select")

        assert response.status_code == 404
        assert response.json()["error"] == "TicketNotFoundError"

    def test_send_without_selection_is_400(self, client):
        assert client.post("/api/v1/admin/messages", json={"text": "hi"}).status_code == 400

    def test_suggestion_then_send(self, client, seeded_store):
        client.post(f"/api/v1/admin/tickets/{SEEDED}/select")
        response = client.post("/api/v1/admin/suggestions/select", json={"suggestion": "Open a dispute"})
        assert response.json()["input_value"] == "Open a dispute"

        response = client.post("/api/v1/admin/messages", json={"text": "Open a dispute"})

        assert response.status_code == 201
        texts = [m["text"] for m in response.json()["messages"]]
        assert "Open a dispute" in texts
        # The previous oldest agent reply was retired
        assert "Which ATM was it?" not in texts
        assert seeded_store.value_at(f"tickets/{SEEDED}/Agent/09:00:30") is None

    def test_delete_message(self, client):
        client.post(f"/api/v1/admin/tickets/{SEEDED}/select")

        response = client.delete(f"/api/v1/admin/messages/{SEEDED}-Agent-09:00:30")
        assert response.status_code == 200
        assert [m["text"] for m in response.json()["messages"]] == ["Missing cash from ATM"]

        assert client.delete("/api/v1/admin/messages/unknown").status_code == 404
        response = client.delete(f"/api/v1/admin/messages/{SEEDED}-user-123-09:00:00")
        assert response.status_code == 422

    def test_generate_suggestions(self, client):
        generator = MagicMock()
        generator.suggest_response = AsyncMock(return_value=SuggestionsOutput(suggestions=["One", "Two", "Three"]))
        main.app.dependency_overrides[get_suggestion_generator] = lambda: generator
        client.post(f"/api/v1/admin/tickets/{SEEDED}/select")

        response = client.post("/api/v1/admin/suggestions/generate")

        assert response.status_code == 200
        assert response.json()["suggestions"] == ["One", "Two", "Three"]
        history = generator.suggest_response.call_args[0][0]
        assert "Customer: Missing cash from ATM" in history

    def test_generate_suggestions_failure(self, client):
        generator = MagicMock()
        generator.suggest_response = AsyncMock(side_effect=SuggestionGenerationError("quota"))
        main.app.dependency_overrides[get_suggestion_generator] = lambda: generator
        client.post(f"/api/v1/admin/tickets/{SEEDED}/select")

        assert client.post("/api/v1/admin/suggestions/generate").status_code == 502


class TestOffline:
    def test_state_reports_unavailable(self, offline_client):
        data = offline_client.get("/api/v1/client/state").json()

        assert data["available"] is False
        assert data["banner"]

    def test_operations_are_503(self, offline_client):
        assert offline_client.post("/api/v1/client/tickets").status_code == 503
        assert offline_client.post(f"/api/v1/admin/tickets/{SEEDED}/select").status_code == 503

    def test_health_degraded(self, offline_client):
        data = offline_client.get("/api/v1/health").json()

        assert data["status"] == "degraded"
        assert data["store_configured"] is False


class TestHealth:
    def test_basic_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["uptime_seconds"] >= 0

    def test_root(self, client):
        assert client.get("/").json()["version"] == "1.0.0"


class TestLoggingMiddleware:
    def test_client_requests_carry_ticket_header(self, client):
        response = client.post("/api/v1/client/messages", json={"text": "Card declined"})

        assert response.headers["X-Ticket-Id"] == "ticket-uuid-0001"
        assert "X-Process-Time" in response.headers

    def test_admin_header_follows_selection(self, client):
        response = client.post(f"/api/v1/admin/tickets/{SEEDED}/select")
        assert response.headers["X-Ticket-Id"] == SEEDED

        response = client.post("/api/v1/admin/tickets/ticket-uuid-9999/select")
        assert response.status_code == 404
        assert "X-Ticket-Id" not in response.headers

    def test_quiet_paths_are_untouched(self, client):
        response = client.get("/api/v1/client/state")

        assert "X-Process-Time" not in response.headers

    def test_offline_sessions_have_no_ticket(self, offline_client):
        response = offline_client.post("/api/v1/client/end")

        assert response.status_code == 503
        assert "X-Ticket-Id" not in response.headers

    @pytest.mark.parametrize("status_code, level", [
        (200, logging.INFO),
        (409, logging.WARNING),
        (503, logging.ERROR),
    ])
    def test_level_for_status(self, status_code, level):
        assert level_for_status(status_code) == level
