# FILE: tests/test_server.py
"""
Tests for the HTTP surface: routing, caller identity and error status mapping.
"""
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

import server
from architect.errors import (
    AuthorizationError,
    NotFoundError,
    PersistenceFailure,
    UpstreamQuotaExceeded,
    UpstreamRateLimited,
    ValidationError,
)

USER = "9b2f6c1e-1d4a-4b6e-8f1a-2c3d4e5f6a7b"


@pytest.fixture
def fake_backend():
    backend = Mock()
    backend.process_request = AsyncMock(return_value={"type": "ready", "message": "ok", "collected": {}})
    return backend


@pytest.fixture
def client(fake_backend):
    server.app.dependency_overrides[server.get_backend] = lambda: fake_backend
    with TestClient(server.app, raise_server_exceptions=False) as c:
        yield c
    server.app.dependency_overrides.clear()


class TestRoutes:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_dispatches_with_caller(self, client, fake_backend):
        response = client.post(
            "/prompt-architect",
            json={"action": "interview", "user_message": "hi"},
            headers={"X-User-Id": USER},
        )

        assert response.status_code == 200
        assert response.json()["type"] == "ready"
        user_id, body = fake_backend.process_request.call_args.args
        assert user_id == USER
        assert body["action"] == "interview"
        assert body["collected"] == {}
        assert body["conversation_id"] is None

    def test_missing_header_passes_none(self, client, fake_backend):
        client.post("/prompt-architect", json={"action": "interview"})
        assert fake_backend.process_request.call_args.args[0] is None

    def test_malformed_body(self, client):
        response = client.post("/prompt-architect", content="not json",
                               headers={"X-User-Id": USER, "Content-Type": "application/json"})
        assert response.status_code == 400
        assert "error" in response.json()


class TestErrorMapping:

    @pytest.mark.parametrize("error,status,message", [
        (ValidationError("Goal required"), 400, "Goal required"),
        (AuthorizationError("conversation owned by someone else"), 403, "Access denied"),
        (NotFoundError("no such thing"), 404, "Resource not found"),
        (UpstreamRateLimited("429 from vertex"), 429, "Rate limit exceeded. Please try again in a moment."),
        (UpstreamQuotaExceeded("insufficient_quota"), 402, "Payment required. Please add credits to your workspace."),
        (PersistenceFailure("db exploded"), 500, "An error occurred"),
        (RuntimeError("secret stack detail"), 500, "An error occurred"),
    ])
    def test_status_and_body(self, client, fake_backend, error, status, message):
        fake_backend.process_request.side_effect = error

        response = client.post("/prompt-architect", json={"action": "generate"}, headers={"X-User-Id": USER})

        assert response.status_code == status
        assert response.json() == {"error": message}
