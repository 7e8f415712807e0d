"""
Tests for API authentication.

Tests X-API-Key header authentication when API_AUTH_ENABLED=true.
Settings are read on every request, so tests only patch the environment.
"""

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from src.api.dependencies.auth import auth_enabled, verify_api_key
from src.api.main import app
from src.api.services.simulator_service import SimulatorService, get_simulator_service
from src.simulator.config import SimulatorConfig


# Test API key for testing
TEST_API_KEY = "test-secret-key-12345"


@pytest.fixture
def client():
    service = SimulatorService(config=SimulatorConfig(random_seed=3))
    app.dependency_overrides[get_simulator_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_on(monkeypatch):
    monkeypatch.setenv("API_AUTH_ENABLED", "true")
    monkeypatch.setenv("API_KEY", TEST_API_KEY)


class TestAuthDisabled:
    """Tests when authentication is disabled (default)."""

    def test_health_no_auth_required(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_simulator_open(self, client):
        assert client.get("/simulator/health").status_code == 200

    def test_templates_open(self, client):
        assert client.get("/templates/stats").status_code == 200


class TestAuthEnabled:
    """Tests when authentication is enabled."""

    def test_health_still_open(self, client, auth_on):
        """Health endpoint never requires a key."""
        assert client.get("/health").status_code == 200

    def test_missing_key_rejected(self, client, auth_on):
        response = client.post("/simulator/prompts", json={})
        assert response.status_code == 401
        assert "Missing API key" in response.json()["detail"]
        assert response.headers["WWW-Authenticate"] == "ApiKey"

    def test_invalid_key_rejected(self, client, auth_on):
        response = client.get("/templates", headers={"X-API-Key": "wrong-key"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key"

    def test_valid_key_accepted(self, client, auth_on):
        response = client.post(
            "/simulator/prompts",
            json={"parameters": {"genre": "mystery"}, "count": 2},
            headers={"X-API-Key": TEST_API_KEY},
        )
        assert response.status_code == 200

    def test_missing_server_key_is_500(self, client, monkeypatch):
        monkeypatch.setenv("API_AUTH_ENABLED", "true")
        monkeypatch.delenv("API_KEY", raising=False)

        response = client.get("/simulator/health", headers={"X-API-Key": TEST_API_KEY})
        assert response.status_code == 500
        assert "API_KEY is not configured" in response.json()["detail"]


class TestVerifyApiKey:
    """Direct tests for the dependency."""

    @pytest.mark.parametrize("value,expected", [
        ("true", True),
        ("TRUE", True),
        ("false", False),
        ("1", False),
    ])
    def test_auth_enabled(self, monkeypatch, value, expected):
        monkeypatch.setenv("API_AUTH_ENABLED", value)
        assert auth_enabled() is expected

    async def test_disabled_returns_none(self):
        assert await verify_api_key("anything") is None

    async def test_valid_key_returned(self, auth_on):
        assert await verify_api_key(TEST_API_KEY) == TEST_API_KEY

    async def test_invalid_key_raises(self, auth_on):
        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key("nope")
        assert exc_info.value.status_code == 401

    async def test_missing_key_raises(self, auth_on):
        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(None)
        assert exc_info.value.status_code == 401
