"""
Tests for FastAPI endpoints.

Routers are exercised through TestClient with the simulator service
dependency overridden by a seeded, isolated service.
"""

import random
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from src.api.main import app
from src.api.services.simulator_service import SimulatorService, get_simulator_service
from src.registry.template_registry import TemplateRegistry
from src.simulator.config import SimulatorConfig
from src.simulator.engine import build_engine
from src.simulator.errors import GenerationError


@pytest.fixture
def service(tmp_path):
    config = SimulatorConfig(template_state_path=str(tmp_path / "templates.json"))
    registry = TemplateRegistry()
    engine = build_engine(config, rng=random.Random(7), registry=registry)
    return SimulatorService(config=config, engine=engine, registry=registry)


@pytest.fixture
def client(service):
    app.dependency_overrides[get_simulator_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestHealthEndpoint:
    """Tests for the unauthenticated health check."""

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "version" in response.json()


class TestPromptEndpoint:
    """Tests for POST /simulator/prompts."""

    def test_generate_logical_prompts(self, client):
        response = client.post("/simulator/prompts", json={
            "parameters": {
                "character": {"name": "Mara", "traits": ["curious"]},
                "event": "a letter arrives",
                "genre": "mystery",
                "mode": "logical",
            },
            "count": 3,
        })

        assert response.status_code == 200
        data = response.json()
        assert 1 <= data["count"] <= 3
        assert data["count"] == len(data["prompts"])
        for prompt in data["prompts"]:
            assert prompt["prompt_text"].startswith("What if")
            assert prompt["type"] == "logical"
            assert prompt["explainability"]["rule_applied"]

    def test_empty_body_uses_defaults(self, client):
        response = client.post("/simulator/prompts", json={})
        assert response.status_code == 200
        assert response.json()["count"] <= 6

    def test_invalid_mode(self, client):
        response = client.post("/simulator/prompts", json={"parameters": {"mode": "sideways"}})
        assert response.status_code == 400
        assert "mode" in response.json()["detail"]

    def test_count_validation(self, client):
        response = client.post("/simulator/prompts", json={"count": 0})
        assert response.status_code == 422

    def test_generation_error_is_500(self, client, service):
        service.engine = MagicMock()
        service.engine.generate_prompts.side_effect = GenerationError("prompts", RuntimeError("boom"))

        response = client.post("/simulator/prompts", json={"count": 2})
        assert response.status_code == 500
        assert "Failed to generate prompts" in response.json()["detail"]


class TestBranchEndpoint:
    """Tests for POST /simulator/branches."""

    def test_generate_branches(self, client):
        response = client.post("/simulator/branches", json={
            "node_content": "Mara opened the letter. Inside was a map of the forest.",
            "parameters": {"branch_density": "high"},
        })

        assert response.status_code == 200
        data = response.json()
        assert 1 <= data["count"] <= 6
        for branch in data["branches"]:
            assert branch["branch_type"] in (
                "character-driven", "plot-twist", "moral-dilemma",
                "procedural", "escalation", "de-escalation",
            )

    def test_missing_node_content(self, client):
        assert client.post("/simulator/branches", json={}).status_code == 422

    def test_invalid_density(self, client):
        response = client.post("/simulator/branches", json={
            "node_content": "text", "parameters": {"branch_density": "dense"},
        })
        assert response.status_code == 400


class TestFeedbackEndpoint:
    """Tests for POST /simulator/feedback."""

    def test_accept_feedback(self, client, service, tmp_path):
        before = service.registry.get_template("tpl_moral_dilemma").effectiveness_score
        response = client.post("/simulator/feedback", json={
            "template_id": "tpl_moral_dilemma",
            "feedback_type": "accept",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["usage_count"] == 1
        assert data["effectiveness_score"] == pytest.approx(min(1.0, before + 0.1))
        assert (tmp_path / "templates.json").exists()

    def test_unknown_template(self, client):
        response = client.post("/simulator/feedback", json={
            "template_id": "tpl_missing", "feedback_type": "accept",
        })
        assert response.status_code == 404

    def test_invalid_rating(self, client):
        response = client.post("/simulator/feedback", json={
            "template_id": "tpl_moral_dilemma", "feedback_type": "edit", "rating": 9,
        })
        assert response.status_code == 422

    def test_invalid_feedback_type(self, client):
        response = client.post("/simulator/feedback", json={
            "template_id": "tpl_moral_dilemma", "feedback_type": "love",
        })
        assert response.status_code == 422


class TestSimulatorHealth:
    def test_health_snapshot(self, client):
        client.post("/simulator/prompts", json={"count": 2})
        response = client.get("/simulator/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ("healthy", "degraded", "down")
        assert data["external_backend"]["status"] == "disabled"
        assert "logical_generator" in data["components"]


class TestTemplateEndpoints:
    """Tests for the /templates router."""

    def test_list_filtered(self, client):
        response = client.get("/templates", params={"category": "creative"})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == len(data["templates"]) > 0
        assert all(t["category"] == "creative" for t in data["templates"])

    def test_stats(self, client):
        response = client.get("/templates/stats")
        assert response.status_code == 200
        assert response.json()["total_templates"] == 17

    def test_recommendations(self, client):
        response = client.get("/templates/recommendations")
        assert response.status_code == 200
        assert set(response.json()) == {"top_performing", "needs_improvement", "underutilized"}

    def test_add_template(self, client, service):
        response = client.post("/templates", json={
            "name": "Forgotten event",
            "category": "creative",
            "template_text": "What if {character} forgot {event} the moment it happened?",
            "constraints": {"genres": ["mystery"]},
        })
        assert response.status_code == 201
        template_id = response.json()["id"]
        assert service.registry.get_template(template_id).constraints.genres == ("mystery",)

    def test_add_template_validation(self, client):
        response = client.post("/templates", json={"name": "x", "category": "creative"})
        assert response.status_code == 422

    def test_prune(self, client, service):
        service.registry.add_template({
            "id": "tpl_weak", "name": "Weak", "category": "creative",
            "template_text": "What if?", "usage_count": 20, "effectiveness_score": 0.1,
        })
        response = client.post("/templates/prune", json={})
        assert response.status_code == 200
        assert response.json() == {"pruned": 1, "active_templates": 17}
