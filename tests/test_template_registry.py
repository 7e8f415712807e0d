"""Tests for the template registry."""

import json
import math
import threading

import pytest

from src.registry.template_registry import (
    Template,
    TemplateFeedback,
    TemplateFilter,
    TemplateRegistry,
    feedback_delta,
    learning_rate,
)
from src.simulator.catalogs import DEFAULT_TEMPLATES
from src.simulator.errors import (
    InvalidFeedbackError,
    InvalidParametersError,
    TemplateNotFoundError,
)


def _template(template_id, category="logical", **extra):
    data = {
        "id": template_id,
        "name": template_id.replace("_", " "),
        "category": category,
        "template_text": "What if {character} waited?",
        "parameters": {"required": ["character"], "optional": []},
    }
    data.update(extra)
    return data


@pytest.fixture
def registry():
    return TemplateRegistry()


class TestLearningRate:
    """Tests for the decaying learning rate."""

    def test_first_use_is_full_rate(self):
        assert learning_rate(0) == 1.0
        assert learning_rate(1) == 1.0

    def test_decays_with_usage(self):
        assert learning_rate(4) == pytest.approx(0.5)
        assert learning_rate(100) == pytest.approx(0.1)

    def test_floor(self):
        assert learning_rate(1_000_000) == pytest.approx(0.01)

    def test_feedback_delta(self):
        assert feedback_delta(TemplateFeedback(accepted=True)) == pytest.approx(0.1)
        assert feedback_delta(TemplateFeedback(accepted=False)) == pytest.approx(-0.05)
        assert feedback_delta(TemplateFeedback(accepted=True, was_edited=True)) == pytest.approx(0.08)
        assert feedback_delta(TemplateFeedback(accepted=True, rating=5)) == pytest.approx(0.16)
        assert feedback_delta(TemplateFeedback(accepted=False, rating=1)) == pytest.approx(-0.11)


class TestRegistryLookup:
    """Tests for lookup and filtering."""

    def test_defaults_loaded(self, registry):
        assert len(registry) == len(DEFAULT_TEMPLATES)
        for data in DEFAULT_TEMPLATES:
            assert registry.get_template(data["id"]) is not None

    def test_empty_registry(self):
        assert len(TemplateRegistry(templates=[])) == 0

    def test_get_returns_copy(self, registry):
        template_id = DEFAULT_TEMPLATES[0]["id"]
        copy = registry.get_template(template_id)
        copy.effectiveness_score = 0.0
        assert registry.get_template(template_id).effectiveness_score != 0.0

    def test_unknown_template(self, registry):
        assert registry.get_template("tpl_missing") is None
        with pytest.raises(TemplateNotFoundError):
            registry.require_template("tpl_missing")

    def test_by_category(self, registry):
        creative = registry.get_templates_by_category("creative")
        assert creative
        assert all(t.category == "creative" for t in creative)

    def test_filter_is_logical_and(self):
        registry = TemplateRegistry(templates=[
            _template("a", constraints={"genres": ["mystery"]}, effectiveness_score=0.4),
            _template("b", constraints={"genres": ["fantasy"]}, effectiveness_score=0.9),
            _template("c", category="creative", effectiveness_score=0.9),
            _template("d", effectiveness_score=0.9),
        ])
        found = registry.find_templates(TemplateFilter(category="logical", genre="mystery"))
        assert [t.id for t in found] == ["d", "a"]

        found = registry.find_templates(
            TemplateFilter(category="logical", genre="mystery", min_effectiveness=0.5)
        )
        assert [t.id for t in found] == ["d"]

    def test_sorted_by_effectiveness(self, registry):
        scores = [t.effectiveness_score for t in registry.find_templates()]
        assert scores == sorted(scores, reverse=True)


class TestAddTemplate:
    """Tests for adding templates."""

    def test_generated_id(self, registry):
        template = registry.add_template({
            "name": "New", "category": "thematic", "template_text": "What if {theme} faded?",
        })
        assert template.id.startswith("tpl_")
        assert template.effectiveness_score == 0.5
        assert template.usage_count == 0
        assert template.is_active
        assert registry.get_template(template.id) is not None

    @pytest.mark.parametrize("missing", ["name", "category", "template_text"])
    def test_required_keys(self, registry, missing):
        data = _template("x")
        del data[missing]
        with pytest.raises(InvalidParametersError):
            registry.add_template(data)

    def test_effectiveness_range(self, registry):
        with pytest.raises(InvalidParametersError):
            registry.add_template(_template("x", effectiveness_score=1.5))

    def test_existing_id_rejected(self, registry):
        for _ in range(5):
            registry.update_effectiveness("tpl_moral_dilemma", TemplateFeedback(accepted=True))
        before = registry.get_template("tpl_moral_dilemma")

        with pytest.raises(InvalidParametersError):
            registry.add_template(_template("tpl_moral_dilemma", category="creative"))

        after = registry.get_template("tpl_moral_dilemma")
        assert after.usage_count == before.usage_count == 5
        assert after.effectiveness_score == before.effectiveness_score
        assert after.category == "character-driven"

    def test_to_dict_shape(self, registry):
        data = registry.add_template(_template("x")).to_dict()
        assert data["parameters"] == {"required": ["character"], "optional": []}
        assert data["constraints"] == {}
        assert isinstance(data["created_at"], str)


class TestUpdateEffectiveness:
    """Tests for feedback-driven learning."""

    def test_first_accept(self):
        registry = TemplateRegistry(templates=[_template("t")])
        assert registry.update_effectiveness("t", TemplateFeedback(accepted=True))

        template = registry.get_template("t")
        assert template.usage_count == 1
        assert template.effectiveness_score == pytest.approx(0.6)

    def test_heavily_used_template_moves_slowly(self):
        registry = TemplateRegistry(templates=[_template("t", usage_count=100)])
        registry.update_effectiveness("t", TemplateFeedback(accepted=True))

        template = registry.get_template("t")
        assert template.usage_count == 101
        assert template.effectiveness_score == pytest.approx(0.5 + 0.1 / math.sqrt(101))

    def test_clamped(self):
        registry = TemplateRegistry(templates=[
            _template("high", effectiveness_score=0.98),
            _template("low", effectiveness_score=0.02),
        ])
        registry.update_effectiveness("high", TemplateFeedback(accepted=True, rating=5))
        registry.update_effectiveness("low", TemplateFeedback(accepted=False, rating=1))
        assert registry.get_template("high").effectiveness_score == 1.0
        assert registry.get_template("low").effectiveness_score == 0.0

    def test_unknown_template_returns_false(self, registry):
        assert registry.update_effectiveness("tpl_missing", TemplateFeedback(accepted=True)) is False

    @pytest.mark.parametrize("rating", [0, 6])
    def test_invalid_rating(self, rating):
        registry = TemplateRegistry(templates=[_template("t")])
        with pytest.raises(InvalidFeedbackError):
            registry.update_effectiveness("t", TemplateFeedback(accepted=True, rating=rating))
        assert registry.get_template("t").usage_count == 0

    def test_concurrent_updates_count_every_event(self):
        registry = TemplateRegistry(templates=[_template("t")])

        def worker():
            for _ in range(50):
                registry.update_effectiveness("t", TemplateFeedback(accepted=True))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        template = registry.get_template("t")
        assert template.usage_count == 200
        assert 0.0 <= template.effectiveness_score <= 1.0


class TestPrune:
    """Tests for deactivation of weak templates."""

    def test_prune(self):
        registry = TemplateRegistry(templates=[
            _template("weak", usage_count=12, effectiveness_score=0.2),
            _template("new", usage_count=2, effectiveness_score=0.1),
            _template("good", usage_count=30, effectiveness_score=0.7),
        ])
        assert registry.prune_ineffective_templates() == 1

        assert registry.get_template("weak").is_active is False
        assert registry.get_template("weak") is not None
        assert registry.get_template("new").is_active
        assert registry.get_template("good").is_active

        # already inactive templates are not counted again
        assert registry.prune_ineffective_templates() == 0


class TestReporting:
    """Tests for stats and recommendations."""

    def test_stats(self):
        registry = TemplateRegistry(templates=[
            _template("a", effectiveness_score=0.2),
            _template("b", category="creative", effectiveness_score=0.8, is_active=False),
        ])
        stats = registry.get_stats()
        assert stats["total_templates"] == 2
        assert stats["active_templates"] == 1
        assert stats["category_counts"] == {"logical": 1, "creative": 1}
        assert stats["average_effectiveness"] == pytest.approx(0.5)
        assert stats["top_performers"][0]["id"] == "b"

    def test_recommendations(self):
        registry = TemplateRegistry(templates=[
            _template("top", usage_count=8, effectiveness_score=0.9),
            _template("poor", usage_count=4, effectiveness_score=0.4),
            _template("fresh", usage_count=1, effectiveness_score=0.75),
            _template("retired", usage_count=8, effectiveness_score=0.95, is_active=False),
        ])
        groups = registry.get_recommendations()
        assert [t.id for t in groups["top_performing"]] == ["top"]
        assert [t.id for t in groups["needs_improvement"]] == ["poor"]
        assert [t.id for t in groups["underutilized"]] == ["fresh"]
        assert all(isinstance(t, Template) for ts in groups.values() for t in ts)


class TestPersistence:
    """Tests for saving and loading learned state."""

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "state" / "templates.json"
        registry = TemplateRegistry(templates=[_template("t"), _template("u")])
        registry.update_effectiveness("t", TemplateFeedback(accepted=True))
        registry.save_state(path)

        with open(path, encoding="utf-8") as f:
            state = json.load(f)
        assert state["version"] == 1
        assert state["templates"]["t"]["usage_count"] == 1

        restored = TemplateRegistry(templates=[_template("t"), _template("v")])
        assert restored.load_state(path) == 1
        assert restored.get_template("t").effectiveness_score == pytest.approx(0.6)
        assert restored.get_template("v").usage_count == 0

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            TemplateRegistry().load_state(tmp_path / "missing.json")
