"""Tests for the generation engine and request normalization."""

import random
from unittest.mock import MagicMock

import pytest

from src.simulator.config import SimulatorConfig
from src.simulator.engine import (
    GenerationEngine,
    branch_counts,
    build_engine,
    feedback_for,
    normalize_parameters,
    prompt_counts,
)
from src.simulator.errors import GenerationError, InvalidParametersError
from src.simulator.models import (
    BranchDensity,
    BranchType,
    GenerationMode,
    Perspective,
    PromptType,
    SimulatorParameters,
)
from src.simulator.safety import BannedContentFilter, SafetyFilter


MYSTERY_REQUEST = {
    "character": {"name": "Mara", "traits": ["curious"]},
    "setting": {"place": "a quiet village"},
    "event": "a letter arrives",
    "genre": "mystery",
    "tone": "tense",
    "mode": "logical",
}


def _engine(seed=42, **kwargs):
    config = kwargs.pop("config", SimulatorConfig())
    return build_engine(config, rng=random.Random(seed), **kwargs)


class TestNormalizeParameters:
    """Tests for request normalization."""

    def test_traits_trimmed_lowercased_capped(self):
        params = normalize_parameters({
            "character": {"name": "  Mara ", "traits": [" Brave", "brave", "KIND", "shy", "loud"]},
        })
        assert params.character_name == "Mara"
        assert params.traits == ("brave", "kind", "shy")

    def test_synonyms(self):
        params = normalize_parameters({"genre": "Science Fiction", "tone": "Scary"})
        assert params.genre == "sci-fi"
        assert params.tone == "tense"

    def test_unknown_genre_kept(self):
        assert normalize_parameters({"genre": "Solarpunk"}).genre == "solarpunk"

    def test_defaults(self):
        params = normalize_parameters(None)
        assert params.mode == GenerationMode.BALANCED
        assert params.branch_density == BranchDensity.MEDIUM
        assert params.perspective == Perspective.SINGLE

    def test_enum_strings(self):
        params = normalize_parameters({"mode": "Creative", "branch_density": "high", "perspective": "dual"})
        assert params.mode == GenerationMode.CREATIVE
        assert params.branch_density == BranchDensity.HIGH
        assert params.perspective == Perspective.DUAL

    @pytest.mark.parametrize("field,value", [
        ("mode", "chaotic"),
        ("branch_density", "extreme"),
        ("perspective", "omniscient"),
    ])
    def test_invalid_enum(self, field, value):
        with pytest.raises(InvalidParametersError):
            normalize_parameters({field: value})

    def test_audience_age_range(self):
        assert normalize_parameters({"audience_age": "8-12"}).audience_age == "8-12"
        with pytest.raises(InvalidParametersError):
            normalize_parameters({"audience_age": "150"})

    def test_braces_removed(self):
        params = normalize_parameters({"event": "the {door} opens", "character": {"name": "{Mara}"}})
        assert params.event == "the door opens"
        assert params.character_name == "Mara"

    def test_input_not_mutated(self):
        original = SimulatorParameters.from_dict({"genre": "SF", "mode": "logical"})
        normalize_parameters(original)
        assert original.genre == "SF"
        assert original.mode == "logical"

    def test_empty_setting_dropped(self):
        assert normalize_parameters({"setting": {"era": "  "}}).setting is None


class TestCounts:
    """Tests for count splitting."""

    @pytest.mark.parametrize("mode,total,expected", [
        (GenerationMode.LOGICAL, 5, (5, 0)),
        (GenerationMode.CREATIVE, 5, (0, 5)),
        (GenerationMode.BALANCED, 5, (3, 2)),
        (GenerationMode.BALANCED, 1, (1, 0)),
        (GenerationMode.BALANCED, 4, (3, 1)),
        (GenerationMode.BALANCED, 10, (6, 4)),
    ])
    def test_prompt_counts(self, mode, total, expected):
        assert prompt_counts(mode, total) == expected

    def test_prompt_counts_sum(self):
        for total in range(1, 51):
            logical, creative = prompt_counts(GenerationMode.BALANCED, total)
            assert logical + creative == total
            assert logical >= creative

    @pytest.mark.parametrize("density,expected", [
        (BranchDensity.LOW, (2, 0)),
        (BranchDensity.MEDIUM, (3, 1)),
        (BranchDensity.HIGH, (4, 2)),
    ])
    def test_branch_counts(self, density, expected):
        assert branch_counts(density) == expected


class TestFeedbackFor:
    def test_mapping(self):
        accept = feedback_for("accept")
        edit = feedback_for("edit", 4)
        reject = feedback_for("reject")
        assert accept.accepted and not accept.was_edited
        assert edit.accepted and edit.was_edited and edit.rating == 4
        assert not reject.accepted

    def test_invalid(self):
        with pytest.raises(InvalidParametersError):
            feedback_for("shrug")


class TestGeneratePrompts:
    """End-to-end prompt generation."""

    def test_logical_mystery_request(self):
        prompts = _engine().generate_prompts(MYSTERY_REQUEST, 3)

        assert 1 <= len(prompts) <= 3
        for prompt in prompts:
            assert prompt.prompt_text.startswith("What if")
            assert "{" not in prompt.prompt_text and "}" not in prompt.prompt_text
            assert prompt.prompt_type == PromptType.LOGICAL
            assert not prompt.explainability.is_empty()
            assert 0.0 <= prompt.impact <= 1.0
            assert 0.0 <= prompt.confidence_score <= 1.0

    def test_creative_mode(self):
        request = dict(MYSTERY_REQUEST, mode="creative")
        prompts = _engine().generate_prompts(request, 4)
        assert prompts
        assert all(p.prompt_type != PromptType.LOGICAL for p in prompts)

    def test_empty_request(self):
        prompts = _engine().generate_prompts({}, 5)
        assert len(prompts) <= 5
        assert all("{" not in p.prompt_text for p in prompts)

    def test_default_and_max_count(self):
        config = SimulatorConfig(default_prompt_count=2, max_prompt_count=4)
        engine = _engine(config=config)
        assert len(engine.generate_prompts(MYSTERY_REQUEST)) <= 2
        assert len(engine.generate_prompts(MYSTERY_REQUEST, 40)) <= 4

    def test_invalid_count(self):
        with pytest.raises(InvalidParametersError):
            _engine().generate_prompts(MYSTERY_REQUEST, 0)

    def test_invalid_parameters_not_wrapped(self):
        with pytest.raises(InvalidParametersError):
            _engine().generate_prompts({"mode": "sideways"}, 3)

    def test_same_seed_same_prompts(self):
        first = [p.prompt_text for p in _engine(seed=9).generate_prompts(dict(MYSTERY_REQUEST, mode="balanced"), 5)]
        second = [p.prompt_text for p in _engine(seed=9).generate_prompts(dict(MYSTERY_REQUEST, mode="balanced"), 5)]
        assert first == second

    def test_generator_fault_becomes_generation_error(self):
        engine = _engine()
        engine.logical = MagicMock()
        engine.logical.generate_prompts.side_effect = RuntimeError("catalog corrupted")

        with pytest.raises(GenerationError) as exc_info:
            engine.generate_prompts(MYSTERY_REQUEST, 3)
        assert exc_info.value.operation == "prompts"
        assert isinstance(exc_info.value.cause, RuntimeError)

    def test_banned_content_removed(self):
        request = dict(MYSTERY_REQUEST, constraints={"banned_content": ["letter"]})
        for prompt in _engine().generate_prompts(request, 5):
            assert "letter" not in prompt.prompt_text.lower().split()

    def test_custom_safety_filter(self):
        class DropAll(SafetyFilter):
            def filter_prompts(self, prompts, parameters):
                return []

            def filter_branches(self, branches, parameters):
                return []

        engine = _engine(safety_filter=DropAll())
        assert engine.generate_prompts(MYSTERY_REQUEST, 3) == []
        assert engine.generate_branches("Mara opened the door.", {}) == []

    def test_safety_disabled(self):
        engine = _engine(config=SimulatorConfig(safety_enabled=False), safety_filter=BannedContentFilter(["what"]))
        assert engine.generate_prompts(MYSTERY_REQUEST, 3)


class TestGenerateBranches:
    """End-to-end branch generation."""

    NODE = "Mara opened the letter. Inside was a map of the forest and a name she did not know."

    def test_high_density(self):
        branches = _engine().generate_branches(self.NODE, {"branch_density": "high"})
        assert 1 <= len(branches) <= 6
        for branch in branches:
            assert isinstance(branch.branch_type, BranchType)
            assert branch.branch_text
            assert "{" not in branch.branch_text
            assert 0.0 <= branch.impact_score <= 1.0
            assert not branch.explainability.is_empty()

    def test_low_density_logical_only(self):
        branches = _engine().generate_branches(self.NODE, {"branch_density": "low"})
        assert 1 <= len(branches) <= 2

    def test_count_caps_result(self):
        branches = _engine().generate_branches(self.NODE, {"branch_density": "high"}, count=1)
        assert len(branches) == 1

    def test_empty_node(self):
        branches = _engine().generate_branches("", None)
        assert branches
        assert all("{" not in b.branch_text for b in branches)

    def test_fault_becomes_generation_error(self):
        engine = _engine()
        engine.ranking = MagicMock()
        engine.ranking.rank_branches.side_effect = ValueError("bad matrix")
        with pytest.raises(GenerationError, match="branches"):
            engine.generate_branches(self.NODE)


class TestFeedbackAndHealth:
    """Feedback routing and health reporting."""

    def test_feedback_updates_registry(self):
        engine = _engine()
        template_id = "tpl_character_trait_reversal"
        before = engine.registry.get_template(template_id).effectiveness_score

        assert engine.record_feedback(template_id, "accept", 5)
        after = engine.registry.get_template(template_id)
        assert after.usage_count == 1
        assert after.effectiveness_score > before

    def test_feedback_without_registry(self):
        engine = _engine(config=SimulatorConfig(use_template_registry=False))
        assert engine.registry is None
        assert engine.record_feedback("tpl_anything", "accept") is False

    def test_health_shape(self):
        engine = _engine()
        engine.generate_prompts(MYSTERY_REQUEST, 2)
        health = engine.get_health_status()

        assert health["status"] in ("healthy", "degraded", "down")
        assert set(health["components"]) == {"logical_generator", "creative_generator", "ranking_algorithm"}
        assert health["external_backend"] == {"status": "disabled", "failures": 0}
        assert 0.0 <= health["min_success_rate"] <= 100.0
        assert health["timestamp"].endswith("Z")

    def test_engine_is_a_generation_engine(self):
        engine = _engine()
        assert isinstance(engine, GenerationEngine)
        engine.close()
