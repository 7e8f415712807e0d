"""Tests for simulator configuration."""

import pytest

from src.simulator.config import SimulatorConfig
from src.simulator.errors import ConfigurationError


class TestSimulatorConfig:
    """Tests for defaults and validation."""

    def test_defaults(self):
        config = SimulatorConfig()
        assert config.default_prompt_count == 6
        assert config.max_prompt_count == 12
        assert config.max_branch_count == 8
        assert config.safety_enabled is True
        assert config.diversity_threshold == 0.3
        assert config.llm_enabled is False
        assert config.use_template_registry is True
        assert config.random_seed is None

    @pytest.mark.parametrize("kwargs", [
        {"default_prompt_count": 0},
        {"max_branch_count": -1},
        {"diversity_threshold": 1.5},
        {"relevance_threshold": -0.1},
        {"default_prompt_count": 20, "max_prompt_count": 10},
        {"max_branch_count": 0},
        {"llm_timeout_seconds": 0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigurationError):
            SimulatorConfig(**kwargs)

    def test_branch_count_follows_density_not_a_default(self):
        assert "default_branch_count" not in SimulatorConfig().to_dict()
        with pytest.raises(TypeError):
            SimulatorConfig(default_branch_count=4)

    def test_to_dict(self):
        data = SimulatorConfig(random_seed=7).to_dict()
        assert data["random_seed"] == 7
        assert data["llm_model"] is None


class TestFromEnv:
    """Tests for WHATIF_* environment parsing."""

    def test_reads_values(self):
        config = SimulatorConfig.from_env({
            "WHATIF_DEFAULT_PROMPT_COUNT": "3",
            "WHATIF_DIVERSITY_THRESHOLD": "0.5",
            "WHATIF_LLM_ENABLED": "yes",
            "WHATIF_LLM_MODEL": "ollama:llama3",
            "WHATIF_SAFETY_ENABLED": "off",
            "WHATIF_RANDOM_SEED": "99",
            "WHATIF_TEMPLATE_STATE_PATH": "data/templates.json",
        })
        assert config.default_prompt_count == 3
        assert config.diversity_threshold == 0.5
        assert config.llm_enabled is True
        assert config.llm_model == "ollama:llama3"
        assert config.safety_enabled is False
        assert config.random_seed == 99
        assert config.template_state_path == "data/templates.json"

    def test_blank_values_ignored(self):
        assert SimulatorConfig.from_env({"WHATIF_MAX_PROMPT_COUNT": "  "}).max_prompt_count == 12

    def test_overrides_win(self):
        config = SimulatorConfig.from_env({"WHATIF_DEFAULT_PROMPT_COUNT": "3"}, default_prompt_count=5)
        assert config.default_prompt_count == 5

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("WHATIF_MAX_BRANCH_COUNT", "10")
        assert SimulatorConfig.from_env().max_branch_count == 10

    @pytest.mark.parametrize("env", [
        {"WHATIF_LLM_ENABLED": "maybe"},
        {"WHATIF_MAX_PROMPT_COUNT": "many"},
        {"WHATIF_DIVERSITY_THRESHOLD": "high"},
        {"WHATIF_DEFAULT_PROMPT_COUNT": "50"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ConfigurationError):
            SimulatorConfig.from_env(env)
