"""Tests for the external generation backend wrappers."""

import threading
from unittest.mock import MagicMock

import pytest

from src.simulator.backend import GenerationBackend, GuardedBackend, ProviderBackend
from src.simulator.errors import BackendError, BackendUnavailableError
from src.simulator.health import HealthStatus
from src.simulator.model_provider import GenerationResult
from src.simulator.models import BranchType, GenerationMethod, PromptType, SimulatorParameters


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class ScriptedBackend(GenerationBackend):
    """Fails while `failing` is set, otherwise returns an empty list."""

    def __init__(self):
        self.failing = True
        self.calls = 0

    @property
    def name(self):
        return "scripted"

    def generate_prompts(self, parameters, count):
        self.calls += 1
        if self.failing:
            raise RuntimeError("boom")
        return []

    def generate_branches(self, node_content, parameters, count):
        return self.generate_prompts(parameters, count)


class BlockingBackend(ScriptedBackend):
    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def generate_prompts(self, parameters, count):
        self.release.wait(5)
        return []


def _provider(text):
    provider = MagicMock()
    provider.provider_name = "ollama"
    provider.model_name = "llama3"
    provider.generate.return_value = GenerationResult(text=text, usage=None, provider="ollama", model="llama3")
    return provider


class TestProviderBackend:
    """Tests for parsing model output into candidates."""

    def test_prompt_lines(self):
        text = "\n".join([
            "1. What if the river ran uphill?",
            "- What if the mayor was a ghost?",
            "Here are some ideas:",
            "What if {placeholder} broke?",
            "what if nobody remembered the festival?",
        ])
        backend = ProviderBackend(_provider(text))
        prompts = backend.generate_prompts(SimulatorParameters(genre="fantasy"), 5)

        assert [p.prompt_text for p in prompts] == [
            "What if the river ran uphill?",
            "What if the mayor was a ghost?",
            "what if nobody remembered the festival?",
        ]
        for prompt in prompts:
            assert prompt.generation_method == GenerationMethod.LLM
            assert prompt.prompt_type == PromptType.CREATIVE
            assert prompt.tags == ["llm", "fantasy"]
            assert prompt.explainability.rule_applied == "llm_augmentation"

    def test_prompt_count_limit(self):
        text = "\n".join(f"What if idea {i} happened?" for i in range(6))
        backend = ProviderBackend(_provider(text))
        assert len(backend.generate_prompts(SimulatorParameters(), 2)) == 2

    def test_branch_lines(self):
        text = "\n".join([
            "escalation | Mara confronts the mayor",
            "nonsense-type | The bridge collapses",
            "The lights go out",
            "procedural |",
        ])
        backend = ProviderBackend(_provider(text))
        branches = backend.generate_branches("node", SimulatorParameters(), 5)

        assert [(b.branch_type, b.branch_text) for b in branches] == [
            (BranchType.ESCALATION, "Mara confronts the mayor"),
            (BranchType.PLOT_TWIST, "The bridge collapses"),
            (BranchType.PLOT_TWIST, "The lights go out"),
        ]

    def test_name(self):
        assert ProviderBackend(_provider("")).name == "ollama:llama3"

    def test_provider_config_passed(self):
        provider = _provider("")
        ProviderBackend(provider, max_tokens=300, temperature=0.4).generate_prompts(SimulatorParameters(), 1)
        assert provider.generate.call_args[0][2] == {"max_tokens": 300, "temperature": 0.4}


class TestGuardedBackend:
    """Tests for the timeout and circuit breaker."""

    def test_errors_wrapped(self):
        guarded = GuardedBackend(ScriptedBackend(), failure_threshold=5)
        with pytest.raises(BackendError, match="boom"):
            guarded.generate_prompts(SimulatorParameters(), 1)
        assert guarded.status() == HealthStatus.DEGRADED
        guarded.close()

    def test_circuit_opens_and_recovers(self):
        clock = FakeClock()
        inner = ScriptedBackend()
        guarded = GuardedBackend(inner, failure_threshold=2, cooldown_seconds=30, clock=clock)
        params = SimulatorParameters()

        for _ in range(2):
            with pytest.raises(BackendError):
                guarded.generate_prompts(params, 1)
        assert guarded.is_open
        assert guarded.status() == HealthStatus.DOWN

        with pytest.raises(BackendUnavailableError) as exc_info:
            guarded.generate_prompts(params, 1)
        assert exc_info.value.retry_after == pytest.approx(30)
        assert inner.calls == 2

        clock.now += 31
        inner.failing = False
        assert guarded.generate_prompts(params, 1) == []
        assert not guarded.is_open
        assert guarded.consecutive_failures == 0
        assert guarded.status() == HealthStatus.HEALTHY
        guarded.close()

    def test_failure_after_cooldown_reopens(self):
        clock = FakeClock()
        guarded = GuardedBackend(ScriptedBackend(), failure_threshold=1, cooldown_seconds=10, clock=clock)
        params = SimulatorParameters()

        with pytest.raises(BackendError):
            guarded.generate_prompts(params, 1)
        clock.now += 11
        with pytest.raises(BackendError):
            guarded.generate_prompts(params, 1)
        assert guarded.is_open
        guarded.close()

    def test_timeout(self):
        inner = BlockingBackend()
        guarded = GuardedBackend(inner, timeout_seconds=0.05, failure_threshold=3)
        try:
            with pytest.raises(BackendError, match="timed out"):
                guarded.generate_prompts(SimulatorParameters(), 1)
            assert guarded.consecutive_failures == 1
        finally:
            inner.release.set()
            guarded.close()

    def test_name_delegates(self):
        guarded = GuardedBackend(ScriptedBackend())
        assert guarded.name == "scripted"
        guarded.close()
