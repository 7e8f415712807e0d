"""
Optional external generation backend.

GenerationBackend is the capability the Creative Generator calls when its
heuristics fall short: produce N extra candidates, or raise BackendError.
GuardedBackend bounds every call with a timeout and opens a circuit after
repeated consecutive failures.
"""

import json
import logging
import re
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, List, Optional

from .errors import BackendError, BackendUnavailableError
from .health import HealthStatus
from .model_provider import ModelProvider
from .models import (
    BranchSuggestion,
    BranchType,
    Explainability,
    GeneratedPrompt,
    GenerationMethod,
    PromptType,
    SimulatorParameters,
)

logger = logging.getLogger("what_if")

LLM_PROMPT_IMPACT = 0.75
LLM_CONFIDENCE = 0.6
LLM_BRANCH_IMPACT = 0.7

_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")

PROMPT_SYSTEM_PROMPT = (
    "You write short, surprising 'What if' prompts for interactive fiction. "
    "Answer with one prompt per line, each starting with 'What if' and ending "
    "with a question mark. No numbering, no commentary."
)

BRANCH_SYSTEM_PROMPT = (
    "You suggest short story continuations for interactive fiction. Answer with "
    "one suggestion per line in the form '<type> | <suggestion>', where <type> is "
    "one of: " + ", ".join(t.value for t in BranchType) + ". No commentary."
)


class GenerationBackend(ABC):
    """Produces extra candidates or raises BackendError."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used in logs and explainability."""

    @abstractmethod
    def generate_prompts(self, parameters: SimulatorParameters, count: int) -> List[GeneratedPrompt]:
        """Return up to `count` prompts."""

    @abstractmethod
    def generate_branches(
        self,
        node_content: str,
        parameters: SimulatorParameters,
        count: int,
    ) -> List[BranchSuggestion]:
        """Return up to `count` branch suggestions."""

    def status(self) -> HealthStatus:
        return HealthStatus.HEALTHY


def _clean_lines(text: str) -> List[str]:
    lines = []
    for line in text.splitlines():
        line = _LIST_MARKER.sub("", line).strip().strip('"').strip()
        if line and "{" not in line and "}" not in line:
            lines.append(line)
    return lines


class ProviderBackend(GenerationBackend):
    """Backend over a text model provider (Ollama or Claude)."""

    def __init__(self, provider: ModelProvider, max_tokens: int = 1000, temperature: float = 0.9):
        self.provider = provider
        self.max_tokens = max_tokens
        self.temperature = temperature

    @property
    def name(self) -> str:
        return f"{self.provider.provider_name}:{self.provider.model_name}"

    def _config(self) -> dict:
        return {"max_tokens": self.max_tokens, "temperature": self.temperature}

    def generate_prompts(self, parameters: SimulatorParameters, count: int) -> List[GeneratedPrompt]:
        user_prompt = (
            f"Write {count} 'What if' prompts for a story with these parameters:\n"
            f"{json.dumps(parameters.to_dict(), ensure_ascii=False, indent=2)}"
        )
        result = self.provider.generate(PROMPT_SYSTEM_PROMPT, user_prompt, self._config())

        prompts = []
        for line in _clean_lines(result.text):
            if not line.lower().startswith("what if"):
                continue
            prompts.append(GeneratedPrompt(
                prompt_text=line,
                prompt_type=PromptType.CREATIVE,
                impact=LLM_PROMPT_IMPACT,
                confidence_score=LLM_CONFIDENCE,
                tags=["llm", parameters.genre or "general"],
                generation_method=GenerationMethod.LLM,
                explainability=Explainability(
                    rule_applied="llm_augmentation",
                    reasoning=f"Generated by external model {self.name}",
                ),
            ))
            if len(prompts) >= count:
                break

        logger.debug(f"[ProviderBackend] Parsed {len(prompts)} prompts from {self.name}")
        return prompts

    def generate_branches(
        self,
        node_content: str,
        parameters: SimulatorParameters,
        count: int,
    ) -> List[BranchSuggestion]:
        user_prompt = (
            f"Suggest {count} ways the story could continue after this passage:\n\n"
            f"{node_content}\n\nStory parameters: "
            f"{json.dumps(parameters.to_dict(), ensure_ascii=False)}"
        )
        result = self.provider.generate(BRANCH_SYSTEM_PROMPT, user_prompt, self._config())

        branches = []
        for line in _clean_lines(result.text):
            raw_type, sep, text = line.partition("|")
            if not sep:
                raw_type, text = "", line
            try:
                branch_type = BranchType(raw_type.strip().lower())
            except ValueError:
                branch_type = BranchType.PLOT_TWIST
            text = text.strip()
            if not text:
                continue
            branches.append(BranchSuggestion(
                branch_text=text,
                branch_type=branch_type,
                impact_score=LLM_BRANCH_IMPACT,
                estimated_outcome_summary="Model-suggested continuation",
                generation_method=GenerationMethod.LLM,
                explainability=Explainability(
                    rule_applied="llm_augmentation",
                    reasoning=f"Generated by external model {self.name}",
                ),
            ))
            if len(branches) >= count:
                break

        return branches


class GuardedBackend(GenerationBackend):
    """
    Timeout and circuit breaker around another backend.

    After `failure_threshold` consecutive failures the circuit opens and
    calls fail fast with BackendUnavailableError for `cooldown_seconds`.
    The first call after the cooldown is let through; success closes the
    circuit, failure reopens it.

    A timed-out call keeps running in its worker thread; its result is
    discarded.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        timeout_seconds: float = 20.0,
        failure_threshold: int = 3,
        cooldown_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.timeout_seconds = timeout_seconds
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="whatif-backend")
        self.consecutive_failures = 0
        self._opened_at: Optional[float] = None

    @property
    def name(self) -> str:
        return self.backend.name

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._remaining_cooldown() > 0

    def _remaining_cooldown(self) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self._opened_at + self.cooldown_seconds - self._clock())

    def status(self) -> HealthStatus:
        with self._lock:
            if self._remaining_cooldown() > 0:
                return HealthStatus.DOWN
            if self.consecutive_failures:
                return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY

    def _call(self, fn: Callable, *args):
        with self._lock:
            remaining = self._remaining_cooldown()
        if remaining > 0:
            raise BackendUnavailableError(remaining)

        future = self._executor.submit(fn, *args)
        try:
            result = future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            self._record_failure()
            raise BackendError(f"{self.name} timed out after {self.timeout_seconds}s")
        except BackendError:
            self._record_failure()
            raise
        except Exception as e:
            self._record_failure()
            raise BackendError(f"{self.name} failed: {e}") from e

        with self._lock:
            self.consecutive_failures = 0
            self._opened_at = None
        return result

    def _record_failure(self) -> None:
        with self._lock:
            self.consecutive_failures += 1
            if self.consecutive_failures >= self.failure_threshold:
                self._opened_at = self._clock()
                logger.warning(
                    f"[GuardedBackend] Circuit opened for {self.name} after "
                    f"{self.consecutive_failures} consecutive failures"
                )

    def generate_prompts(self, parameters: SimulatorParameters, count: int) -> List[GeneratedPrompt]:
        return self._call(self.backend.generate_prompts, parameters, count)

    def generate_branches(
        self,
        node_content: str,
        parameters: SimulatorParameters,
        count: int,
    ) -> List[BranchSuggestion]:
        return self._call(self.backend.generate_branches, node_content, parameters, count)

    def close(self) -> None:
        self._executor.shutdown(wait=False)
