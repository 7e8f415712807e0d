"""
Safety filter hook applied between generation and ranking.

PassThroughSafetyFilter is the default hook point; a deployment can plug in
its own moderation by implementing SafetyFilter. BannedContentFilter drops
candidates that mention any term from the request's banned-content list.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Iterable, List, Sequence

from .models import BranchSuggestion, GeneratedPrompt, SimulatorParameters

logger = logging.getLogger("what_if")


class SafetyFilter(ABC):
    """Removes unacceptable candidates. Must not modify the ones it keeps."""

    @abstractmethod
    def filter_prompts(
        self,
        prompts: Sequence[GeneratedPrompt],
        parameters: SimulatorParameters,
    ) -> List[GeneratedPrompt]:
        pass

    @abstractmethod
    def filter_branches(
        self,
        branches: Sequence[BranchSuggestion],
        parameters: SimulatorParameters,
    ) -> List[BranchSuggestion]:
        pass


class PassThroughSafetyFilter(SafetyFilter):
    def filter_prompts(self, prompts, parameters):
        return list(prompts)

    def filter_branches(self, branches, parameters):
        return list(branches)


class BannedContentFilter(SafetyFilter):
    """
    Drops candidates containing a banned term as a whole word or phrase.

    Args:
        extra_terms: terms banned for every request, on top of the
            request's own constraints.banned_content
    """

    def __init__(self, extra_terms: Iterable[str] = ()):
        self.extra_terms = tuple(t.strip().lower() for t in extra_terms if t and t.strip())

    def _patterns(self, parameters: SimulatorParameters) -> List[re.Pattern]:
        terms = set(self.extra_terms)
        terms.update(t.strip().lower() for t in parameters.banned_content if t and t.strip())
        return [re.compile(r"\b" + re.escape(t) + r"\b", re.IGNORECASE) for t in sorted(terms)]

    def _allowed(self, text: str, patterns: List[re.Pattern]) -> bool:
        for pattern in patterns:
            if pattern.search(text):
                logger.debug(f"[BannedContentFilter] Dropped candidate matching '{pattern.pattern}'")
                return False
        return True

    def filter_prompts(self, prompts, parameters):
        patterns = self._patterns(parameters)
        return [p for p in prompts if self._allowed(p.prompt_text, patterns)]

    def filter_branches(self, branches, parameters):
        patterns = self._patterns(parameters)
        return [b for b in branches if self._allowed(b.branch_text, patterns)]
