"""
Candidate scoring, ordering and diversity filtering.

Each candidate is scored on relevance to the request, novelty within its
batch, safety and its own impact, boosted by a small type-based diversity
bonus. Candidates are sorted by final score, then greedily filtered so no two
kept candidates are too similar. Scores are computed alongside the
candidates and never stored on them.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from src.dedup.similarity import (
    BagOfWordsEmbedder,
    cosine_similarity,
    greedy_diversity_filter,
    novelty_scores,
    similarity_matrix,
    tokenize,
)

from .catalogs import RANKING_VOCABULARY, UNSAFE_KEYWORDS
from .health import RANKING_MAX_LATENCY_MS, HealthMetrics, HealthSnapshot
from .models import BranchSuggestion, BranchType, GeneratedPrompt, PromptType, SimulatorParameters

logger = logging.getLogger("what_if")

T = TypeVar("T")

UNSAFE_PENALTY = 0.3
MIN_SAFETY = 0.1
YOUNG_AUDIENCE_FACTOR = 0.5
YOUNG_AUDIENCE_MAX_AGE = 12
MAX_DIVERSITY_BONUS = 0.3
DEFAULT_PROMPT_DIVERSITY = 0.3
DEFAULT_BRANCH_DIVERSITY = 0.4

BRANCH_TYPE_BONUS: Dict[BranchType, float] = {
    BranchType.PLOT_TWIST: 0.15,
    BranchType.MORAL_DILEMMA: 0.12,
    BranchType.CHARACTER_DRIVEN: 0.08,
    BranchType.PROCEDURAL: 0.05,
    BranchType.ESCALATION: 0.10,
    BranchType.DE_ESCALATION: 0.07,
}


@dataclass(frozen=True)
class RankingWeights:
    relevance: float = 0.4
    novelty: float = 0.3
    safety: float = 0.2
    impact: float = 0.1


@dataclass
class RankingMetrics:
    relevance_score: float
    novelty_score: float
    safety_score: float
    impact_score: float
    diversity_bonus: float
    final_score: float


def is_young_audience(audience_age: Optional[str]) -> bool:
    """True for 'child'/'kids' audiences or any stated age of 12 or under."""
    if not audience_age:
        return False
    lowered = audience_age.lower()
    if "child" in lowered or "kid" in lowered:
        return True
    return any(int(n) <= YOUNG_AUDIENCE_MAX_AGE for n in re.findall(r"\d+", lowered))


def parameters_query_text(parameters: SimulatorParameters) -> str:
    """Flatten the request's content fields into one query string."""
    parts: List[str] = []
    if parameters.character:
        parts.append(parameters.character.name or "")
        parts.extend(parameters.character.traits)
    if parameters.setting:
        parts.extend([parameters.setting.era or "", parameters.setting.place or "", parameters.setting.mood or ""])
    parts.extend([parameters.event or "", parameters.genre or "", parameters.tone or ""])
    parts.extend(parameters.theme_keywords)
    return " ".join(p for p in parts if p)


def prompt_diversity_bonus(prompt: GeneratedPrompt, genre: Optional[str]) -> float:
    bonus = 0.0
    if prompt.prompt_type in (PromptType.CREATIVE, PromptType.TWIST):
        bonus += 0.1
    if genre and genre in prompt.tags:
        bonus += 0.05
    if prompt.confidence_score > 0.8:
        bonus += 0.05
    return min(bonus, MAX_DIVERSITY_BONUS)


def branch_diversity_bonus(branch: BranchSuggestion) -> float:
    bonus = BRANCH_TYPE_BONUS.get(branch.branch_type, 0.0)
    if branch.impact_score > 0.8:
        bonus += 0.1
    return min(bonus, MAX_DIVERSITY_BONUS)


def _drop_repeated_texts(order: Sequence[int], candidates: Sequence[T], text_of: Callable[[T], str]) -> List[int]:
    """Keep the first (best) of candidates whose texts match ignoring case and spacing."""
    seen = set()
    unique = []
    for index in order:
        key = " ".join(text_of(candidates[index]).lower().split())
        if key in seen:
            logger.debug(f"[Ranking] Dropped repeated candidate {index}")
            continue
        seen.add(key)
        unique.append(index)
    return unique


class RankingAlgorithm:
    """
    Args:
        vocabulary: embedding vocabulary
        unsafe_keywords: words penalized by the safety score
        weights: final score weights
        branch_diversity_threshold: fixed diversity threshold for branches
    """

    def __init__(
        self,
        vocabulary: Optional[Iterable[str]] = None,
        unsafe_keywords: Optional[Iterable[str]] = None,
        weights: Optional[RankingWeights] = None,
        branch_diversity_threshold: float = DEFAULT_BRANCH_DIVERSITY,
    ):
        self.embedder = BagOfWordsEmbedder(RANKING_VOCABULARY if vocabulary is None else vocabulary)
        self.unsafe_keywords = tuple(k.lower() for k in (UNSAFE_KEYWORDS if unsafe_keywords is None else unsafe_keywords))
        self.weights = weights or RankingWeights()
        self.branch_diversity_threshold = branch_diversity_threshold
        self.metrics = HealthMetrics(RANKING_MAX_LATENCY_MS)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def rank_prompts(
        self,
        prompts: Sequence[GeneratedPrompt],
        parameters: SimulatorParameters,
        diversity_threshold: float = DEFAULT_PROMPT_DIVERSITY,
        relevance_threshold: Optional[float] = None,
    ) -> List[GeneratedPrompt]:
        """
        Score, sort and diversity-filter prompts.

        relevance_threshold is reported in the debug log only; low-relevance
        candidates are ranked down, not removed.
        """
        ranked = self._timed(lambda: self._rank(
            prompts,
            parameters_query_text(parameters),
            parameters,
            lambda p: p.prompt_text,
            lambda p: p.impact,
            lambda p: prompt_diversity_bonus(p, parameters.genre),
            diversity_threshold,
        ))
        if relevance_threshold is not None:
            below = sum(1 for _, m in ranked if m.relevance_score < relevance_threshold)
            logger.debug(f"[Ranking] {below}/{len(ranked)} kept prompts below relevance {relevance_threshold}")
        return [p for p, _ in ranked]

    def rank_branches(
        self,
        branches: Sequence[BranchSuggestion],
        node_content: str,
        parameters: SimulatorParameters,
    ) -> List[BranchSuggestion]:
        """Score, sort and diversity-filter branches against the node text."""
        ranked = self._timed(lambda: self._rank(
            branches,
            node_content,
            parameters,
            lambda b: b.branch_text,
            lambda b: b.impact_score,
            branch_diversity_bonus,
            self.branch_diversity_threshold,
        ))
        return [b for b, _ in ranked]

    def safety_score(self, text: str, parameters: SimulatorParameters) -> float:
        tokens = tokenize(text)
        lowered = text.lower()
        hits = sum(1 for keyword in self.unsafe_keywords if keyword in tokens)
        hits += sum(1 for term in parameters.banned_content if term and term.lower() in lowered)
        if not hits:
            return 1.0

        factor = YOUNG_AUDIENCE_FACTOR if is_young_audience(parameters.audience_age) else 1.0
        return max(MIN_SAFETY, (1.0 - UNSAFE_PENALTY * hits) * factor)

    def get_health_status(self) -> HealthSnapshot:
        return self.metrics.snapshot()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _timed(self, fn: Callable[[], T]) -> T:
        start = time.perf_counter()
        try:
            result = fn()
        except Exception:
            self.metrics.record_failure((time.perf_counter() - start) * 1000.0)
            raise
        self.metrics.record_success((time.perf_counter() - start) * 1000.0)
        return result

    def _score(self, candidates, query_text, parameters, text_of, impact_of, bonus_of):
        embeddings = self.embedder.embed_many([text_of(c) for c in candidates])
        query = self.embedder.embed(query_text)
        matrix = similarity_matrix(embeddings)
        novelty = novelty_scores(matrix)

        scored = []
        for i, candidate in enumerate(candidates):
            relevance = max(0.0, min(1.0, cosine_similarity(embeddings[i], query)))
            impact = max(0.0, min(1.0, impact_of(candidate)))
            bonus = bonus_of(candidate)
            safety = self.safety_score(text_of(candidate), parameters)
            weighted = (
                relevance * self.weights.relevance
                + float(novelty[i]) * self.weights.novelty
                + safety * self.weights.safety
                + impact * self.weights.impact
            )
            scored.append((candidate, RankingMetrics(
                relevance_score=relevance,
                novelty_score=float(novelty[i]),
                safety_score=safety,
                impact_score=impact,
                diversity_bonus=bonus,
                final_score=min(1.0, weighted * (1.0 + bonus)),
            )))
        return scored, matrix

    def _rank(self, candidates, query_text, parameters, text_of, impact_of, bonus_of, threshold):
        if not candidates:
            return []

        scored, matrix = self._score(candidates, query_text, parameters, text_of, impact_of, bonus_of)
        order = sorted(range(len(scored)), key=lambda i: scored[i][1].final_score, reverse=True)
        kept = greedy_diversity_filter(_drop_repeated_texts(order, candidates, text_of), matrix, threshold)

        logger.debug(f"[Ranking] Kept {len(kept)}/{len(candidates)} candidates at diversity {threshold}")
        return [scored[i] for i in kept]
