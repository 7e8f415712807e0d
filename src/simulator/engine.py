"""
Generation orchestrator.

Each call is stateless: normalize the request, split the candidate count
between the logical and creative generators, run both concurrently, apply
the safety filter, rank, and truncate. Any unexpected fault in generation or
ranking surfaces as GenerationError; there is no substitute content.
"""

import logging
import random
import re
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from src.registry.template_registry import TemplateFeedback, TemplateRegistry

from .backend import GenerationBackend, GuardedBackend, ProviderBackend
from .catalogs import GENRE_SYNONYMS, MAX_TRAITS, TONE_SYNONYMS
from .config import SimulatorConfig
from .creative_generator import CreativeGenerator
from .errors import GenerationError, InvalidParametersError, SimulatorError
from .health import aggregate_status
from .logical_generator import LogicalGenerator
from .model_provider import get_provider
from .models import (
    BranchDensity,
    BranchSuggestion,
    Character,
    FeedbackType,
    GeneratedPrompt,
    GenerationMode,
    Perspective,
    Setting,
    SimulatorParameters,
    now_iso,
)
from .ranking import RankingAlgorithm
from .safety import BannedContentFilter, PassThroughSafetyFilter, SafetyFilter
from .slot_filler import SlotFiller

logger = logging.getLogger("what_if")

BRANCH_COUNTS: Dict[BranchDensity, int] = {
    BranchDensity.LOW: 2,
    BranchDensity.MEDIUM: 4,
    BranchDensity.HIGH: 6,
}

MAX_AUDIENCE_AGE = 120

ParametersInput = Union[SimulatorParameters, Mapping[str, Any], None]


# =============================================================================
# Normalization
# =============================================================================

def _sanitize(text: Optional[str]) -> Optional[str]:
    """Trim and drop brace characters so user text cannot look like a slot."""
    if text is None:
        return None
    cleaned = re.sub(r"\s+", " ", text.replace("{", "").replace("}", "")).strip()
    return cleaned or None


def _normalize_list(values, limit: Optional[int] = None) -> Tuple[str, ...]:
    result: List[str] = []
    for value in values:
        value = _sanitize(str(value).lower())
        if value and value not in result:
            result.append(value)
    return tuple(result[:limit] if limit else result)


def _parse_enum(enum_cls, value, default, field_name: str):
    if value is None or value == "":
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise InvalidParametersError(f"Invalid {field_name} '{value}' (expected one of: {allowed})")


def normalize_parameters(
    parameters: ParametersInput,
    genre_synonyms: Optional[Mapping[str, str]] = None,
    tone_synonyms: Optional[Mapping[str, str]] = None,
) -> SimulatorParameters:
    """
    Return a new normalized copy of the request parameters.

    Traits and keywords are trimmed and lowercased (at most three traits),
    genre and tone go through the synonym maps, and mode, branch density and
    perspective become enums with defaults balanced, medium and single.

    Raises:
        InvalidParametersError: unknown mode/density/perspective, or an
            audience age outside 0..120
    """
    if parameters is None or isinstance(parameters, Mapping):
        parameters = SimulatorParameters.from_dict(dict(parameters or {}))
    elif not isinstance(parameters, SimulatorParameters):
        raise InvalidParametersError(f"parameters must be an object, got {type(parameters).__name__}")
    genre_synonyms = GENRE_SYNONYMS if genre_synonyms is None else genre_synonyms
    tone_synonyms = TONE_SYNONYMS if tone_synonyms is None else tone_synonyms

    character = None
    if parameters.character:
        character = Character(
            name=_sanitize(parameters.character.name),
            traits=_normalize_list(parameters.character.traits, MAX_TRAITS),
        )
        if not character.name and not character.traits:
            character = None

    setting = None
    if parameters.setting:
        setting = Setting(
            era=_sanitize(parameters.setting.era),
            place=_sanitize(parameters.setting.place),
            mood=_sanitize(parameters.setting.mood),
        )
        if setting.is_empty():
            setting = None

    genre = _sanitize(parameters.genre.lower()) if parameters.genre else None
    if genre:
        genre = genre_synonyms.get(genre, genre)
    tone = _sanitize(parameters.tone.lower()) if parameters.tone else None
    if tone:
        tone = tone_synonyms.get(tone, tone)

    audience_age = _sanitize(parameters.audience_age)
    if audience_age:
        ages = [int(n) for n in re.findall(r"\d+", audience_age)]
        if any(age > MAX_AUDIENCE_AGE for age in ages):
            raise InvalidParametersError(f"Audience age out of range: {audience_age}")

    return replace(
        parameters,
        character=character,
        setting=setting,
        event=_sanitize(parameters.event),
        genre=genre,
        tone=tone,
        mode=_parse_enum(GenerationMode, parameters.mode, GenerationMode.BALANCED, "mode"),
        branch_density=_parse_enum(BranchDensity, parameters.branch_density, BranchDensity.MEDIUM, "branch_density"),
        perspective=_parse_enum(Perspective, parameters.perspective, Perspective.SINGLE, "perspective"),
        theme_keywords=_normalize_list(parameters.theme_keywords),
        audience_age=audience_age,
    )


def _ceil_three_fifths(total: int) -> int:
    # ceil(0.6 * total) in integer arithmetic
    return -(-3 * total // 5)


def prompt_counts(mode: GenerationMode, total: int) -> Tuple[int, int]:
    """(logical, creative) counts: all/none, none/all, or 60/40 rounded up/down."""
    if mode == GenerationMode.LOGICAL:
        return total, 0
    if mode == GenerationMode.CREATIVE:
        return 0, total
    logical = _ceil_three_fifths(total)
    return logical, total - logical


def branch_counts(density: BranchDensity) -> Tuple[int, int]:
    """(logical, creative) branch counts for a density, 60/40 with ceil for logical."""
    total = BRANCH_COUNTS[density]
    logical = _ceil_three_fifths(total)
    return logical, total - logical


def feedback_for(feedback_type: Union[FeedbackType, str], rating: Optional[int] = None) -> TemplateFeedback:
    """accept and edit count as accepted; edit also marks the candidate as edited."""
    feedback_type = _parse_enum(FeedbackType, feedback_type, None, "feedback type")
    if feedback_type is None:
        raise InvalidParametersError("Feedback type is required")
    return TemplateFeedback(
        accepted=feedback_type in (FeedbackType.ACCEPT, FeedbackType.EDIT),
        was_edited=feedback_type == FeedbackType.EDIT,
        rating=rating,
    )


# =============================================================================
# Engine
# =============================================================================

class GenerationEngine:
    """
    Args:
        config: engine settings
        logical: rule-based generator
        creative: heuristic generator
        ranking: scorer and diversity filter
        safety_filter: custom moderation hook; when None, requests with banned
            content use BannedContentFilter and the rest pass through
        registry: template registry that receives feedback
    """

    def __init__(
        self,
        config: SimulatorConfig,
        logical: LogicalGenerator,
        creative: CreativeGenerator,
        ranking: RankingAlgorithm,
        safety_filter: Optional[SafetyFilter] = None,
        registry: Optional[TemplateRegistry] = None,
    ):
        self.config = config
        self.logical = logical
        self.creative = creative
        self.ranking = ranking
        self.safety_filter = safety_filter
        self.registry = registry

    def _safety_filter_for(self, parameters: SimulatorParameters) -> SafetyFilter:
        if not self.config.safety_enabled:
            return PassThroughSafetyFilter()
        if self.safety_filter is not None:
            return self.safety_filter
        if parameters.banned_content:
            return BannedContentFilter()
        return PassThroughSafetyFilter()

    def _resolve_count(self, count: Optional[int], default: int, maximum: int) -> int:
        if count is None:
            return default
        if count < 1:
            raise InvalidParametersError(f"count must be at least 1, got {count}")
        return min(count, maximum)

    def generate_prompts(self, parameters: ParametersInput, count: Optional[int] = None) -> List[GeneratedPrompt]:
        """
        Produce at most `count` ranked prompts.

        Raises:
            InvalidParametersError: the request cannot be normalized
            GenerationError: a generator or the ranking pass failed
        """
        count = self._resolve_count(count, self.config.default_prompt_count, self.config.max_prompt_count)
        normalized = normalize_parameters(parameters)
        logical_n, creative_n = prompt_counts(normalized.mode, count)
        start = time.perf_counter()

        try:
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="whatif-gen") as pool:
                logical_future = pool.submit(self.logical.generate_prompts, normalized, logical_n)
                creative_future = pool.submit(self.creative.generate_prompts, normalized, creative_n)
                candidates = logical_future.result() + creative_future.result()

            candidates = self._safety_filter_for(normalized).filter_prompts(candidates, normalized)
            ranked = self.ranking.rank_prompts(
                candidates,
                normalized,
                diversity_threshold=self.config.diversity_threshold,
                relevance_threshold=self.config.relevance_threshold,
            )
        except SimulatorError as e:
            if isinstance(e, GenerationError):
                raise
            raise GenerationError("prompts", e) from e
        except Exception as e:
            logger.error(f"[Engine] Prompt generation failed: {e}")
            raise GenerationError("prompts", e) from e

        result = ranked[:count]
        logger.info(
            f"[Engine] Returned {len(result)}/{count} prompts "
            f"(mode={normalized.mode.value}, logical={logical_n}, creative={creative_n}, "
            f"candidates={len(candidates)}, {(time.perf_counter() - start) * 1000:.1f}ms)"
        )
        return result

    def generate_branches(
        self,
        node_content: str,
        parameters: ParametersInput = None,
        count: Optional[int] = None,
    ) -> List[BranchSuggestion]:
        """
        Produce ranked branch suggestions for a story node.

        The number requested from the generators follows branch density
        (low 2, medium 4, high 6); `count` only caps the returned list.
        """
        normalized = normalize_parameters(parameters)
        logical_n, creative_n = branch_counts(normalized.branch_density)
        limit = self._resolve_count(count, self.config.max_branch_count, self.config.max_branch_count)
        node_content = node_content or ""
        start = time.perf_counter()

        try:
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="whatif-gen") as pool:
                logical_future = pool.submit(self.logical.generate_branches, node_content, normalized, logical_n)
                creative_future = pool.submit(self.creative.generate_branches, node_content, normalized, creative_n)
                candidates = logical_future.result() + creative_future.result()

            candidates = self._safety_filter_for(normalized).filter_branches(candidates, normalized)
            ranked = self.ranking.rank_branches(candidates, node_content, normalized)
        except SimulatorError as e:
            if isinstance(e, GenerationError):
                raise
            raise GenerationError("branches", e) from e
        except Exception as e:
            logger.error(f"[Engine] Branch generation failed: {e}")
            raise GenerationError("branches", e) from e

        result = ranked[:limit]
        logger.info(
            f"[Engine] Returned {len(result)} branches "
            f"(density={normalized.branch_density.value}, logical={logical_n}, creative={creative_n}, "
            f"{(time.perf_counter() - start) * 1000:.1f}ms)"
        )
        return result

    def record_feedback(
        self,
        template_id: str,
        feedback_type: Union[FeedbackType, str],
        rating: Optional[int] = None,
    ) -> bool:
        """Route user feedback to the template registry. False if there is none or the id is unknown."""
        if self.registry is None:
            logger.debug("[Engine] Feedback ignored, no template registry configured")
            return False
        return self.registry.update_effectiveness(template_id, feedback_for(feedback_type, rating))

    def get_health_status(self) -> Dict[str, Any]:
        """Advisory health snapshot; never blocks generation."""
        components = {
            "logical_generator": self.logical.get_health_status(),
            "creative_generator": self.creative.get_health_status(),
            "ranking_algorithm": self.ranking.get_health_status(),
        }
        overall = aggregate_status(s.status for s in components.values())

        return {
            "status": overall.value,
            "components": {name: s.to_dict() for name, s in components.items()},
            "external_backend": {
                "status": self.creative.backend_status().value,
                "failures": self.creative.external_request_failures,
            },
            "average_response_time_ms": round(
                sum(s.average_response_time_ms for s in components.values()) / len(components), 2
            ),
            "min_success_rate": round(min(s.success_rate for s in components.values()), 2),
            "timestamp": now_iso(),
        }

    def close(self) -> None:
        backend = self.creative.backend
        if isinstance(backend, GuardedBackend):
            backend.close()


def build_engine(
    config: Optional[SimulatorConfig] = None,
    rng: Optional[random.Random] = None,
    backend: Optional[GenerationBackend] = None,
    registry: Optional[TemplateRegistry] = None,
    safety_filter: Optional[SafetyFilter] = None,
) -> GenerationEngine:
    """
    Wire a complete engine.

    Each generator gets its own random source derived from `rng` (or from
    config.random_seed), so concurrent generation stays reproducible.
    A backend is created from config when llm_enabled and none is given;
    any backend is wrapped in GuardedBackend.
    """
    config = config or SimulatorConfig()
    rng = rng or random.Random(config.random_seed)

    if registry is None and config.use_template_registry:
        registry = TemplateRegistry()

    if backend is None and config.llm_enabled:
        backend = ProviderBackend(get_provider(config.llm_model), max_tokens=config.llm_max_tokens)
    if backend is not None and not isinstance(backend, GuardedBackend):
        backend = GuardedBackend(
            backend,
            timeout_seconds=config.llm_timeout_seconds,
            failure_threshold=config.llm_failure_threshold,
            cooldown_seconds=config.llm_cooldown_seconds,
        )

    logical_rng = random.Random(rng.random())
    creative_rng = random.Random(rng.random())

    logical = LogicalGenerator(
        SlotFiller(rng=random.Random(logical_rng.random())),
        rng=logical_rng,
        registry=registry,
    )
    creative = CreativeGenerator(
        SlotFiller(rng=random.Random(creative_rng.random())),
        rng=creative_rng,
        registry=registry,
        backend=backend,
    )

    logger.debug(
        f"[Engine] Built engine (registry={'on' if registry is not None else 'off'}, "
        f"backend={backend.name if backend is not None else 'disabled'})"
    )
    return GenerationEngine(
        config=config,
        logical=logical,
        creative=creative,
        ranking=RankingAlgorithm(),
        safety_filter=safety_filter,
        registry=registry,
    )
