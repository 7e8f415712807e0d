"""
Heuristic "surprise" generation.

Prompt techniques, cycled in order:
- concept_blending: two concepts from different concept groups
- anti_template: a genre-specific expectation violation
- character_conflict: a character trait set against the event
- associative_chain: a seed word expanded through the association table

Techniques that do not apply to a request (no matching genre, no traits,
nothing to seed from) are skipped. Remaining slots are filled from creative
registry templates, then from the external backend if one is configured.
Backend failures are counted and yield no candidates.
"""

import logging
import random
import re
import time
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .catalogs import (
    ANTI_TEMPLATES,
    CHARACTER_CONFLICT_TEMPLATES,
    CONCEPT_BLEND_TEMPLATES,
    CONCEPT_GROUPS,
    CREATIVE_BRANCH_TECHNIQUES,
    DEFAULT_ASSOCIATIONS,
    STOP_WORDS,
    WORD_ASSOCIATIONS,
)
from .health import (
    CREATIVE_MAX_LATENCY_MS,
    HealthMetrics,
    HealthSnapshot,
    HealthStatus,
    aggregate_status,
    classify,
)
from .models import (
    BranchSuggestion,
    BranchType,
    Explainability,
    GeneratedPrompt,
    GenerationMethod,
    PromptType,
    SimulatorParameters,
)
from .slot_filler import SlotFiller, has_unresolved_slots, render_template

logger = logging.getLogger("what_if")

CREATIVE_CONFIDENCE = 0.6

TEMPLATE_PROMPT_TYPES: Dict[str, PromptType] = {
    "creative": PromptType.CREATIVE,
    "character-driven": PromptType.CHARACTER,
    "thematic": PromptType.THEMATIC,
}


class CreativeGenerator:
    """
    Args:
        slot_filler: fills registry template slots
        rng: random source for every pick and impact draw
        registry: optional TemplateRegistry used after the heuristics
        backend: optional GenerationBackend used last, when still short
    """

    def __init__(
        self,
        slot_filler: SlotFiller,
        rng: Optional[random.Random] = None,
        concept_groups: Optional[Mapping[str, List[str]]] = None,
        blend_templates: Optional[Sequence[str]] = None,
        anti_templates: Optional[Sequence[Mapping[str, object]]] = None,
        conflict_templates: Optional[Sequence[str]] = None,
        associations: Optional[Mapping[str, List[str]]] = None,
        default_associations: Optional[Sequence[str]] = None,
        branch_techniques: Optional[Sequence[Tuple[str, str, BranchType, float]]] = None,
        registry=None,
        backend=None,
    ):
        self.slot_filler = slot_filler
        self.rng = rng or random.Random()
        self.concept_groups = CONCEPT_GROUPS if concept_groups is None else concept_groups
        self.blend_templates = tuple(CONCEPT_BLEND_TEMPLATES if blend_templates is None else blend_templates)
        self.anti_templates = tuple(ANTI_TEMPLATES if anti_templates is None else anti_templates)
        self.conflict_templates = tuple(CHARACTER_CONFLICT_TEMPLATES if conflict_templates is None else conflict_templates)
        self.associations = WORD_ASSOCIATIONS if associations is None else associations
        self.default_associations = list(DEFAULT_ASSOCIATIONS if default_associations is None else default_associations)
        self.branch_techniques = tuple(CREATIVE_BRANCH_TECHNIQUES if branch_techniques is None else branch_techniques)
        self.registry = registry
        self.backend = backend

        self.metrics = HealthMetrics(CREATIVE_MAX_LATENCY_MS)
        self.llm_metrics = HealthMetrics(CREATIVE_MAX_LATENCY_MS)

        self._prompt_techniques: List[Tuple[str, Callable[[SimulatorParameters], Optional[GeneratedPrompt]]]] = [
            ("concept_blending", self._concept_blending),
            ("anti_template", self._anti_template),
            ("character_conflict", self._character_conflict),
            ("associative_chain", self._associative_chain),
        ]

    @property
    def external_request_failures(self) -> int:
        return self.llm_metrics.error_count

    # -------------------------------------------------------------------------
    # Prompts
    # -------------------------------------------------------------------------

    def generate_prompts(self, parameters: SimulatorParameters, count: int) -> List[GeneratedPrompt]:
        """Return up to `count` creative prompts."""
        start = time.perf_counter()
        try:
            prompts = self._generate_prompts(parameters, count)
        except Exception:
            self.metrics.record_failure(_elapsed_ms(start))
            raise
        self.metrics.record_success(_elapsed_ms(start))
        logger.debug(f"[CreativeGenerator] Generated {len(prompts)}/{count} prompts")
        return prompts

    def _generate_prompts(self, parameters: SimulatorParameters, count: int) -> List[GeneratedPrompt]:
        if count <= 0:
            return []

        prompts: List[GeneratedPrompt] = []
        for i in range(count):
            name, technique = self._prompt_techniques[i % len(self._prompt_techniques)]
            prompt = technique(parameters)
            if prompt is None:
                logger.debug(f"[CreativeGenerator] {name} not applicable, skipped")
                continue
            prompts.append(prompt)

        if len(prompts) < count and self.registry is not None:
            prompts.extend(self._template_prompts(parameters, count - len(prompts)))

        if len(prompts) < count and self.backend is not None:
            prompts.extend(self._augment_prompts(parameters, count - len(prompts)))

        return prompts[:count]

    def _prompt(
        self,
        text: str,
        technique: str,
        impact: float,
        tags: List[str],
        template_id: Optional[str] = None,
    ) -> GeneratedPrompt:
        return GeneratedPrompt(
            prompt_text=text,
            prompt_type=PromptType.CREATIVE,
            impact=min(max(impact, 0.0), 1.0),
            confidence_score=CREATIVE_CONFIDENCE,
            tags=tags,
            generation_method=GenerationMethod.RULE_BASED,
            explainability=Explainability(
                rule_applied=technique,
                template_id=template_id,
                reasoning=f"Generated using {technique} creative technique",
            ),
        )

    def _concept_blending(self, parameters: SimulatorParameters) -> Optional[GeneratedPrompt]:
        groups = [g for g, concepts in self.concept_groups.items() if concepts]
        if len(groups) < 2 or not self.blend_templates:
            return None

        first_group, second_group = self.rng.sample(groups, 2)
        concept1 = self.rng.choice(self.concept_groups[first_group])
        concept2 = self.rng.choice(self.concept_groups[second_group])
        template = self.rng.choice(self.blend_templates)
        text = template.format(
            event=parameters.event or "something unexpected happens",
            character=parameters.character_name or "the protagonist",
            concept1=concept1,
            concept2=concept2,
        )
        return self._prompt(
            text, "concept_blending", self.rng.uniform(0.7, 1.0),
            ["concept-blend", concept1, concept2],
        )

    def _anti_template(self, parameters: SimulatorParameters) -> Optional[GeneratedPrompt]:
        if not parameters.genre:
            return None
        matches = [a for a in self.anti_templates if a.get("genre") == parameters.genre]
        if not matches:
            return None

        anti = self.rng.choice(matches)
        event = parameters.event or "the main conflict"
        text = f"What if {event} took an unexpected turn where {anti['violation_pattern']}?"
        return self._prompt(
            text, "anti_template", float(anti.get("surprise_factor", 0.8)),
            ["anti-template", parameters.genre],
            template_id=str(anti.get("id")) if anti.get("id") else None,
        )

    def _character_conflict(self, parameters: SimulatorParameters) -> Optional[GeneratedPrompt]:
        if not parameters.traits or not self.conflict_templates:
            return None

        template = self.rng.choice(self.conflict_templates)
        text = template.format(
            character=parameters.character_name or "the protagonist",
            trait=self.rng.choice(parameters.traits),
            event=parameters.event or "they faced a difficult decision",
        )
        return self._prompt(
            text, "character_conflict", self.rng.uniform(0.8, 1.0),
            ["character-conflict", "psychological"],
        )

    def _association_seeds(self, parameters: SimulatorParameters) -> List[str]:
        seeds: List[str] = []
        if parameters.event:
            words = [w for w in re.findall(r"[a-z']+", parameters.event.lower())
                     if len(w) > 3 and w not in STOP_WORDS]
            if words:
                seeds.append(words[0])
        for value in (parameters.character_name, parameters.place, parameters.genre):
            if value:
                seeds.append(value)
        seeds.extend(parameters.theme_keywords)
        return seeds

    def _associative_chain(self, parameters: SimulatorParameters) -> Optional[GeneratedPrompt]:
        seeds = self._association_seeds(parameters)
        if not seeds:
            return None

        seed = self.rng.choice(seeds)
        associations = list(self.associations.get(seed.lower()) or self.default_associations)
        if len(associations) < 2:
            return None

        first, second = self.rng.sample(associations, 2)
        text = f"What if {seed} led to {first}, which in turn revealed {second}?"
        return self._prompt(
            text, "associative_chain", self.rng.uniform(0.5, 0.9),
            ["associative", "surreal"],
        )

    def _template_prompts(self, parameters: SimulatorParameters, needed: int) -> List[GeneratedPrompt]:
        from src.registry.template_registry import TemplateFilter

        templates = []
        for category in TEMPLATE_PROMPT_TYPES:
            templates.extend(self.registry.find_templates(TemplateFilter(
                category=category,
                genre=parameters.genre,
                tone=parameters.tone,
                is_active=True,
            )))
        templates = [
            t for t in templates
            if all(parameters.has_field(f) for f in t.constraints.required_fields)
        ]

        prompts: List[GeneratedPrompt] = []
        for template in self._weighted_order(templates):
            if len(prompts) >= needed:
                break
            slots = self.slot_filler.resolve_slots(template.template_text, parameters)
            if slots is None:
                continue
            values = {s.slot_name: s.filled_value for s in slots}
            text = render_template(template.template_text, values)
            if has_unresolved_slots(text):
                continue
            prompts.append(GeneratedPrompt(
                prompt_text=text,
                prompt_type=TEMPLATE_PROMPT_TYPES[template.category],
                impact=template.effectiveness_score,
                confidence_score=CREATIVE_CONFIDENCE,
                tags=["template", template.category],
                template_used=template.id,
                generation_method=GenerationMethod.RULE_BASED,
                explainability=Explainability(
                    rule_applied=template.name,
                    template_id=template.id,
                    reasoning=f"Filled registry template {template.name}",
                    filled_slots=values,
                ),
            ))
        return prompts

    def _weighted_order(self, templates: list) -> list:
        """Order templates by repeated effectiveness-weighted draws without replacement."""
        pool = [t for t in templates if t.effectiveness_score > 0]
        ordered = []
        while pool:
            pick = self.rng.choices(range(len(pool)), weights=[t.effectiveness_score for t in pool], k=1)[0]
            ordered.append(pool.pop(pick))
        return ordered

    def _augment_prompts(self, parameters: SimulatorParameters, needed: int) -> List[GeneratedPrompt]:
        start = time.perf_counter()
        try:
            prompts = self.backend.generate_prompts(parameters, needed)
        except Exception as e:
            self.llm_metrics.record_failure(_elapsed_ms(start))
            logger.warning(f"[CreativeGenerator] External backend failed, continuing without it: {e}")
            return []
        self.llm_metrics.record_success(_elapsed_ms(start))
        return [p for p in prompts if not has_unresolved_slots(p.prompt_text)][:needed]

    # -------------------------------------------------------------------------
    # Branches
    # -------------------------------------------------------------------------

    def generate_branches(
        self,
        node_content: str,
        parameters: SimulatorParameters,
        count: int,
    ) -> List[BranchSuggestion]:
        """Return up to `count` creative branch suggestions."""
        start = time.perf_counter()
        try:
            branches = self._generate_branches(node_content, parameters, count)
        except Exception:
            self.metrics.record_failure(_elapsed_ms(start))
            raise
        self.metrics.record_success(_elapsed_ms(start))
        return branches

    def _generate_branches(
        self,
        node_content: str,
        parameters: SimulatorParameters,
        count: int,
    ) -> List[BranchSuggestion]:
        if count <= 0:
            return []

        branches: List[BranchSuggestion] = []
        if self.branch_techniques:
            for i in range(count):
                technique, text, branch_type, impact = self.branch_techniques[i % len(self.branch_techniques)]
                readable = technique.replace("_", " ")
                branches.append(BranchSuggestion(
                    branch_text=text,
                    branch_type=branch_type,
                    impact_score=impact,
                    estimated_outcome_summary=f"This path leads to {readable} scenarios",
                    generation_method=GenerationMethod.RULE_BASED,
                    explainability=Explainability(
                        rule_applied=technique,
                        reasoning=f"Generated using {technique} creative technique",
                    ),
                ))

        if len(branches) < count and self.backend is not None:
            start = time.perf_counter()
            try:
                extra = self.backend.generate_branches(node_content, parameters, count - len(branches))
            except Exception as e:
                self.llm_metrics.record_failure(_elapsed_ms(start))
                logger.warning(f"[CreativeGenerator] External backend failed, continuing without it: {e}")
                extra = []
            else:
                self.llm_metrics.record_success(_elapsed_ms(start))
            branches.extend(extra[:count - len(branches)])

        return branches

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    def backend_status(self) -> HealthStatus:
        """External backend status, or DISABLED when none is configured."""
        if self.backend is None:
            return HealthStatus.DISABLED

        statuses = [self.backend.status()]
        if self.llm_metrics.total_requests:
            # latency is bounded by the backend timeout, so only the success rate counts here
            statuses.append(classify(self.llm_metrics.success_rate, 0.0, CREATIVE_MAX_LATENCY_MS))
        return aggregate_status(statuses)

    def get_health_status(self) -> HealthSnapshot:
        return self.metrics.snapshot()


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0
