"""
Rule-based what-if generation.

Prompts: filter the rule catalog by the request's genre and fields, pick a
category uniformly, then a rule within it by weight, then fill the rule's
template. Unfillable rules are dropped, not retried.

Branches: extract keywords from the node text and cycle through five fixed
branching techniques.
"""

import logging
import random
import re
import time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .catalogs import (
    ACTION_WORDS,
    LOCATION_WORDS,
    LOGICAL_BRANCH_TECHNIQUES,
    LOGICAL_RULES,
    STOP_WORDS,
)
from .health import LOGICAL_MAX_LATENCY_MS, HealthMetrics, HealthSnapshot
from .models import (
    BranchSuggestion,
    BranchType,
    Explainability,
    ExtractedContent,
    GeneratedPrompt,
    GenerationMethod,
    LogicalRule,
    PromptType,
    RuleConstraints,
    SimulatorParameters,
)
from .slot_filler import SlotFiller, has_unresolved_slots, render_template

logger = logging.getLogger("what_if")

TEMPLATE_CATEGORY = "template"
RULE_CONFIDENCE = 0.8
MAX_ENTITIES = 10
_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_WORD = re.compile(r"[A-Za-z][A-Za-z'-]*")


def extract_content(
    text: str,
    action_words: Iterable[str] = ACTION_WORDS,
    stop_words: Iterable[str] = STOP_WORDS,
    location_words: Iterable[str] = LOCATION_WORDS,
) -> ExtractedContent:
    """
    Pull a coarse keyword summary out of node text.

    Characters are capitalized words that do not start a sentence. This is
    keyword matching only, not language understanding.
    """
    action_words = set(action_words)
    stop_words = set(stop_words)
    location_words = set(location_words)
    extracted = ExtractedContent()

    for sentence in _SENTENCE_SPLIT.split(text or ""):
        for position, token in enumerate(_WORD.findall(sentence)):
            word = token.lower()
            if word in action_words:
                if word not in extracted.actions:
                    extracted.actions.append(word)
                continue
            if word in location_words:
                location = f"the {word}"
                if location not in extracted.locations:
                    extracted.locations.append(location)
            if position > 0 and token[0].isupper() and word not in stop_words:
                if token not in extracted.characters:
                    extracted.characters.append(token)
            if len(word) > 3 and word not in stop_words and word not in extracted.entities:
                extracted.entities.append(word)

    extracted.entities = extracted.entities[:MAX_ENTITIES]
    return extracted


def rule_applies(constraints: RuleConstraints, parameters: SimulatorParameters) -> bool:
    """A rule applies unless the request contradicts its genre/tone or lacks a required field."""
    if constraints.genres and parameters.genre and parameters.genre not in constraints.genres:
        return False
    if constraints.tones and parameters.tone and parameters.tone not in constraints.tones:
        return False
    return all(parameters.has_field(name) for name in constraints.required_fields)


class LogicalGenerator:
    """
    Deterministic-given-seed rule generator.

    Args:
        slot_filler: resolves rule template slots
        rng: random source for category/rule/impact draws
        rules: rule catalog; defaults to LOGICAL_RULES
        branch_techniques: (name, template, branch type) triples
        registry: optional TemplateRegistry; active logical templates join
            the draw as one extra category
    """

    def __init__(
        self,
        slot_filler: SlotFiller,
        rng: Optional[random.Random] = None,
        rules: Optional[Sequence[LogicalRule]] = None,
        branch_techniques: Optional[Sequence[Tuple[str, str, BranchType]]] = None,
        registry=None,
    ):
        self.slot_filler = slot_filler
        self.rng = rng or random.Random()
        self.rules = tuple(LOGICAL_RULES if rules is None else rules)
        self.branch_techniques = tuple(LOGICAL_BRANCH_TECHNIQUES if branch_techniques is None else branch_techniques)
        self.registry = registry
        self.metrics = HealthMetrics(LOGICAL_MAX_LATENCY_MS)

    # -------------------------------------------------------------------------
    # Prompts
    # -------------------------------------------------------------------------

    def generate_prompts(self, parameters: SimulatorParameters, count: int) -> List[GeneratedPrompt]:
        """Return up to `count` rule-based prompts. Never more, possibly fewer."""
        start = time.perf_counter()
        try:
            prompts = self._generate_prompts(parameters, count)
        except Exception:
            self.metrics.record_failure(_elapsed_ms(start))
            raise
        self.metrics.record_success(_elapsed_ms(start))
        logger.debug(f"[LogicalGenerator] Generated {len(prompts)}/{count} prompts")
        return prompts

    def _generate_prompts(self, parameters: SimulatorParameters, count: int) -> List[GeneratedPrompt]:
        if count <= 0:
            return []

        groups = self.group_rules(self.applicable_rules(parameters))
        if not groups:
            logger.debug("[LogicalGenerator] No applicable rules for parameters")
            return []

        categories = list(groups)
        populated = len(parameters.populated_fields())
        prompts: List[GeneratedPrompt] = []

        for _ in range(count):
            category = self.rng.choice(categories)
            rule = self.select_rule(groups[category])
            prompt = self._build_prompt(rule, parameters, populated)
            if prompt is None:
                logger.debug(f"[LogicalGenerator] Dropped candidate from rule {rule.id}")
                continue
            prompts.append(prompt)

        return prompts

    def applicable_rules(self, parameters: SimulatorParameters) -> List[LogicalRule]:
        rules = [r for r in self.rules if rule_applies(r.constraints, parameters)]
        rules.extend(self._registry_rules(parameters))
        return rules

    def _registry_rules(self, parameters: SimulatorParameters) -> List[LogicalRule]:
        if self.registry is None:
            return []
        from src.registry.template_registry import TemplateFilter

        templates = self.registry.find_templates(TemplateFilter(
            category="logical",
            genre=parameters.genre,
            tone=parameters.tone,
            is_active=True,
        ))
        rules = []
        for t in templates:
            constraints = RuleConstraints(
                genres=t.constraints.genres,
                tones=t.constraints.tones,
                required_fields=t.constraints.required_fields,
            )
            if not rule_applies(constraints, parameters) or t.effectiveness_score <= 0:
                continue
            rules.append(LogicalRule(
                id=t.id,
                name=t.name,
                category=TEMPLATE_CATEGORY,
                template=t.template_text,
                parameters=tuple(t.required_parameters),
                weight=t.effectiveness_score,
                constraints=constraints,
            ))
        return rules

    @staticmethod
    def group_rules(rules: Iterable[LogicalRule]) -> Dict[str, List[LogicalRule]]:
        groups: Dict[str, List[LogicalRule]] = {}
        for rule in rules:
            groups.setdefault(rule.category, []).append(rule)
        return groups

    def select_rule(self, rules: Sequence[LogicalRule]) -> LogicalRule:
        """Cumulative-weight draw; falls back to the first rule if the draw runs off the end."""
        total = sum(r.weight for r in rules)
        draw = self.rng.random() * total
        for rule in rules:
            draw -= rule.weight
            if draw <= 0:
                return rule
        return rules[0]

    def _build_prompt(
        self,
        rule: LogicalRule,
        parameters: SimulatorParameters,
        populated: int,
    ) -> Optional[GeneratedPrompt]:
        from_template = rule.category == TEMPLATE_CATEGORY
        slots = self.slot_filler.resolve_slots(
            rule.template, parameters, None if from_template else rule.category
        )
        if slots is None:
            return None

        text = render_template(rule.template, {s.slot_name: s.filled_value for s in slots})
        if has_unresolved_slots(text):
            return None

        impact = min(rule.weight + min(populated * 0.05, 0.2), 1.0)
        return GeneratedPrompt(
            prompt_text=text,
            prompt_type=rule.prompt_type,
            impact=impact,
            confidence_score=RULE_CONFIDENCE,
            tags=[rule.category, parameters.genre or "general"],
            template_used=rule.id if from_template else None,
            generation_method=GenerationMethod.RULE_BASED,
            explainability=Explainability(
                rule_applied=rule.name,
                template_id=rule.id,
                reasoning=f"Applied {rule.name} transformation to input parameters",
                filled_slots={s.slot_name: s.filled_value for s in slots},
            ),
        )

    # -------------------------------------------------------------------------
    # Branches
    # -------------------------------------------------------------------------

    def generate_branches(
        self,
        node_content: str,
        parameters: SimulatorParameters,
        count: int,
    ) -> List[BranchSuggestion]:
        """Return `count` branch suggestions cycling the fixed techniques."""
        start = time.perf_counter()
        try:
            branches = self._generate_branches(node_content, parameters, count)
        except Exception:
            self.metrics.record_failure(_elapsed_ms(start))
            raise
        self.metrics.record_success(_elapsed_ms(start))
        logger.debug(f"[LogicalGenerator] Generated {len(branches)}/{count} branches")
        return branches

    def _generate_branches(
        self,
        node_content: str,
        parameters: SimulatorParameters,
        count: int,
    ) -> List[BranchSuggestion]:
        if count <= 0 or not self.branch_techniques:
            return []

        extracted = extract_content(node_content)
        branches: List[BranchSuggestion] = []

        for i in range(count):
            technique, template, branch_type = self.branch_techniques[i % len(self.branch_techniques)]
            text = self.slot_filler.fill_branch_slots(template, extracted, parameters, technique)
            readable = technique.replace("_", " ")
            branches.append(BranchSuggestion(
                branch_text=text,
                branch_type=branch_type,
                impact_score=self.rng.uniform(0.6, 1.0),
                estimated_outcome_summary=f"Following this path would lead to {readable} scenarios",
                generation_method=GenerationMethod.RULE_BASED,
                explainability=Explainability(
                    rule_applied=technique,
                    reasoning=f"Applied {readable} technique to the current node",
                    entities_used=extracted.entities[:3],
                ),
            ))

        return branches

    def get_health_status(self) -> HealthSnapshot:
        return self.metrics.snapshot()


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0
