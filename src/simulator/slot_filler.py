"""
Template slot resolution.

Templates carry {slot} placeholders. Prompt templates are filled through
priority-ordered filler rules with a generic last-resort table; a slot that
nothing can fill invalidates the whole template. Branch templates are filled
from node-content keywords and never fail.
"""

import logging
import random
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from .catalogs import (
    BRANCH_FALLBACKS,
    BRANCH_SLOT_VALUES,
    CONCEPT_GROUPS,
    CONSEQUENCE_CATEGORIES,
    GENERIC_SLOT_VALUES,
    OPPOSITE_VALUES,
    TECHNIQUE_SLOT_VALUES,
)
from .models import ExtractedContent, FilledSlot, SimulatorParameters

logger = logging.getLogger("what_if")

SLOT_PATTERN = re.compile(r"\{([^{}]+)\}")

GENERAL_CATEGORY = "general"
GENERIC_CONFIDENCE = 0.3
DEFAULT_BRANCH_TEXT = "something significant"


@dataclass(frozen=True)
class FillerRule:
    """Produces candidate values for one slot name."""

    slot_name: str
    category: str
    priority: int
    filler: Callable[[SimulatorParameters], List[str]]


def extract_slots(template: str) -> List[str]:
    """Return distinct placeholder names in order of first appearance."""
    seen: List[str] = []
    for name in SLOT_PATTERN.findall(template):
        if name not in seen:
            seen.append(name)
    return seen


def render_template(template: str, values: Mapping[str, str]) -> str:
    """Replace every occurrence of each placeholder that has a value."""
    return SLOT_PATTERN.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def has_unresolved_slots(text: str) -> bool:
    return bool(SLOT_PATTERN.search(text))


def _opposites_of(text: Optional[str], opposites: Mapping[str, List[str]]) -> List[str]:
    if not text:
        return []
    words = re.findall(r"\w+", text.lower())
    found: List[str] = []
    for word in words:
        for value in opposites.get(word, []):
            if value not in found:
                found.append(value)
    return found


def default_filler_rules(
    opposites: Optional[Mapping[str, List[str]]] = None,
    consequences: Optional[Mapping[str, List[str]]] = None,
) -> List[FillerRule]:
    """
    Build the standard filler rule set.

    Values the caller supplied (character name, event, place, traits) are
    returned alone so they always win over canned alternatives.
    """
    opposites = OPPOSITE_VALUES if opposites is None else opposites
    consequences = CONSEQUENCE_CATEGORIES if consequences is None else consequences

    def character(p: SimulatorParameters) -> List[str]:
        return [p.character_name] if p.character_name else ["the protagonist", "the main character", "our hero"]

    def alternative_agent(p: SimulatorParameters) -> List[str]:
        values = ["a stranger", "an enemy", "a friend", "a mentor", "a rival"]
        if p.character_name:
            values += [f"someone like {p.character_name}", f"the opposite of {p.character_name}"]
        return values

    def event(p: SimulatorParameters) -> List[str]:
        return [p.event] if p.event else [
            "something unexpected happened", "the situation changed", "a crisis occurred",
        ]

    def original_setting(p: SimulatorParameters) -> List[str]:
        return [p.place] if p.place else ["here", "this place", "the current location"]

    def alternative_setting(p: SimulatorParameters) -> List[str]:
        return ["a different world", "the past", "the future", "a parallel dimension"] + _opposites_of(p.place, opposites)

    def opposite_setting(p: SimulatorParameters) -> List[str]:
        return _opposites_of(p.place, opposites) or [
            "somewhere completely different", "a place they had never seen",
        ]

    def trait(p: SimulatorParameters) -> List[str]:
        return list(p.traits) if p.traits else ["brave", "cautious", "curious", "stubborn", "kind"]

    def unexpected_consequence(p: SimulatorParameters) -> List[str]:
        return list(consequences.get("general", [])) + list(consequences.get(p.genre or "", []))

    def scientific_consequence(p: SimulatorParameters) -> List[str]:
        values = list(consequences.get("scientific", []))
        if p.genre == "sci-fi":
            values += consequences.get("sci-fi", [])
        return values

    def social_consequence(p: SimulatorParameters) -> List[str]:
        return list(consequences.get("social", []))

    def genre(p: SimulatorParameters) -> List[str]:
        return [p.genre] if p.genre else []

    def theme(p: SimulatorParameters) -> List[str]:
        return list(p.theme_keywords) if p.theme_keywords else [
            "courage", "friendship", "ambition", "home", "belonging",
        ]

    def mystery_element(p: SimulatorParameters) -> List[str]:
        values = ["the missing key", "the locked room", "the anonymous letter", "the stranger's alibi"]
        return values + ([p.event] if p.event else [])

    def fixed(*values: str) -> Callable[[SimulatorParameters], List[str]]:
        return lambda p: list(values)

    def concepts(group_a: str, group_b: str) -> Callable[[SimulatorParameters], List[str]]:
        return lambda p: list(CONCEPT_GROUPS.get(group_a, [])[:4]) + list(CONCEPT_GROUPS.get(group_b, [])[:4])

    return [
        # Characters and agents
        FillerRule("character", GENERAL_CATEGORY, 10, character),
        FillerRule("original_agent", "slot_permutation", 9, character),
        FillerRule("alternative_agent", "slot_permutation", 8, alternative_agent),
        FillerRule("character1", GENERAL_CATEGORY, 8, character),
        FillerRule("character2", GENERAL_CATEGORY, 8, fixed(
            "their oldest rival", "a stranger from the past", "the villain", "their mentor")),
        FillerRule("relationship", "character_driven", 8, fixed(
            "related", "secretly bound", "destined to replace", "the same person as")),
        FillerRule("unexpected_narrator", "creative", 7, fixed(
            "the villain", "a ghost", "the family dog", "the house itself",
            "a future version of the protagonist")),
        # Events and actions
        FillerRule("event", GENERAL_CATEGORY, 10, event),
        FillerRule("action", GENERAL_CATEGORY, 8, fixed(
            "speaking up", "keeping a secret", "breaking the rules", "asking for help", "running away")),
        # Settings
        FillerRule("original_setting", "slot_permutation", 9, original_setting),
        FillerRule("alternative_setting", "slot_permutation", 8, alternative_setting),
        FillerRule("opposite_setting", GENERAL_CATEGORY, 8, opposite_setting),
        # Character traits and roles
        FillerRule("trait", "character_conflict", 10, trait),
        FillerRule("opposite_role", "role_reversal", 7, fixed(
            "villain", "victim", "hero", "mentor", "trickster", "guardian", "rebel")),
        FillerRule("leadership_action", "role_reversal", 7, fixed(
            "lead the others", "give the orders", "make the final call",
            "take responsibility for everyone")),
        FillerRule("current_action", "role_reversal", 7, fixed(
            "following orders", "waiting for help", "staying out of it", "keeping quiet")),
        # Consequences
        FillerRule("unexpected_consequence", "causal_branch", 8, unexpected_consequence),
        FillerRule("scientific_consequence", "causal_branch", 9, scientific_consequence),
        FillerRule("social_consequence", "causal_branch", 9, social_consequence),
        FillerRule("unexpected_result", GENERAL_CATEGORY, 6, fixed(
            "no one could have predicted", "changed the rules of the world",
            "turned enemies into allies", "rewrote history")),
        # Time
        FillerRule("time_shift", "temporal_displacement", 7, fixed(
            "much earlier", "much later", "in a different era", "at the wrong time",
            "when least expected")),
        FillerRule("earlier_timing", "temporal_displacement", 8, fixed(
            "long before anyone was ready", "a day too early", "years before it was supposed to",
            "before the story began")),
        FillerRule("different_era", "temporal_displacement", 8, fixed(
            "the distant past", "the far future", "ancient times", "a parallel timeline",
            "another century")),
        # Constraint inversion
        FillerRule("privacy_inversion", "constraint_inversion", 7, fixed(
            "in public", "in private", "secretly", "openly", "for everyone to see",
            "in complete isolation")),
        FillerRule("permission_inversion", "constraint_inversion", 7, fixed(
            "forbidden", "required", "ignored", "celebrated", "punished", "rewarded")),
        # Creative
        FillerRule("concept1", "concept_blending", 6, concepts("abstract", "natural")),
        FillerRule("concept2", "concept_blending", 6, concepts("object", "social")),
        FillerRule("fundamental_assumption", "creative", 7, fixed(
            "reality", "time", "identity", "morality", "the nature of existence",
            "what they thought they knew")),
        FillerRule("genre", GENERAL_CATEGORY, 8, genre),
        FillerRule("different_genre_element", "creative", 7, fixed(
            "a cooking competition", "a courtroom drama", "a heist", "a bureaucratic nightmare",
            "a sports rivalry")),
        # Character-driven
        FillerRule("value1", "character_driven", 8, fixed(
            "loyalty", "truth", "freedom", "safety", "justice", "love")),
        FillerRule("value2", "character_driven", 8, fixed(
            "duty", "success", "happiness", "power", "knowledge", "revenge")),
        FillerRule("core_belief", "character_driven", 8, fixed(
            "everything happens for a reason", "people are fundamentally good",
            "hard work pays off", "family comes first")),
        FillerRule("new_information", "character_driven", 8, fixed(
            "a shocking revelation", "evidence to the contrary", "a different perspective",
            "hidden history")),
        # Thematic
        FillerRule("theme", "thematic", 7, theme),
        FillerRule("metaphor", "thematic", 7, fixed(
            "a heart of stone", "time is money", "the weight of the world", "walls have ears",
            "a ray of hope")),
        # Branch-oriented templates
        FillerRule("mystery_element", "procedural", 8, mystery_element),
        FillerRule("potential_discovery", "procedural", 8, fixed(
            "the real culprit", "a hidden motive", "a buried secret", "a second victim")),
        FillerRule("target", "escalation", 8, fixed(
            "the villain", "a trusted friend", "the authorities", "their own family")),
        FillerRule("issue", "escalation", 8, fixed(
            "the betrayal", "the missing money", "the broken promise", "what really happened")),
        FillerRule("potential_consequence", "escalation", 8, fixed(
            "losing everything", "exposing themselves", "starting a war", "breaking the alliance")),
        FillerRule("potential_ally", "de-escalation", 8, fixed(
            "their rival", "the villain's apprentice", "a former enemy", "a reluctant stranger")),
        FillerRule("common_goal", "de-escalation", 8, fixed(
            "escape the city", "stop a greater threat", "uncover the truth", "save the village")),
    ]


class SlotFiller:
    """
    Resolves {slot} placeholders in prompt and branch templates.

    Args:
        rng: random source for every weighted or uniform pick
        rules: filler rules; defaults to default_filler_rules()
        generic_values: last-resort values keyed by slot name
        branch_values: curated values for branch slots
        technique_values: per-technique overrides of branch_values
        branch_fallbacks: context-free defaults for unresolved branch slots
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        rules: Optional[Sequence[FillerRule]] = None,
        generic_values: Optional[Mapping[str, List[str]]] = None,
        branch_values: Optional[Mapping[str, List[str]]] = None,
        technique_values: Optional[Mapping[str, Mapping[str, List[str]]]] = None,
        branch_fallbacks: Optional[Mapping[str, str]] = None,
    ):
        self.rng = rng or random.Random()
        self.generic_values = GENERIC_SLOT_VALUES if generic_values is None else generic_values
        self.branch_values = BRANCH_SLOT_VALUES if branch_values is None else branch_values
        self.technique_values = TECHNIQUE_SLOT_VALUES if technique_values is None else technique_values
        self.branch_fallbacks = BRANCH_FALLBACKS if branch_fallbacks is None else branch_fallbacks

        self._rules: Dict[str, List[FillerRule]] = {}
        for rule in (default_filler_rules() if rules is None else rules):
            self._rules.setdefault(rule.slot_name, []).append(rule)
        for slot_rules in self._rules.values():
            slot_rules.sort(key=lambda r: r.priority, reverse=True)

    # -------------------------------------------------------------------------
    # Prompt path
    # -------------------------------------------------------------------------

    def fill_slots(
        self,
        template: str,
        parameters: SimulatorParameters,
        category: Optional[str] = None,
    ) -> Optional[str]:
        """Fill a prompt template, or return None when any slot is unfillable."""
        slots = self.resolve_slots(template, parameters, category)
        if slots is None:
            return None
        return render_template(template, {s.slot_name: s.filled_value for s in slots})

    def resolve_slots(
        self,
        template: str,
        parameters: SimulatorParameters,
        category: Optional[str] = None,
    ) -> Optional[List[FilledSlot]]:
        """
        Resolve every distinct slot of a template.

        Returns None as soon as one slot cannot be resolved by either a
        filler rule or the generic table.
        """
        populated = len(parameters.populated_fields())
        resolved: List[FilledSlot] = []

        for slot_name in extract_slots(template):
            slot = self._resolve_slot(slot_name, parameters, category, populated)
            if slot is None:
                logger.debug(f"[SlotFiller] No value for slot '{slot_name}' in: {template}")
                return None
            resolved.append(slot)

        return resolved

    def _resolve_slot(
        self,
        slot_name: str,
        parameters: SimulatorParameters,
        category: Optional[str],
        populated: int,
    ) -> Optional[FilledSlot]:
        placeholder = "{" + slot_name + "}"

        for rule in self._rules.get(slot_name, []):
            if category and rule.category not in (GENERAL_CATEGORY, category):
                continue
            candidates = [c for c in rule.filler(parameters) if c]
            if not candidates:
                continue
            confidence = 0.5 + (rule.priority / 10) * 0.3 + min(populated * 0.05, 0.2)
            return FilledSlot(
                slot_name=slot_name,
                original_value=placeholder,
                filled_value=self.weighted_pick(candidates),
                confidence=min(confidence, 1.0),
            )

        generic = self.generic_values.get(slot_name)
        if generic:
            return FilledSlot(
                slot_name=slot_name,
                original_value=placeholder,
                filled_value=self.rng.choice(list(generic)),
                confidence=GENERIC_CONFIDENCE,
            )
        return None

    def weighted_pick(self, values: Sequence[str]) -> str:
        """Pick one value, weighting position i by 1.2**i."""
        weights = [1.2 ** i for i in range(len(values))]
        return self.rng.choices(list(values), weights=weights, k=1)[0]

    # -------------------------------------------------------------------------
    # Branch path
    # -------------------------------------------------------------------------

    def fill_branch_slots(
        self,
        template: str,
        extracted: ExtractedContent,
        parameters: SimulatorParameters,
        technique: str,
    ) -> str:
        """Fill a branch template. Unresolved slots get a context default."""
        values = {
            name: self._resolve_branch_slot(name, extracted, parameters, technique)
            for name in extract_slots(template)
        }
        return render_template(template, values)

    def _resolve_branch_slot(
        self,
        slot_name: str,
        extracted: ExtractedContent,
        parameters: SimulatorParameters,
        technique: str,
    ) -> str:
        if slot_name == "situation" and extracted.entities:
            return extracted.entities[0]
        if slot_name == "action" and extracted.actions:
            return extracted.actions[0]
        if slot_name == "character":
            if extracted.characters:
                return extracted.characters[0]
            return parameters.character_name or "the protagonist"
        if slot_name in ("location", "place"):
            if extracted.locations:
                return extracted.locations[0]
            return parameters.place or "this place"
        if slot_name == "event":
            return parameters.event or "something important"

        curated = self.technique_values.get(technique, {}).get(slot_name) or self.branch_values.get(slot_name)
        if curated:
            return self.rng.choice(list(curated))

        return self.branch_fallbacks.get(slot_name, DEFAULT_BRANCH_TEXT)
