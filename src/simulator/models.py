"""
Simulator domain models.

- SimulatorParameters: sparse story parameters, frozen once normalized
- GeneratedPrompt: a ranked "What if" prompt returned to the caller
- BranchSuggestion: a ranked continuation for an existing story node
- LogicalRule: static rule catalog entry for the logical generator
- FilledSlot: one resolved template placeholder

Enum values match the wire strings used by the request layer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple
import uuid

from .errors import InvalidParametersError


class GenerationMode(str, Enum):
    """Share of candidates requested from each generator."""

    LOGICAL = "logical"
    CREATIVE = "creative"
    BALANCED = "balanced"


class BranchDensity(str, Enum):
    """How many branch suggestions a node should receive."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Perspective(str, Enum):
    SINGLE = "single"
    DUAL = "dual"
    MULTIPLE = "multiple"


class PromptType(str, Enum):
    LOGICAL = "logical"
    CREATIVE = "creative"
    TWIST = "twist"
    CHARACTER = "character"
    THEMATIC = "thematic"


class BranchType(str, Enum):
    CHARACTER_DRIVEN = "character-driven"
    PLOT_TWIST = "plot-twist"
    MORAL_DILEMMA = "moral-dilemma"
    PROCEDURAL = "procedural"
    ESCALATION = "escalation"
    DE_ESCALATION = "de-escalation"


class GenerationMethod(str, Enum):
    RULE_BASED = "rule-based"
    LLM = "llm"
    HYBRID = "hybrid"


class FeedbackType(str, Enum):
    """User reaction to a returned candidate."""

    ACCEPT = "accept"
    EDIT = "edit"
    REJECT = "reject"


def generate_id() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def now_iso() -> str:
    """Get current time as ISO format string."""
    return datetime.utcnow().isoformat() + "Z"


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _as_mapping(value: Any, name: str) -> Optional[Mapping[str, Any]]:
    if not value:
        return None
    if not isinstance(value, Mapping):
        raise InvalidParametersError(f"{name} must be an object, got {type(value).__name__}")
    return value


def _as_tuple(values: Any) -> Tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        return (values,)
    return tuple(str(v) for v in values)


# =============================================================================
# Input parameters
# =============================================================================

@dataclass(frozen=True)
class Character:
    name: Optional[str] = None
    traits: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Setting:
    era: Optional[str] = None
    place: Optional[str] = None
    mood: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.era or self.place or self.mood)


@dataclass(frozen=True)
class StoryConstraints:
    length_target: Optional[str] = None
    vocabulary_level: Optional[str] = None
    banned_content: Tuple[str, ...] = ()
    educational_goals: Tuple[str, ...] = ()


# Fields that describe the story itself; mode/density/perspective are
# request controls and do not count towards parameter completeness.
CONTENT_FIELDS = (
    "character",
    "setting",
    "event",
    "genre",
    "tone",
    "constraints",
    "theme_keywords",
    "audience_age",
)


@dataclass(frozen=True)
class SimulatorParameters:
    """
    Story parameters for one generation request.

    Instances are never mutated. Normalization (see engine.normalize_parameters)
    builds a new instance with trimmed traits, mapped genre/tone synonyms and
    enum-typed mode, density and perspective.
    """

    character: Optional[Character] = None
    setting: Optional[Setting] = None
    event: Optional[str] = None
    genre: Optional[str] = None
    tone: Optional[str] = None
    constraints: Optional[StoryConstraints] = None
    mode: Optional[GenerationMode] = None
    branch_density: Optional[BranchDensity] = None
    perspective: Optional[Perspective] = None
    theme_keywords: Tuple[str, ...] = ()
    audience_age: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SimulatorParameters":
        """
        Build parameters from a plain dict (request body, CLI arguments).

        Nested character/setting/constraints dicts are converted; enum-valued
        fields are left as given and validated during normalization.

        Raises:
            InvalidParametersError: character, setting or constraints is not a mapping
        """
        data = data or {}

        character = None
        raw_character = _as_mapping(data.get("character"), "character")
        if raw_character:
            character = Character(
                name=_clean_text(raw_character.get("name")),
                traits=_as_tuple(raw_character.get("traits")),
            )

        setting = None
        raw_setting = _as_mapping(data.get("setting"), "setting")
        if raw_setting:
            setting = Setting(
                era=_clean_text(raw_setting.get("era")),
                place=_clean_text(raw_setting.get("place")),
                mood=_clean_text(raw_setting.get("mood")),
            )

        constraints = None
        raw_constraints = _as_mapping(data.get("constraints"), "constraints")
        if raw_constraints:
            constraints = StoryConstraints(
                length_target=_clean_text(raw_constraints.get("length_target")),
                vocabulary_level=_clean_text(raw_constraints.get("vocabulary_level")),
                banned_content=_as_tuple(raw_constraints.get("banned_content")),
                educational_goals=_as_tuple(raw_constraints.get("educational_goals")),
            )

        return cls(
            character=character,
            setting=setting,
            event=_clean_text(data.get("event")),
            genre=_clean_text(data.get("genre")),
            tone=_clean_text(data.get("tone")),
            constraints=constraints,
            mode=data.get("mode"),
            branch_density=data.get("branch_density"),
            perspective=data.get("perspective"),
            theme_keywords=_as_tuple(data.get("theme_keywords")),
            audience_age=_clean_text(data.get("audience_age")),
        )

    @property
    def character_name(self) -> Optional[str]:
        return self.character.name if self.character else None

    @property
    def traits(self) -> Tuple[str, ...]:
        return self.character.traits if self.character else ()

    @property
    def place(self) -> Optional[str]:
        return self.setting.place if self.setting else None

    @property
    def banned_content(self) -> Tuple[str, ...]:
        return self.constraints.banned_content if self.constraints else ()

    def populated_fields(self) -> List[str]:
        """Return the names of story content fields that carry a value."""
        populated = []
        for name in CONTENT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, Setting) and value.is_empty():
                continue
            if value:
                populated.append(name)
        return populated

    def has_field(self, name: str) -> bool:
        """True when the named field (or a character/setting sub-field) is set."""
        if name in ("name", "character_name"):
            return bool(self.character_name)
        if name == "traits":
            return bool(self.traits)
        if name == "place":
            return bool(self.place)
        return bool(getattr(self, name, None))

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.character:
            result["character"] = {
                "name": self.character.name,
                "traits": list(self.character.traits),
            }
        if self.setting:
            result["setting"] = {
                "era": self.setting.era,
                "place": self.setting.place,
                "mood": self.setting.mood,
            }
        if self.constraints:
            result["constraints"] = {
                "length_target": self.constraints.length_target,
                "vocabulary_level": self.constraints.vocabulary_level,
                "banned_content": list(self.constraints.banned_content),
                "educational_goals": list(self.constraints.educational_goals),
            }
        for name in ("event", "genre", "tone", "audience_age"):
            value = getattr(self, name)
            if value:
                result[name] = value
        for name in ("mode", "branch_density", "perspective"):
            value = getattr(self, name)
            if value:
                result[name] = value.value if isinstance(value, Enum) else value
        if self.theme_keywords:
            result["theme_keywords"] = list(self.theme_keywords)
        return result


# =============================================================================
# Generated candidates
# =============================================================================

@dataclass
class Explainability:
    """How a candidate was produced. Never empty on a returned candidate."""

    rule_applied: Optional[str] = None
    template_id: Optional[str] = None
    reasoning: Optional[str] = None
    entities_used: List[str] = field(default_factory=list)
    filled_slots: Dict[str, str] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.rule_applied or self.template_id or self.reasoning)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.rule_applied:
            result["rule_applied"] = self.rule_applied
        if self.template_id:
            result["template_id"] = self.template_id
        if self.reasoning:
            result["reasoning"] = self.reasoning
        if self.entities_used:
            result["entities_used"] = list(self.entities_used)
        if self.filled_slots:
            result["filled_slots"] = dict(self.filled_slots)
        return result


@dataclass
class GeneratedPrompt:
    prompt_text: str
    prompt_type: PromptType
    impact: float
    confidence_score: float
    explainability: Explainability
    tags: List[str] = field(default_factory=list)
    template_used: Optional[str] = None
    generation_method: GenerationMethod = GenerationMethod.RULE_BASED
    id: str = field(default_factory=generate_id)

    @property
    def text(self) -> str:
        return self.prompt_text

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "prompt_text": self.prompt_text,
            "type": self.prompt_type.value,
            "tags": list(self.tags),
            "impact": self.impact,
            "confidence_score": self.confidence_score,
            "generation_method": self.generation_method.value,
            "explainability": self.explainability.to_dict(),
        }
        if self.template_used:
            result["template_used"] = self.template_used
        return result


@dataclass
class BranchSuggestion:
    branch_text: str
    branch_type: BranchType
    impact_score: float
    estimated_outcome_summary: str
    explainability: Explainability
    generation_method: GenerationMethod = GenerationMethod.RULE_BASED
    id: str = field(default_factory=generate_id)

    @property
    def text(self) -> str:
        return self.branch_text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "branch_text": self.branch_text,
            "branch_type": self.branch_type.value,
            "impact_score": self.impact_score,
            "estimated_outcome_summary": self.estimated_outcome_summary,
            "generation_method": self.generation_method.value,
            "explainability": self.explainability.to_dict(),
        }


# =============================================================================
# Rules and slots
# =============================================================================

@dataclass(frozen=True)
class RuleConstraints:
    """Applicability constraints. Empty tuples mean unconstrained."""

    genres: Tuple[str, ...] = ()
    tones: Tuple[str, ...] = ()
    required_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LogicalRule:
    id: str
    name: str
    category: str
    template: str
    parameters: Tuple[str, ...]
    weight: float
    constraints: RuleConstraints = RuleConstraints()
    prompt_type: PromptType = PromptType.LOGICAL


@dataclass
class FilledSlot:
    slot_name: str
    original_value: str
    filled_value: str
    confidence: float


@dataclass
class ExtractedContent:
    """Coarse keyword summary of a story node, used to fill branch slots."""

    entities: List[str] = field(default_factory=list)
    actions: List[str] = field(default_factory=list)
    characters: List[str] = field(default_factory=list)
    locations: List[str] = field(default_factory=list)
