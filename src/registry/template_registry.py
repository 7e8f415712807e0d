"""
Template Registry - in-memory catalog of named what-if templates.

Each template carries constraints and a learned effectiveness score in [0, 1].
Scores move only through update_effectiveness(); weak templates are
deactivated by prune_ineffective_templates(), never deleted.

Writes are serialized by a re-entrant lock. Reads return copies, so callers
never observe a template mid-update.

Learned state (usage, effectiveness, active flag) can be saved to and
restored from a JSON file.
"""

import json
import logging
import math
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from src.simulator.catalogs import DEFAULT_TEMPLATES
from src.simulator.errors import (
    InvalidFeedbackError,
    InvalidParametersError,
    TemplateNotFoundError,
)

logger = logging.getLogger("what_if")

DEFAULT_EFFECTIVENESS = 0.5
MIN_LEARNING_RATE = 0.01

# Feedback deltas, applied before the learning rate
ACCEPTED_DELTA = 0.1
REJECTED_DELTA = -0.05
EDITED_DELTA = -0.02
RATING_STEP = 0.03

STATE_VERSION = 1


@dataclass(frozen=True)
class TemplateConstraints:
    """Empty tuples mean the template applies to any value."""
    genres: tuple = ()
    tones: tuple = ()
    audience_ages: tuple = ()
    required_fields: tuple = ()

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "TemplateConstraints":
        data = data or {}
        return cls(
            genres=tuple(data.get("genres") or ()),
            tones=tuple(data.get("tones") or ()),
            audience_ages=tuple(data.get("audience_ages") or ()),
            required_fields=tuple(data.get("required_fields") or ()),
        )

    def to_dict(self) -> Dict[str, List[str]]:
        result = {}
        for name in ("genres", "tones", "audience_ages", "required_fields"):
            value = getattr(self, name)
            if value:
                result[name] = list(value)
        return result


@dataclass
class Template:
    """Registry template record."""
    id: str
    name: str
    category: str
    template_text: str
    required_parameters: List[str] = field(default_factory=list)
    optional_parameters: List[str] = field(default_factory=list)
    constraints: TemplateConstraints = field(default_factory=TemplateConstraints)
    usage_count: int = 0
    effectiveness_score: float = DEFAULT_EFFECTIVENESS
    is_active: bool = True
    created_at: datetime = field(default_factory=datetime.now)

    def matches_genre(self, genre: Optional[str]) -> bool:
        return not genre or not self.constraints.genres or genre in self.constraints.genres

    def matches_tone(self, tone: Optional[str]) -> bool:
        return not tone or not self.constraints.tones or tone in self.constraints.tones

    def matches_audience(self, audience_age: Optional[str]) -> bool:
        return (
            not audience_age
            or not self.constraints.audience_ages
            or audience_age in self.constraints.audience_ages
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "template_text": self.template_text,
            "parameters": {
                "required": list(self.required_parameters),
                "optional": list(self.optional_parameters),
            },
            "constraints": self.constraints.to_dict(),
            "usage_count": self.usage_count,
            "effectiveness_score": round(self.effectiveness_score, 4),
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class TemplateFilter:
    """All set fields must match (logical AND)."""
    category: Optional[str] = None
    genre: Optional[str] = None
    tone: Optional[str] = None
    audience_age: Optional[str] = None
    min_effectiveness: Optional[float] = None
    is_active: Optional[bool] = None


@dataclass
class TemplateFeedback:
    """User reaction to a candidate produced from a template."""
    accepted: bool
    was_edited: bool = False
    rating: Optional[int] = None


def learning_rate(usage_count: int) -> float:
    """Decaying learning rate: max(0.01, 1/sqrt(usage))."""
    if usage_count <= 0:
        return 1.0
    return max(MIN_LEARNING_RATE, 1.0 / math.sqrt(usage_count))


def feedback_delta(feedback: TemplateFeedback) -> float:
    """Raw score delta for one feedback event, before the learning rate."""
    delta = ACCEPTED_DELTA if feedback.accepted else REJECTED_DELTA
    if feedback.was_edited:
        delta += EDITED_DELTA
    if feedback.rating is not None:
        delta += (feedback.rating - 3) * RATING_STEP
    return delta


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class TemplateRegistry:
    """
    Thread-safe in-memory template catalog.

    Args:
        templates: initial template definitions (dicts in the DEFAULT_TEMPLATES
            shape); None loads the default catalog, an empty list starts empty
    """

    def __init__(self, templates: Optional[Iterable[Mapping[str, Any]]] = None):
        self._lock = threading.RLock()
        self._templates: Dict[str, Template] = {}

        for data in (DEFAULT_TEMPLATES if templates is None else templates):
            self.add_template(data)

        logger.debug(f"[TemplateRegistry] Initialized with {len(self._templates)} templates")

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_template(self, template_id: str) -> Optional[Template]:
        with self._lock:
            template = self._templates.get(template_id)
            return replace(template) if template else None

    def require_template(self, template_id: str) -> Template:
        """Like get_template but raises TemplateNotFoundError."""
        template = self.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    def get_templates_by_category(self, category: str) -> List[Template]:
        return self.find_templates(TemplateFilter(category=category))

    def find_templates(self, template_filter: Optional[TemplateFilter] = None) -> List[Template]:
        """Return templates matching every set filter field, best first."""
        f = template_filter or TemplateFilter()
        with self._lock:
            results = [
                replace(t) for t in self._templates.values()
                if (f.category is None or t.category == f.category)
                and t.matches_genre(f.genre)
                and t.matches_tone(f.tone)
                and t.matches_audience(f.audience_age)
                and (f.min_effectiveness is None or t.effectiveness_score >= f.min_effectiveness)
                and (f.is_active is None or t.is_active == f.is_active)
            ]
        results.sort(key=lambda t: t.effectiveness_score, reverse=True)
        return results

    def __len__(self) -> int:
        return len(self._templates)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add_template(self, data: Mapping[str, Any]) -> Template:
        """
        Add a template from a definition dict.

        Missing id, usage count, effectiveness and active flag get defaults.

        Raises:
            InvalidParametersError: name, category or template_text missing,
                effectiveness outside [0, 1], or the id is already registered
        """
        for key in ("name", "category", "template_text"):
            if not data.get(key):
                raise InvalidParametersError(f"Template {key} is required")

        effectiveness = float(data.get("effectiveness_score", DEFAULT_EFFECTIVENESS))
        if not 0.0 <= effectiveness <= 1.0:
            raise InvalidParametersError(f"effectiveness_score must be within [0, 1], got {effectiveness}")

        parameters = data.get("parameters") or {}
        template = Template(
            id=str(data.get("id") or f"tpl_{uuid.uuid4().hex[:12]}"),
            name=str(data["name"]),
            category=str(data["category"]),
            template_text=str(data["template_text"]),
            required_parameters=list(parameters.get("required") or []),
            optional_parameters=list(parameters.get("optional") or []),
            constraints=TemplateConstraints.from_dict(data.get("constraints")),
            usage_count=int(data.get("usage_count", 0)),
            effectiveness_score=effectiveness,
            is_active=bool(data.get("is_active", True)),
        )

        with self._lock:
            if template.id in self._templates:
                raise InvalidParametersError(f"Template {template.id} already exists")
            self._templates[template.id] = template
        logger.debug(f"[TemplateRegistry] Added template {template.id} ({template.category})")
        return replace(template)

    def update_effectiveness(self, template_id: str, feedback: TemplateFeedback) -> bool:
        """
        Apply one feedback event to a template's effectiveness score.

        Returns:
            False if the template does not exist

        Raises:
            InvalidFeedbackError: rating outside 1..5
        """
        if feedback.rating is not None and not 1 <= feedback.rating <= 5:
            raise InvalidFeedbackError(f"Rating must be between 1 and 5, got {feedback.rating}")

        with self._lock:
            template = self._templates.get(template_id)
            if template is None:
                logger.warning(f"[TemplateRegistry] Feedback for unknown template: {template_id}")
                return False

            template.usage_count += 1
            rate = learning_rate(template.usage_count)
            old_score = template.effectiveness_score
            template.effectiveness_score = _clamp(old_score + feedback_delta(feedback) * rate)

        logger.info(
            f"[TemplateRegistry] {template_id} effectiveness "
            f"{old_score:.3f} -> {template.effectiveness_score:.3f} (usage={template.usage_count})"
        )
        return True

    def prune_ineffective_templates(self, min_effectiveness: float = 0.3, min_usage: int = 10) -> int:
        """Deactivate used templates scoring below min_effectiveness. Returns count."""
        pruned = 0
        with self._lock:
            for template in self._templates.values():
                if (
                    template.is_active
                    and template.usage_count >= min_usage
                    and template.effectiveness_score < min_effectiveness
                ):
                    template.is_active = False
                    pruned += 1
                    logger.info(
                        f"[TemplateRegistry] Deactivated {template.id} "
                        f"(effectiveness={template.effectiveness_score:.3f}, usage={template.usage_count})"
                    )
        return pruned

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            templates = [replace(t) for t in self._templates.values()]

        category_counts: Dict[str, int] = {}
        for t in templates:
            category_counts[t.category] = category_counts.get(t.category, 0) + 1

        average = (
            sum(t.effectiveness_score for t in templates) / len(templates)
            if templates else 0.0
        )
        top = sorted(templates, key=lambda t: t.effectiveness_score, reverse=True)[:10]

        return {
            "total_templates": len(templates),
            "active_templates": sum(1 for t in templates if t.is_active),
            "category_counts": category_counts,
            "average_effectiveness": round(average, 4),
            "top_performers": [
                {"id": t.id, "name": t.name, "effectiveness_score": round(t.effectiveness_score, 4)}
                for t in top
            ],
        }

    def get_recommendations(self) -> Dict[str, List[Template]]:
        """
        Group active templates for review.

        - top_performing: effectiveness >= 0.8 with usage >= 5
        - needs_improvement: effectiveness < 0.6 with usage >= 3, worst first
        - underutilized: usage < 3 with effectiveness >= 0.7
        """
        active = self.find_templates(TemplateFilter(is_active=True))

        top_performing = [t for t in active if t.effectiveness_score >= 0.8 and t.usage_count >= 5]
        needs_improvement = sorted(
            (t for t in active if t.effectiveness_score < 0.6 and t.usage_count >= 3),
            key=lambda t: t.effectiveness_score,
        )
        underutilized = [t for t in active if t.usage_count < 3 and t.effectiveness_score >= 0.7]

        return {
            "top_performing": top_performing[:5],
            "needs_improvement": needs_improvement[:5],
            "underutilized": underutilized[:5],
        }

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def save_state(self, path: Union[str, Path]) -> None:
        """Write usage, effectiveness and active flags to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with self._lock:
            state = {
                "version": STATE_VERSION,
                "saved_at": datetime.now().isoformat(),
                "templates": {
                    t.id: {
                        "usage_count": t.usage_count,
                        "effectiveness_score": t.effectiveness_score,
                        "is_active": t.is_active,
                    }
                    for t in self._templates.values()
                },
            }

        with open(path, "w", encoding="utf-8") as f:
            json.dump(state, f, ensure_ascii=False, indent=2)
        logger.info(f"[TemplateRegistry] Saved state for {len(state['templates'])} templates to {path}")

    def load_state(self, path: Union[str, Path]) -> int:
        """
        Restore learned state saved by save_state().

        Entries for unknown template ids are skipped. Returns the number of
        templates updated.
        """
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            state = json.load(f)

        updated = 0
        with self._lock:
            for template_id, entry in state.get("templates", {}).items():
                template = self._templates.get(template_id)
                if template is None:
                    logger.debug(f"[TemplateRegistry] Skipping unknown template in state: {template_id}")
                    continue
                template.usage_count = int(entry.get("usage_count", template.usage_count))
                template.effectiveness_score = _clamp(
                    float(entry.get("effectiveness_score", template.effectiveness_score))
                )
                template.is_active = bool(entry.get("is_active", template.is_active))
                updated += 1

        logger.info(f"[TemplateRegistry] Loaded state for {updated} templates from {path}")
        return updated
