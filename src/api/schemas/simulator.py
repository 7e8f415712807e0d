"""
Simulator operation schemas.

Request bodies mirror SimulatorParameters; enum-valued fields are accepted
as strings and validated by the engine so error messages stay consistent
between the API and the CLI.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class CharacterIn(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    traits: List[str] = Field(
        default_factory=list,
        description="Character traits; only the first three are used",
        json_schema_extra={"examples": [["curious", "stubborn"]]}
    )


class SettingIn(BaseModel):
    era: Optional[str] = None
    place: Optional[str] = None
    mood: Optional[str] = None


class ConstraintsIn(BaseModel):
    length_target: Optional[str] = None
    vocabulary_level: Optional[str] = None
    banned_content: List[str] = Field(
        default_factory=list,
        description="Terms that must not appear in returned candidates"
    )
    educational_goals: List[str] = Field(default_factory=list)


class SimulatorParametersIn(BaseModel):
    """Sparse story parameters. Every field is optional."""

    character: Optional[CharacterIn] = None
    setting: Optional[SettingIn] = None
    event: Optional[str] = Field(
        default=None,
        max_length=1000,
        json_schema_extra={"examples": ["a letter arrives"]}
    )
    genre: Optional[str] = Field(default=None, json_schema_extra={"examples": ["mystery", "sci-fi"]})
    tone: Optional[str] = None
    constraints: Optional[ConstraintsIn] = None
    mode: Optional[str] = Field(
        default=None,
        description="logical | creative | balanced (default balanced)"
    )
    branch_density: Optional[str] = Field(
        default=None,
        description="low | medium | high (default medium)"
    )
    perspective: Optional[str] = Field(default=None, description="single | dual | multiple")
    theme_keywords: List[str] = Field(default_factory=list)
    audience_age: Optional[str] = None


class PromptGenerateRequest(BaseModel):
    """Request for what-if prompt generation."""

    parameters: SimulatorParametersIn = Field(default_factory=SimulatorParametersIn)
    count: Optional[int] = Field(
        default=None,
        ge=1,
        le=50,
        description="Maximum prompts to return (capped by server configuration)"
    )


class BranchGenerateRequest(BaseModel):
    """Request for branch suggestions on a story node."""

    node_content: str = Field(..., min_length=1, max_length=20000)
    parameters: SimulatorParametersIn = Field(default_factory=SimulatorParametersIn)
    count: Optional[int] = Field(default=None, ge=1, le=50)


class ExplainabilityOut(BaseModel):
    rule_applied: Optional[str] = None
    template_id: Optional[str] = None
    reasoning: Optional[str] = None
    entities_used: List[str] = Field(default_factory=list)
    filled_slots: Dict[str, str] = Field(default_factory=dict)


class PromptOut(BaseModel):
    id: str
    prompt_text: str
    type: str
    tags: List[str]
    impact: float
    confidence_score: float
    generation_method: str
    template_used: Optional[str] = None
    explainability: ExplainabilityOut


class PromptGenerateResponse(BaseModel):
    prompts: List[PromptOut]
    count: int


class BranchOut(BaseModel):
    id: str
    branch_text: str
    branch_type: str
    impact_score: float
    estimated_outcome_summary: str
    generation_method: str
    explainability: ExplainabilityOut


class BranchGenerateResponse(BaseModel):
    branches: List[BranchOut]
    count: int


class FeedbackRequest(BaseModel):
    """User feedback on a candidate that came from a registry template."""

    template_id: str = Field(..., min_length=1)
    feedback_type: Literal["accept", "edit", "reject"]
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class FeedbackResponse(BaseModel):
    success: bool
    template_id: str
    usage_count: int
    effectiveness_score: float


class SimulatorHealthResponse(BaseModel):
    status: str
    components: Dict[str, Dict[str, Any]]
    external_backend: Dict[str, Any]
    average_response_time_ms: float
    min_success_rate: float
    timestamp: str
