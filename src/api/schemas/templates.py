"""
Template registry schemas.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class TemplateParametersIn(BaseModel):
    required: List[str] = Field(default_factory=list)
    optional: List[str] = Field(default_factory=list)


class TemplateConstraintsIn(BaseModel):
    genres: List[str] = Field(default_factory=list)
    tones: List[str] = Field(default_factory=list)
    audience_ages: List[str] = Field(default_factory=list)
    required_fields: List[str] = Field(default_factory=list)


class TemplateCreateRequest(BaseModel):
    """Add a template to the registry."""

    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(
        ...,
        min_length=1,
        description="logical, creative, character-driven, thematic, or a branch type",
        json_schema_extra={"examples": ["creative"]}
    )
    template_text: str = Field(
        ...,
        min_length=1,
        json_schema_extra={"examples": ["What if {character} forgot {event} the moment it happened?"]}
    )
    parameters: TemplateParametersIn = Field(default_factory=TemplateParametersIn)
    constraints: TemplateConstraintsIn = Field(default_factory=TemplateConstraintsIn)
    effectiveness_score: float = Field(default=0.5, ge=0.0, le=1.0)


class TemplateOut(BaseModel):
    id: str
    name: str
    category: str
    template_text: str
    parameters: Dict[str, List[str]]
    constraints: Dict[str, List[str]]
    usage_count: int
    effectiveness_score: float
    is_active: bool
    created_at: str


class TemplateListResponse(BaseModel):
    templates: List[TemplateOut]
    total: int


class TemplateStatsResponse(BaseModel):
    total_templates: int
    active_templates: int
    category_counts: Dict[str, int]
    average_effectiveness: float
    top_performers: List[Dict[str, Any]]


class TemplateRecommendationsResponse(BaseModel):
    top_performing: List[TemplateOut]
    needs_improvement: List[TemplateOut]
    underutilized: List[TemplateOut]


class PruneRequest(BaseModel):
    min_effectiveness: float = Field(default=0.3, ge=0.0, le=1.0)
    min_usage: int = Field(default=10, ge=0)


class PruneResponse(BaseModel):
    pruned: int
    active_templates: int

