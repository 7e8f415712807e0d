"""
API Schemas package.

Pydantic models for request/response validation.
"""

from .simulator import (
    BranchGenerateRequest,
    BranchGenerateResponse,
    FeedbackRequest,
    FeedbackResponse,
    PromptGenerateRequest,
    PromptGenerateResponse,
    SimulatorHealthResponse,
    SimulatorParametersIn,
)
from .templates import (
    PruneRequest,
    PruneResponse,
    TemplateCreateRequest,
    TemplateListResponse,
    TemplateOut,
    TemplateRecommendationsResponse,
    TemplateStatsResponse,
)

__all__ = [
    "BranchGenerateRequest",
    "BranchGenerateResponse",
    "FeedbackRequest",
    "FeedbackResponse",
    "PromptGenerateRequest",
    "PromptGenerateResponse",
    "SimulatorHealthResponse",
    "SimulatorParametersIn",
    "PruneRequest",
    "PruneResponse",
    "TemplateCreateRequest",
    "TemplateListResponse",
    "TemplateOut",
    "TemplateRecommendationsResponse",
    "TemplateStatsResponse",
]
