"""
What-if generation engine.

Build an engine with src.simulator.engine.build_engine(); the models and
errors below are the types callers exchange with it.
"""

from .config import SimulatorConfig
from .errors import (
    BackendError,
    BackendUnavailableError,
    ConfigurationError,
    GenerationError,
    InvalidFeedbackError,
    InvalidParametersError,
    SimulatorError,
    TemplateNotFoundError,
)
from .models import (
    BranchDensity,
    BranchSuggestion,
    BranchType,
    Character,
    FeedbackType,
    GeneratedPrompt,
    GenerationMethod,
    GenerationMode,
    Perspective,
    PromptType,
    Setting,
    SimulatorParameters,
    StoryConstraints,
)

__all__ = [
    "SimulatorConfig",
    # errors
    "BackendError",
    "BackendUnavailableError",
    "ConfigurationError",
    "GenerationError",
    "InvalidFeedbackError",
    "InvalidParametersError",
    "SimulatorError",
    "TemplateNotFoundError",
    # models
    "BranchDensity",
    "BranchSuggestion",
    "BranchType",
    "Character",
    "FeedbackType",
    "GeneratedPrompt",
    "GenerationMethod",
    "GenerationMode",
    "Perspective",
    "PromptType",
    "Setting",
    "SimulatorParameters",
    "StoryConstraints",
]
