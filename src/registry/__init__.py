"""
Registry module - in-memory template catalog with learned effectiveness.
"""

from .template_registry import (
    Template,
    TemplateConstraints,
    TemplateFeedback,
    TemplateFilter,
    TemplateRegistry,
    feedback_delta,
    learning_rate,
)

__all__ = [
    "Template",
    "TemplateConstraints",
    "TemplateFeedback",
    "TemplateFilter",
    "TemplateRegistry",
    "feedback_delta",
    "learning_rate",
]
