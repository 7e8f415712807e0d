"""
Simulator-specific exceptions.

Only total generation failures reach the caller. Unfillable templates,
empty rule sets and backend failures are handled inside the engine and
never raised past it.
"""

from typing import Optional


class SimulatorError(Exception):
    """Base exception for all simulator errors."""
    pass


class ConfigurationError(SimulatorError):
    """Raised when a SimulatorConfig holds inconsistent values."""
    pass


class InvalidParametersError(SimulatorError):
    """
    Raised when request parameters cannot be normalized.

    Examples:
    - Unknown generation mode or branch density
    - Requested candidate count below 1
    """
    pass


class GenerationError(SimulatorError):
    """
    Raised when a generation or ranking pass fails unexpectedly.

    No partial result is returned alongside this error; the caller decides
    whether to retry, shrink the request, or surface the failure.
    """

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = f"Failed to generate {operation}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class BackendError(SimulatorError):
    """Raised by an external generation backend that failed or timed out."""
    pass


class BackendUnavailableError(BackendError):
    """Raised when the backend circuit breaker is open."""

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(f"Generation backend unavailable, retry after {retry_after:.1f}s")


class TemplateNotFoundError(SimulatorError):
    """Raised when a requested template does not exist."""

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Template not found: {template_id}")


class InvalidFeedbackError(SimulatorError):
    """Raised when template feedback carries an out-of-range rating."""
    pass
