"""
Simulator configuration.

Values come from keyword arguments or from WHATIF_* environment variables
(see SimulatorConfig.from_env). Entry points load a .env file first.
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from .errors import ConfigurationError

ENV_PREFIX = "WHATIF_"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class SimulatorConfig:
    """Engine-wide settings. Validated on construction."""

    default_prompt_count: int = 6
    max_prompt_count: int = 12
    max_branch_count: int = 8
    safety_enabled: bool = True
    diversity_threshold: float = 0.3
    relevance_threshold: float = 0.5

    # External generation backend
    llm_enabled: bool = False
    llm_model: Optional[str] = None  # "ollama:<model>" or a Claude model name
    llm_max_tokens: int = 1000
    llm_timeout_seconds: float = 20.0
    llm_failure_threshold: int = 3
    llm_cooldown_seconds: float = 60.0

    use_template_registry: bool = True
    template_state_path: Optional[str] = None  # JSON file for learned template scores
    random_seed: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("default_prompt_count",
                     "max_prompt_count", "max_branch_count",
                     "llm_max_tokens", "llm_failure_threshold"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")

        for name in ("diversity_threshold", "relevance_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")

        if self.default_prompt_count > self.max_prompt_count:
            raise ConfigurationError(
                f"default_prompt_count ({self.default_prompt_count}) exceeds "
                f"max_prompt_count ({self.max_prompt_count})"
            )

        if self.llm_timeout_seconds <= 0 or self.llm_cooldown_seconds < 0:
            raise ConfigurationError("LLM timeout must be positive and cooldown non-negative")

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides: Any) -> "SimulatorConfig":
        """
        Build a config from WHATIF_<FIELD> environment variables.

        Unset variables keep the dataclass default. Keyword overrides win
        over the environment.

        Raises:
            ConfigurationError: a variable cannot be parsed or the result is invalid
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            values[f.name] = _parse_value(f.name, raw.strip(), f.default)

        values.update(overrides)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _parse_value(name: str, raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        lowered = raw.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"{ENV_PREFIX}{name.upper()} must be a boolean, got {raw!r}")

    try:
        if isinstance(default, int) or name == "random_seed":
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}") from e

    return raw
