"""
Model provider abstraction for the optional generation backend.

Supports:
- Claude (Anthropic), imported lazily so the package works without it
- Ollama (local models) over httpx

Usage:
    provider = get_provider("ollama:llama3")
    result = provider.generate(system_prompt, user_prompt, {"max_tokens": 500})
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .errors import BackendError

logger = logging.getLogger("what_if")

DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5-20250929"


@dataclass
class ModelInfo:
    """Model identification information."""
    provider: str  # "anthropic", "ollama"
    model_name: str
    full_spec: str


@dataclass
class GenerationResult:
    """Result from text generation."""
    text: str
    usage: Optional[Dict[str, int]]
    provider: str
    model: str


def parse_model_spec(model_spec: Optional[str]) -> ModelInfo:
    """
    Parse a model specification string.

    - "ollama:llama3" -> provider="ollama", model="llama3"
    - "claude-sonnet-4-5-20250929" -> provider="anthropic"
    - None -> default Claude model from CLAUDE_MODEL
    """
    if model_spec is None:
        default_model = os.getenv("CLAUDE_MODEL", DEFAULT_CLAUDE_MODEL)
        return ModelInfo(provider="anthropic", model_name=default_model, full_spec=default_model)

    if model_spec.startswith("ollama:"):
        model_name = model_spec.split(":", 1)[1]
        return ModelInfo(provider="ollama", model_name=model_name, full_spec=model_spec)

    return ModelInfo(provider="anthropic", model_name=model_spec, full_spec=model_spec)


class ModelProvider(ABC):
    """Abstract base class for model providers."""

    model_name: str

    @abstractmethod
    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        config: Dict[str, Any]
    ) -> GenerationResult:
        """
        Generate text using the model.

        Args:
            system_prompt: System prompt text
            user_prompt: User prompt text
            config: max_tokens, temperature, timeout, api_key

        Raises:
            BackendError: the provider call failed
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return provider name for metadata."""


class ClaudeProvider(ModelProvider):
    """Claude (Anthropic) model provider."""

    def __init__(self, model_name: str):
        self.model_name = model_name

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        config: Dict[str, Any]
    ) -> GenerationResult:
        """Generate using the Claude API."""
        try:
            import anthropic
        except ImportError as e:
            raise BackendError("anthropic package is not installed (pip install .[claude])") from e

        api_key = config.get("api_key") or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise BackendError("ANTHROPIC_API_KEY is not set")

        logger.info(f"[ClaudeProvider] Generating with {self.model_name}")
        client = anthropic.Anthropic(api_key=api_key, timeout=float(config.get("timeout", 20.0)))

        try:
            message = client.messages.create(
                model=self.model_name,
                max_tokens=int(config.get("max_tokens", 1000)),
                temperature=float(config.get("temperature", 0.9)),
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}]
            )
        except anthropic.APIError as e:
            logger.error(f"[ClaudeProvider] Generation failed: {e}")
            raise BackendError(f"Claude request failed: {e}") from e

        text = message.content[0].text

        usage = None
        if getattr(message, "usage", None):
            usage = {
                "input_tokens": message.usage.input_tokens,
                "output_tokens": message.usage.output_tokens,
                "total_tokens": message.usage.input_tokens + message.usage.output_tokens,
            }

        logger.info(f"[ClaudeProvider] Generated {len(text)} chars")
        return GenerationResult(text=text, usage=usage, provider=self.provider_name, model=self.model_name)


class OllamaProvider(ModelProvider):
    """Ollama (local) model provider."""

    def __init__(self, model_name: str, base_url: Optional[str] = None):
        self.model_name = model_name
        if base_url is None:
            host = os.getenv("OLLAMA_HOST", "localhost")
            port = int(os.getenv("OLLAMA_PORT", "11434"))
            base_url = f"http://{host}:{port}"
        self.base_url = base_url

    @property
    def provider_name(self) -> str:
        return "ollama"

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        config: Dict[str, Any]
    ) -> GenerationResult:
        """Generate using the Ollama API."""
        logger.info(f"[OllamaProvider] Generating with {self.model_name}")

        request_body = {
            "model": self.model_name,
            "prompt": f"{system_prompt}\n\n---\n\n{user_prompt}",
            "stream": False,
            "options": {
                "temperature": float(config.get("temperature", 0.9)),
                "num_predict": int(config.get("max_tokens", 1000)),
            }
        }
        timeout = float(config.get("timeout", 20.0))

        try:
            response = httpx.post(f"{self.base_url}/api/generate", json=request_body, timeout=timeout)
            response.raise_for_status()
            response_json = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"[OllamaProvider] Timeout after {timeout}s")
            raise BackendError(f"Ollama timeout after {timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"[OllamaProvider] Connection error: {e}")
            raise BackendError(f"Ollama request failed: {e}") from e

        if "error" in response_json:
            raise BackendError(f"Ollama error: {response_json['error']}")

        text = response_json.get("response", "")

        usage = None
        if "eval_count" in response_json:
            prompt_tokens = response_json.get("prompt_eval_count", 0)
            output_tokens = response_json.get("eval_count", 0)
            usage = {
                "input_tokens": prompt_tokens,
                "output_tokens": output_tokens,
                "total_tokens": prompt_tokens + output_tokens,
            }

        logger.info(f"[OllamaProvider] Generated {len(text)} chars")
        return GenerationResult(text=text, usage=usage, provider=self.provider_name, model=self.model_name)


def get_provider(model_spec: Optional[str] = None) -> ModelProvider:
    """Get the provider for a model specification string."""
    info = parse_model_spec(model_spec)
    if info.provider == "ollama":
        return OllamaProvider(info.model_name)
    return ClaudeProvider(info.model_name)
