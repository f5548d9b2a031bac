"""
Base AI Provider Interface

Abstract base class for all AI providers.
Implements strategy pattern for provider abstraction.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Dict, Optional

from projectmind.core.models import ProviderType


@dataclass
class AIProviderConfig:
    """Endpoint configuration handed to one adapter instance."""
    provider_type: ProviderType
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None
    timeout: float = 30.0


@dataclass
class AIResponse:
    """Standardized AI response."""
    content: str
    model: str
    provider: ProviderType
    usage: Optional[Dict[str, int]] = None


def normalize_usage(
    prompt_tokens: Optional[int],
    completion_tokens: Optional[int],
    total_tokens: Optional[int] = None,
) -> Optional[Dict[str, int]]:
    """Build the common usage block, or None when the provider sent nothing."""
    if prompt_tokens is None and completion_tokens is None and total_tokens is None:
        return None
    usage: Dict[str, int] = {}
    if prompt_tokens is not None:
        usage["prompt_tokens"] = int(prompt_tokens)
    if completion_tokens is not None:
        usage["completion_tokens"] = int(completion_tokens)
    if total_tokens is None and prompt_tokens is not None and completion_tokens is not None:
        total_tokens = int(prompt_tokens) + int(completion_tokens)
    if total_tokens is not None:
        usage["total_tokens"] = int(total_tokens)
    return usage


class BaseAIProvider(ABC):
    """
    Abstract base class for all AI providers.

    All AI providers must implement this interface to ensure
    consistent behavior across different backends. Each adapter owns its
    request/response translation and its authentication header convention.
    """

    #: Model used when neither the user settings nor the config name one.
    default_model: Optional[str] = None

    def __init__(self, config: AIProviderConfig):
        """
        Initialize the AI provider.

        Args:
            config: Provider configuration
        """
        self.config = config
        self.provider_type = config.provider_type
        self._validate_config()

    @property
    def name(self) -> str:
        return self.provider_type.value

    @property
    def model(self) -> Optional[str]:
        return self.config.model or self.default_model

    def _validate_config(self) -> None:
        """Validate provider configuration. Adapters override as needed."""

    @abstractmethod
    async def complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> AIResponse:
        """
        Get a complete (non-streaming) response.

        Args:
            messages: OpenAI-style role/content dictionaries
            max_tokens: Hard cap requested from the provider
            temperature: Sampling temperature in [0, 2]

        Returns:
            AIResponse with complete content

        Raises:
            ProviderError: translated failure
        """
        pass
