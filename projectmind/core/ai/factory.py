"""
AI Provider Factory

Resolves provider ids to adapter classes.
Dispatch is a table lookup keyed by ProviderType; adding a provider means
adding one enum member, one adapter class and one table entry.
"""

import logging
from typing import Dict, List, Type

from projectmind.core.ai.base import BaseAIProvider
from projectmind.core.ai.anthropic_provider import AnthropicProvider
from projectmind.core.ai.compatible_provider import CustomProvider, LMStudioProvider
from projectmind.core.ai.errors import UnsupportedProvider
from projectmind.core.ai.openai_provider import HostedProvider, OpenAIProvider
from projectmind.core.models import ProviderType

logger = logging.getLogger(__name__)


class AIProviderFactory:
    """
    Registry of AI provider adapter classes.

    Supports:
    - Adapter lookup by provider id
    - Listing the supported provider ids
    """

    _providers: Dict[ProviderType, Type[BaseAIProvider]] = {
        ProviderType.Z_AI: HostedProvider,
        ProviderType.LM_STUDIO: LMStudioProvider,
        ProviderType.OPENAI: OpenAIProvider,
        ProviderType.ANTHROPIC: AnthropicProvider,
        ProviderType.CUSTOM: CustomProvider,
    }

    @classmethod
    def get_provider_class(cls, provider: object) -> Type[BaseAIProvider]:
        """
        Resolve the adapter class for a provider id.

        Raises:
            UnsupportedProvider: unknown id or no registered adapter
        """
        try:
            provider_type = ProviderType.parse(provider)
        except ValueError:
            logger.warning(f"Unknown provider requested: {provider!r}")
            raise UnsupportedProvider(f"Unknown provider: {provider!r}", provider=str(provider))
        provider_class = cls._providers.get(provider_type)
        if provider_class is None:
            raise UnsupportedProvider(
                f"Provider type {provider_type.value} not registered",
                provider=provider_type.value,
            )
        return provider_class

    @classmethod
    def get_available_providers(cls) -> List[str]:
        """
        Get list of available provider types.

        Returns:
            List of provider type names
        """
        return [pt.value for pt in cls._providers.keys()]
