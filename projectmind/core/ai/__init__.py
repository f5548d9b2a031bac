"""
AI Provider Abstraction Layer

Provides a unified interface for all AI providers (hosted default, LM Studio,
OpenAI, Anthropic, custom OpenAI-compatible endpoints).
Uses strategy pattern for provider switching.
"""

from projectmind.core.ai.base import BaseAIProvider, AIProviderConfig, AIResponse
from projectmind.core.ai.errors import (
    ProviderError,
    UnsupportedProvider,
    AuthenticationFailed,
    RateLimited,
    InvalidResponse,
    RequestRejected,
    Unreachable,
)
from projectmind.core.ai.openai_provider import OpenAIProvider, HostedProvider
from projectmind.core.ai.anthropic_provider import AnthropicProvider
from projectmind.core.ai.compatible_provider import LMStudioProvider, CustomProvider
from projectmind.core.ai.factory import AIProviderFactory
from projectmind.core.ai.router import ProviderRouter

__all__ = [
    "BaseAIProvider",
    "AIProviderConfig",
    "AIResponse",
    "ProviderError",
    "UnsupportedProvider",
    "AuthenticationFailed",
    "RateLimited",
    "InvalidResponse",
    "RequestRejected",
    "Unreachable",
    "OpenAIProvider",
    "HostedProvider",
    "AnthropicProvider",
    "LMStudioProvider",
    "CustomProvider",
    "AIProviderFactory",
    "ProviderRouter",
]
