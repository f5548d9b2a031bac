"""
OpenAI Provider Implementation

Concrete implementations of BaseAIProvider on top of the OpenAI SDK:
the OpenAI cloud itself and the hosted default endpoint, which speaks the
same chat-completions protocol.
"""

import logging
from typing import List, Dict, Optional

import openai
from openai import AsyncOpenAI

from projectmind.core.ai.base import (
    BaseAIProvider,
    AIProviderConfig,
    AIResponse,
    normalize_usage,
)
from projectmind.core.ai.errors import (
    AuthenticationFailed,
    InvalidResponse,
    ProviderError,
    RateLimited,
    Unreachable,
    error_for_status,
)

logger = logging.getLogger(__name__)


def translate_openai_error(e: Exception, provider: str) -> ProviderError:
    """Map an OpenAI SDK exception onto the provider error taxonomy."""
    if isinstance(e, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthenticationFailed(f"{provider} rejected the credentials", provider=provider,
                                    status=e.status_code)
    if isinstance(e, openai.RateLimitError):
        return RateLimited(f"{provider} rate limit exceeded", provider=provider, status=e.status_code)
    if isinstance(e, openai.APITimeoutError):
        return Unreachable(f"{provider} request timed out", provider=provider)
    if isinstance(e, openai.APIConnectionError):
        return Unreachable(f"Cannot connect to {provider}: {e}", provider=provider)
    if isinstance(e, openai.APIStatusError):
        return error_for_status(e.status_code, f"{provider} returned HTTP {e.status_code}: {e.message}",
                                provider=provider)
    return InvalidResponse(f"{provider} returned an unusable response: {e}", provider=provider)


class OpenAIProvider(BaseAIProvider):
    """OpenAI API provider implementation (bearer-token auth)."""

    default_model = "gpt-3.5-turbo"

    def __init__(self, config: AIProviderConfig, client: Optional[AsyncOpenAI] = None):
        """Initialize OpenAI provider."""
        super().__init__(config)
        self.client = client or self._create_client()
        logger.info(f"{self.name} provider initialized with model: {self.model}")

    def _validate_config(self) -> None:
        if not self.config.api_key:
            raise AuthenticationFailed("OpenAI API key is required", provider=self.name)

    def _create_client(self) -> AsyncOpenAI:
        # Retries are owned by the router.
        return AsyncOpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url or None,
            timeout=self.config.timeout,
            max_retries=0,
        )

    async def complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> AIResponse:
        """Get complete response from OpenAI."""
        model = self.model
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=False,
            )
        except openai.OpenAIError as e:
            logger.error(f"{self.name} completion failed: {e}")
            raise translate_openai_error(e, self.name) from e

        if not getattr(response, "choices", None):
            raise InvalidResponse(f"{self.name} returned no choices", provider=self.name)

        usage = response.usage
        return AIResponse(
            content=response.choices[0].message.content or "",
            model=getattr(response, "model", None) or model,
            provider=self.provider_type,
            usage=normalize_usage(
                usage.prompt_tokens,
                usage.completion_tokens,
                usage.total_tokens,
            ) if usage else None,
        )


class HostedProvider(OpenAIProvider):
    """
    Hosted default provider.

    Credentials and endpoint come from the service configuration rather than
    from the user's settings, so every user gets a working assistant out of
    the box.
    """

    default_model = "z-ai-model"

    def _validate_config(self) -> None:
        if not self.config.api_key or not self.config.base_url:
            raise AuthenticationFailed(
                "Hosted provider is not configured (hosted.base_url / hosted.api_key)",
                provider=self.name,
            )
