"""
Anthropic Provider Implementation

Concrete implementation of BaseAIProvider for the Anthropic Messages API.
Anthropic takes the system prompt as a separate parameter and only accepts
user/assistant turns in the message list.
"""

import logging
from typing import List, Dict, Optional, Tuple

import anthropic
from anthropic import AsyncAnthropic

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


def translate_anthropic_error(e: Exception, provider: str) -> ProviderError:
    """Map an Anthropic SDK exception onto the provider error taxonomy."""
    if isinstance(e, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return AuthenticationFailed(f"{provider} rejected the credentials", provider=provider,
                                    status=e.status_code)
    if isinstance(e, anthropic.RateLimitError):
        return RateLimited(f"{provider} rate limit exceeded", provider=provider, status=e.status_code)
    if isinstance(e, anthropic.APITimeoutError):
        return Unreachable(f"{provider} request timed out", provider=provider)
    if isinstance(e, anthropic.APIConnectionError):
        return Unreachable(f"Cannot connect to {provider}: {e}", provider=provider)
    if isinstance(e, anthropic.APIStatusError):
        return error_for_status(e.status_code, f"{provider} returned HTTP {e.status_code}: {e.message}",
                                provider=provider)
    return InvalidResponse(f"{provider} returned an unusable response: {e}", provider=provider)


def split_system_prompt(
    messages: List[Dict[str, str]],
) -> Tuple[Optional[str], List[Dict[str, str]]]:
    """
    Lift system messages out of the list and merge consecutive turns that
    share a role, since the Messages API requires alternating roles.
    """
    system_parts: List[str] = []
    turns: List[Dict[str, str]] = []
    for m in messages:
        role = m.get("role") or "user"
        content = m.get("content") or ""
        if role == "system":
            system_parts.append(content)
            continue
        role = "assistant" if role == "assistant" else "user"
        if turns and turns[-1]["role"] == role:
            turns[-1] = {"role": role, "content": turns[-1]["content"] + "\n\n" + content}
        else:
            turns.append({"role": role, "content": content})
    system = "\n\n".join(p for p in system_parts if p) or None
    return system, turns


class AnthropicProvider(BaseAIProvider):
    """Anthropic API provider implementation (x-api-key auth)."""

    default_model = "claude-3-sonnet-20240229"

    def __init__(self, config: AIProviderConfig, client: Optional[AsyncAnthropic] = None):
        super().__init__(config)
        self.client = client or AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url or None,
            timeout=config.timeout,
            max_retries=0,
        )
        logger.info(f"AnthropicProvider initialized with model: {self.model}")

    def _validate_config(self) -> None:
        if not self.config.api_key:
            raise AuthenticationFailed("Anthropic API key is required", provider=self.name)

    async def complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> AIResponse:
        """Get complete response from Anthropic."""
        model = self.model
        system, turns = split_system_prompt(messages)
        kwargs = {}
        if system:
            kwargs["system"] = system
        try:
            response = await self.client.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=turns,
                **kwargs,
            )
        except anthropic.AnthropicError as e:
            logger.error(f"Anthropic completion failed: {e}")
            raise translate_anthropic_error(e, self.name) from e

        blocks = getattr(response, "content", None) or []
        parts: List[str] = []
        for block in blocks:
            text = getattr(block, "text", None)
            if text:
                parts.append(text)
        if not blocks:
            raise InvalidResponse("Anthropic returned no content blocks", provider=self.name)

        usage = getattr(response, "usage", None)
        return AIResponse(
            content="".join(parts),
            model=getattr(response, "model", None) or model,
            provider=self.provider_type,
            usage=normalize_usage(
                getattr(usage, "input_tokens", None),
                getattr(usage, "output_tokens", None),
            ) if usage else None,
        )
