"""
Provider Router

Selects the adapter for a user's settings, bounds every call with a timeout,
and retries exactly the failures that are worth retrying. Everything that
leaves this module is either an AIResponse or a ProviderError.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from projectmind.core.ai.base import AIProviderConfig, AIResponse, BaseAIProvider
from projectmind.core.ai.errors import (
    InvalidResponse,
    ProviderError,
    Unreachable,
)
from projectmind.core.ai.factory import AIProviderFactory
from projectmind.core.errors import ValidationError
from projectmind.core.models import AISettings, ChatMessage, ProviderType, Role

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_TRANSIENT_RETRIES = 1

MessageLike = Union[ChatMessage, Dict[str, str]]


def to_wire_messages(messages: Sequence[MessageLike]) -> List[Dict[str, str]]:
    """Convert ChatMessage records (or dicts) to role/content dictionaries."""
    wire: List[Dict[str, str]] = []
    for m in messages:
        if isinstance(m, ChatMessage):
            wire.append(m.to_dict())
        else:
            wire.append({"role": str(m.get("role") or "user"), "content": str(m.get("content") or "")})
    return wire


class ProviderRouter:
    """
    generate(settings, messages) -> AIResponse

    - unknown provider ids fail with UnsupportedProvider before any I/O
    - each attempt is bounded by `timeout` seconds (timeout -> Unreachable)
    - transient failures are retried `transient_retries` times, nothing else is
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transient_retries: int = DEFAULT_TRANSIENT_RETRIES,
        hosted: Optional[Dict[str, Any]] = None,
        factory: type = AIProviderFactory,
    ):
        self.timeout = float(timeout)
        self.transient_retries = max(0, int(transient_retries))
        self.hosted = dict(hosted or {})
        self.factory = factory

    @classmethod
    def from_config(cls, config_service) -> "ProviderRouter":
        return cls(
            timeout=config_service.get("ai.timeout", DEFAULT_TIMEOUT),
            transient_retries=config_service.get("ai.transient_retries", DEFAULT_TRANSIENT_RETRIES),
            hosted=config_service.get("hosted", {}),
        )

    # ------------------------------------------------------------------
    # Adapter selection
    # ------------------------------------------------------------------
    def _endpoint_config(self, provider_type: ProviderType, settings: AISettings) -> AIProviderConfig:
        if provider_type is ProviderType.Z_AI:
            return AIProviderConfig(
                provider_type=provider_type,
                api_key=self.hosted.get("api_key"),
                base_url=self.hosted.get("base_url"),
                model=settings.model or self.hosted.get("model"),
                timeout=self.timeout,
            )
        return AIProviderConfig(
            provider_type=provider_type,
            api_key=settings.api_key,
            base_url=settings.base_url,
            model=settings.model,
            timeout=self.timeout,
        )

    def get_adapter(self, settings: AISettings) -> BaseAIProvider:
        # Raises UnsupportedProvider before any adapter (or socket) exists.
        provider_class = self.factory.get_provider_class(settings.provider)
        provider_type = ProviderType.parse(settings.provider)
        return provider_class(self._endpoint_config(provider_type, settings))

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    async def _attempt(
        self, adapter: BaseAIProvider, wire: List[Dict[str, str]], settings: AISettings
    ) -> AIResponse:
        try:
            response = await asyncio.wait_for(
                adapter.complete(
                    wire,
                    max_tokens=settings.max_tokens,
                    temperature=settings.temperature,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise Unreachable(
                f"{adapter.name} did not answer within {self.timeout:g}s",
                provider=adapter.name,
            ) from e

        if not response.content or not response.content.strip():
            raise InvalidResponse(f"{adapter.name} returned an empty reply", provider=adapter.name)
        return response

    async def generate(self, settings: AISettings, messages: Sequence[MessageLike]) -> AIResponse:
        """
        Dispatch a normalized chat request to the configured provider.

        Raises:
            ValidationError: no non-system message to answer
            ProviderError: any provider-side failure, after retries
        """
        wire = to_wire_messages(messages)
        if not any(m["role"] != Role.SYSTEM.value for m in wire):
            raise ValidationError(
                "At least one non-system message is required",
                details={"messages": "no user or assistant turn"},
            )

        adapter = self.get_adapter(settings)
        attempts = 1 + self.transient_retries
        for attempt in range(1, attempts + 1):
            try:
                response = await self._attempt(adapter, wire, settings)
            except ProviderError as e:
                if e.transient and attempt < attempts:
                    logger.warning(
                        f"{adapter.name}: transient failure on attempt {attempt}/{attempts}: {e}; retrying"
                    )
                    continue
                logger.error(f"{adapter.name}: generation failed: {e}")
                raise
            logger.info(
                f"{adapter.name}: reply received (model={response.model}, usage={response.usage})"
            )
            return response

        # range() above always returns or raises.
        raise Unreachable(f"{adapter.name} exhausted all attempts", provider=adapter.name)

    async def test_connection(self, settings: AISettings, test_message: str = "Hello") -> Dict[str, Any]:
        """Send one test message and report the outcome without raising."""
        provider = getattr(settings.provider, "value", settings.provider)
        try:
            response = await self.generate(settings, [ChatMessage(Role.USER, test_message)])
        except ProviderError as e:
            return {
                "success": False,
                "message": f"Connection to {provider} failed: {e.message}",
                "error": e.__class__.__name__,
            }
        return {
            "success": True,
            "message": f"Connection to {provider} established",
            "response": response.content,
            "model": response.model,
            "usage": response.usage,
        }
