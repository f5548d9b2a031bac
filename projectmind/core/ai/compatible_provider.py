"""
OpenAI-compatible HTTP providers.

Self-hosted servers (LM Studio and friends) and arbitrary custom endpoints
speak the `/v1/chat/completions` protocol but are frequently incomplete:
`usage` or `model` may be missing and some builds mount the route without
the `/v1` prefix. These adapters call them over plain HTTP with `requests`
in a worker thread.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

from projectmind.core.ai.base import (
    BaseAIProvider,
    AIProviderConfig,
    AIResponse,
    normalize_usage,
)
from projectmind.core.ai.errors import (
    InvalidResponse,
    ProviderError,
    RequestRejected,
    Unreachable,
    error_for_status,
)

logger = logging.getLogger(__name__)


def normalize_base_url(raw: str) -> str:
    """Add a scheme when missing and drop a trailing slash."""
    url = (raw or "").strip()
    if not url.startswith(("http://", "https://")):
        url = "http://" + url
    return url.rstrip("/")


class OpenAICompatibleProvider(BaseAIProvider):
    """
    Shared request/response translation for chat-completions servers.

    Subclasses decide which URLs to try and which auth header to send.
    """

    def __init__(self, config: AIProviderConfig, session: Optional[requests.Session] = None):
        super().__init__(config)
        self.base_url = normalize_base_url(config.base_url or "")
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        auth = self._auth_headers()
        if auth:
            self.session.headers.update(auth)

    def _validate_config(self) -> None:
        if not self.config.base_url:
            raise RequestRejected(f"Base URL is required for {self.name}", provider=self.name)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------
    def _auth_headers(self) -> Dict[str, str]:
        return {}

    def _candidate_urls(self) -> List[str]:
        return [f"{self.base_url}/v1/chat/completions"]

    def _request_model(self) -> Optional[str]:
        return self.model

    # ------------------------------------------------------------------
    # Core request & error handling
    # ------------------------------------------------------------------
    def _build_payload(
        self, messages: List[Dict[str, str]], max_tokens: int, temperature: float
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": False,
        }
        model = self._request_model()
        if model:
            payload["model"] = model
        return payload

    def _post(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST one request and return the decoded body, or raise ProviderError."""
        logger.debug(f"{self.name}: POST {url}")
        try:
            response = self.session.post(url, json=payload, timeout=self.config.timeout)
        except requests.exceptions.Timeout as e:
            raise Unreachable(f"{self.name} request timed out", provider=self.name) from e
        except requests.exceptions.RequestException as e:
            raise Unreachable(f"Cannot connect to {self.name} at {url}: {e}", provider=self.name) from e

        if not response.ok:
            text = (response.text or "").strip()[:200]
            raise error_for_status(
                response.status_code,
                f"{self.name} returned HTTP {response.status_code}: {text}",
                provider=self.name,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponse(f"{self.name} returned a non-JSON body", provider=self.name) from e
        if not isinstance(data, dict):
            raise InvalidResponse(f"{self.name} returned an unexpected body", provider=self.name)
        return data

    def _parse(self, data: Dict[str, Any]) -> AIResponse:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise InvalidResponse(f"{self.name} returned no choices", provider=self.name)
        first = choices[0] if isinstance(choices[0], dict) else {}
        message = first.get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            content = ""

        usage_raw = data.get("usage")
        usage = None
        if isinstance(usage_raw, dict):
            usage = normalize_usage(
                usage_raw.get("prompt_tokens"),
                usage_raw.get("completion_tokens"),
                usage_raw.get("total_tokens"),
            )

        return AIResponse(
            content=content,
            model=data.get("model") or self._request_model() or "unknown",
            provider=self.provider_type,
            usage=usage,
        )

    def _call(self, payload: Dict[str, Any]) -> AIResponse:
        """Try each candidate URL in order; the last failure wins."""
        last_error: Optional[ProviderError] = None
        for url in self._candidate_urls():
            try:
                return self._parse(self._post(url, payload))
            except ProviderError as e:
                logger.warning(f"{self.name}: request to {url} failed: {e}")
                last_error = e
        raise last_error or Unreachable(f"Cannot connect to {self.name}", provider=self.name)

    async def complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> AIResponse:
        payload = self._build_payload(messages, max_tokens, temperature)
        return await asyncio.to_thread(self._call, payload)


class LMStudioProvider(OpenAICompatibleProvider):
    """Local LM Studio server: no auth, `auto` lets the server pick the model."""

    def _candidate_urls(self) -> List[str]:
        return [
            f"{self.base_url}/v1/chat/completions",
            f"{self.base_url}/chat/completions",
        ]

    def _request_model(self) -> Optional[str]:
        model = (self.config.model or "").strip()
        if not model or model.lower() == "auto":
            return None
        return model

    def _parse(self, data: Dict[str, Any]) -> AIResponse:
        response = super()._parse(data)
        if not response.content:
            raise InvalidResponse("Empty response from LM Studio", provider=self.name)
        return response


class CustomProvider(OpenAICompatibleProvider):
    """Any OpenAI-compatible endpoint; bearer auth only when a key is set."""

    default_model = "default"

    def _auth_headers(self) -> Dict[str, str]:
        if self.config.api_key:
            return {"Authorization": f"Bearer {self.config.api_key}"}
        return {}
