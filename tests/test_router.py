"""
ProviderRouter tests: adapter selection, timeout, retry policy and the
blank-reply rule. Adapters are replaced through the factory table.
"""

import asyncio
from typing import Any, Dict, List

import pytest

from projectmind.core.ai.base import AIResponse, BaseAIProvider
from projectmind.core.ai.errors import (
    AuthenticationFailed,
    InvalidResponse,
    UnsupportedProvider,
    Unreachable,
)
from projectmind.core.ai.factory import AIProviderFactory
from projectmind.core.ai.router import ProviderRouter
from projectmind.core.errors import ValidationError
from projectmind.core.models import AISettings, ChatMessage, ProviderType, Role


def run_async(coro):
    """Helper to run async coroutines inside plain pytest tests."""
    return asyncio.run(coro)


class ScriptedProvider(BaseAIProvider):
    """
    Adapter whose replies come from the class-level `script`:
    strings are returned as content, exceptions are raised, coroutine
    functions are awaited.
    """

    script: List[Any] = []
    configs: List[Any] = []
    calls: List[Dict[str, Any]] = []

    def __init__(self, config):
        super().__init__(config)
        type(self).configs.append(config)

    async def complete(self, messages, max_tokens, temperature):
        type(self).calls.append(
            {"messages": messages, "max_tokens": max_tokens, "temperature": temperature}
        )
        step = type(self).script.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return await step()
        return AIResponse(
            content=step,
            model="scripted-model",
            provider=self.provider_type,
            usage={"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
        )


@pytest.fixture
def scripted(monkeypatch):
    class Scripted(ScriptedProvider):
        script: List[Any] = []
        configs: List[Any] = []
        calls: List[Dict[str, Any]] = []

    for provider_type in ProviderType:
        monkeypatch.setitem(AIProviderFactory._providers, provider_type, Scripted)
    return Scripted


def openai_settings(**overrides) -> AISettings:
    values = dict(user_id="u1", provider=ProviderType.OPENAI, api_key="sk-test", max_tokens=256, temperature=0.2)
    values.update(overrides)
    return AISettings(**values)


USER_TURN = [ChatMessage(Role.SYSTEM, "ctx"), ChatMessage(Role.USER, "Hello")]


def test_generate_returns_non_empty_reply(scripted):
    scripted.script = ["Hi! How can I help?"]
    router = ProviderRouter()

    response = run_async(router.generate(openai_settings(), USER_TURN))

    assert response.content == "Hi! How can I help?"
    assert scripted.calls[0]["max_tokens"] == 256
    assert scripted.calls[0]["temperature"] == 0.2
    assert scripted.calls[0]["messages"] == [
        {"role": "system", "content": "ctx"},
        {"role": "user", "content": "Hello"},
    ]


def test_unknown_provider_fails_before_any_adapter_is_built(scripted):
    router = ProviderRouter()
    settings = openai_settings(provider="GEMINI")

    with pytest.raises(UnsupportedProvider):
        run_async(router.generate(settings, USER_TURN))

    assert scripted.configs == []
    assert scripted.calls == []


def test_messages_without_non_system_turn_are_rejected(scripted):
    router = ProviderRouter()
    with pytest.raises(ValidationError):
        run_async(router.generate(openai_settings(), [ChatMessage(Role.SYSTEM, "only context")]))
    assert scripted.calls == []


def test_transient_failure_is_retried_once(scripted):
    scripted.script = [Unreachable("flaky", provider="OPENAI"), "Recovered"]
    router = ProviderRouter(transient_retries=1)

    response = run_async(router.generate(openai_settings(), USER_TURN))

    assert response.content == "Recovered"
    assert len(scripted.calls) == 2


def test_transient_failure_gives_up_after_retry_budget(scripted):
    scripted.script = [Unreachable("down"), Unreachable("still down"), "never reached"]
    router = ProviderRouter(transient_retries=1)

    with pytest.raises(Unreachable):
        run_async(router.generate(openai_settings(), USER_TURN))
    assert len(scripted.calls) == 2


def test_non_transient_failure_is_not_retried(scripted):
    scripted.script = [AuthenticationFailed("bad key"), "never reached"]
    router = ProviderRouter(transient_retries=3)

    with pytest.raises(AuthenticationFailed):
        run_async(router.generate(openai_settings(), USER_TURN))
    assert len(scripted.calls) == 1


def test_timeout_becomes_unreachable(scripted):
    async def slow():
        await asyncio.sleep(1)

    scripted.script = [slow]
    router = ProviderRouter(timeout=0.01, transient_retries=0)

    with pytest.raises(Unreachable):
        run_async(router.generate(openai_settings(), USER_TURN))


def test_blank_reply_is_invalid_response(scripted):
    scripted.script = ["   \n"]
    router = ProviderRouter()

    with pytest.raises(InvalidResponse):
        run_async(router.generate(openai_settings(), USER_TURN))
    assert len(scripted.calls) == 1


def test_hosted_provider_uses_service_configuration(scripted):
    scripted.script = ["ok"]
    router = ProviderRouter(
        timeout=12,
        hosted={"base_url": "https://hosted.example/v1", "api_key": "hosted-key", "model": "hosted-model"},
    )
    settings = AISettings.default_for("u1")

    run_async(router.generate(settings, USER_TURN))

    config = scripted.configs[0]
    assert config.provider_type is ProviderType.Z_AI
    assert config.base_url == "https://hosted.example/v1"
    assert config.api_key == "hosted-key"
    assert config.model == "hosted-model"
    assert config.timeout == 12


def test_settings_and_messages_are_not_mutated(scripted):
    scripted.script = ["ok"]
    settings = openai_settings()
    before = (settings.provider, settings.model, settings.max_tokens, settings.temperature)
    messages = list(USER_TURN)

    run_async(ProviderRouter().generate(settings, messages))

    assert (settings.provider, settings.model, settings.max_tokens, settings.temperature) == before
    assert messages == USER_TURN


def test_test_connection_never_raises(scripted):
    scripted.script = [AuthenticationFailed("bad key")]
    result = run_async(ProviderRouter().test_connection(openai_settings()))
    assert result["success"] is False
    assert result["error"] == "AuthenticationFailed"

    scripted.script = ["pong"]
    result = run_async(ProviderRouter().test_connection(openai_settings(), "ping"))
    assert result["success"] is True
    assert result["response"] == "pong"
    assert scripted.calls[-1]["messages"] == [{"role": "user", "content": "ping"}]


def test_router_reads_timeout_and_retries_from_config():
    class FakeConfig:
        values = {"ai.timeout": 5, "ai.transient_retries": 2, "hosted": {"api_key": "k"}}

        def get(self, key, default=None):
            return self.values.get(key, default)

    router = ProviderRouter.from_config(FakeConfig())
    assert router.timeout == 5.0
    assert router.transient_retries == 2
    assert router.hosted == {"api_key": "k"}
