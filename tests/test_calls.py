"""Tests for council_ai/calls.py."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from council_ai.calls import DEFAULT_TIMEOUT_SEC, REASONING_TIMEOUT_SEC, send, timeout_for_model
from council_ai.errors import AskAborted, ProviderError
from council_ai.models import Agent
from council_ai.providers.base import ProviderReply
from tests.conftest import MockProvider

AGENT = Agent(id="gpt", name="GPT", provider="openai", model="gpt-4o")


def test_timeout_for_reasoning_models():
    assert timeout_for_model("deepseek-reasoner") == REASONING_TIMEOUT_SEC
    assert timeout_for_model("sonar-deep-research") == REASONING_TIMEOUT_SEC
    assert timeout_for_model("o1-preview") == REASONING_TIMEOUT_SEC
    assert timeout_for_model("gpt-4o") == DEFAULT_TIMEOUT_SEC


async def test_send_success():
    provider = MockProvider("GPT", "Hello")
    resp = await send(AGENT, lambda a: provider, "hi", [], "system")
    assert resp.ok
    assert resp.text == "Hello"
    assert resp.agent_id == "gpt"
    assert resp.model == "gpt-4o"
    assert resp.latency_sec >= 0
    provider.complete.assert_awaited_once_with("hi", [], "system", DEFAULT_TIMEOUT_SEC)


async def test_send_retries_retryable_error_once():
    provider = MockProvider("GPT")
    provider.complete = AsyncMock(
        side_effect=[ProviderError("GPT", "Timeout", retryable=True), ProviderReply(text="Second try")]
    )
    resp = await send(AGENT, lambda a: provider, "hi", [], "system", retry_delay=0)
    assert resp.ok
    assert resp.text == "Second try"
    assert provider.complete.await_count == 2


async def test_send_gives_up_after_two_attempts():
    provider = MockProvider("GPT")
    provider.complete = AsyncMock(side_effect=ProviderError("GPT", "Server error", retryable=True, status=503))
    resp = await send(AGENT, lambda a: provider, "hi", [], "system", retry_delay=0)
    assert not resp.ok
    assert "Server error" in resp.error
    assert provider.complete.await_count == 2


async def test_send_does_not_retry_client_error():
    provider = MockProvider("GPT")
    provider.complete = AsyncMock(side_effect=ProviderError("GPT", "Bad request", status=400))
    resp = await send(AGENT, lambda a: provider, "hi", [], "system", retry_delay=0)
    assert not resp.ok
    assert provider.complete.await_count == 1


async def test_send_factory_error_becomes_response_error():
    def factory(agent):
        raise ProviderError(agent.name, "Missing API key: OPENAI_API_KEY")

    resp = await send(AGENT, factory, "hi", [], "system")
    assert not resp.ok
    assert "Missing API key" in resp.error


async def test_send_unexpected_exception_is_wrapped():
    provider = MockProvider("GPT")
    provider.complete = AsyncMock(side_effect=RuntimeError("kaboom"))
    resp = await send(AGENT, lambda a: provider, "hi", [], "system", retry_delay=0)
    assert not resp.ok
    assert "kaboom" in resp.error


async def test_send_preset_signal_aborts_before_call():
    provider = MockProvider("GPT")
    signal = asyncio.Event()
    signal.set()
    with pytest.raises(AskAborted):
        await send(AGENT, lambda a: provider, "hi", [], "system", signal=signal)
    provider.complete.assert_not_awaited()


async def test_send_signal_aborts_in_flight_call():
    provider = MockProvider("GPT")
    started = asyncio.Event()

    async def slow(*args, **kwargs):
        started.set()
        await asyncio.sleep(10)
        return ProviderReply(text="too late")

    provider.complete = slow
    signal = asyncio.Event()

    async def fire():
        await started.wait()
        signal.set()

    asyncio.create_task(fire())
    with pytest.raises(AskAborted):
        await send(AGENT, lambda a: provider, "hi", [], "system", signal=signal)
