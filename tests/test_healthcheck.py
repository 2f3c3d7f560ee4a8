"""Unit tests for council_ai/healthcheck.py (no real API calls)."""

import asyncio
from unittest.mock import AsyncMock

from council_ai import healthcheck
from council_ai.errors import ProviderError
from council_ai.healthcheck import run_health_checks
from tests.conftest import MockProvider, factory_for


async def test_all_agents_pass(sample_agents):
    providers = {a.id: MockProvider(a.name, "OK") for a in sample_agents}

    results = await run_health_checks(sample_agents, factory_for(providers))

    assert results == {"claude": (True, ""), "gpt": (True, ""), "gemini": (True, "")}


async def test_one_agent_fails(sample_agents):
    """A provider that raises returns ok=False with the error message."""
    providers = {a.id: MockProvider(a.name, "OK") for a in sample_agents}
    providers["gpt"].complete = AsyncMock(side_effect=ProviderError("GPT", "403 Forbidden", status=403))

    results = await run_health_checks(sample_agents, factory_for(providers))

    assert results["claude"] == (True, "")
    ok, err = results["gpt"]
    assert ok is False
    assert "403" in err


async def test_unexpected_exception_counts_as_failure(sample_agents):
    providers = {a.id: MockProvider(a.name) for a in sample_agents}
    for agent_id, p in providers.items():
        p.complete = AsyncMock(side_effect=Exception(f"{agent_id} down"))

    results = await run_health_checks(sample_agents, factory_for(providers))

    for agent_id, (ok, err) in results.items():
        assert ok is False
        assert agent_id in err


async def test_factory_error_counts_as_failure(sample_agents):
    def factory(agent):
        raise ProviderError(agent.name, "Missing API key: OPENAI_API_KEY")

    results = await run_health_checks(sample_agents[1:2], factory)

    assert results["gpt"][0] is False
    assert "Missing API key" in results["gpt"][1]


async def test_empty_agents():
    assert await run_health_checks([], factory_for({})) == {}


async def test_timeout_counts_as_failure(sample_agents, monkeypatch):
    """A provider that hangs past the timeout is marked as failed."""
    provider = MockProvider("slow")

    async def hang(*args, **kwargs):
        await asyncio.sleep(9999)

    provider.complete = hang
    monkeypatch.setattr(healthcheck, "_TIMEOUT_SEC", 0.05)

    results = await run_health_checks(sample_agents[:1], lambda a: provider)

    ok, err = results["claude"]
    assert ok is False
    assert "Timed out" in err
