"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from council_ai.config.config_loader import AppConfig, DefaultsConfig, PromptsConfig, ProviderConfig, RolesConfig
from council_ai.history import HistoryStore
from council_ai.models import Agent, Message, PermissionSet, ToolResult
from council_ai.providers.base import AIProvider, ProviderReply
from council_ai.stats import StatsStore


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because complete is defined in the class body below.
        self.complete = AsyncMock(return_value=ProviderReply(text=response_content))  # type: ignore[assignment]

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def complete(  # type: ignore[override]
        self,
        prompt: str,
        history: list[Message],
        system_prompt: str,
        timeout_sec: float,
    ) -> ProviderReply:
        """Default implementation; replaced by AsyncMock in __init__."""
        return ProviderReply(text=self._response_content)


class FakeExecutor:
    """Stands in for ToolExecutor; every directive succeeds with ``output``."""

    def __init__(self, output: str = "ok") -> None:
        self.execute = AsyncMock(return_value=ToolResult(output=output))

    async def close(self) -> None:
        pass


def factory_for(providers: dict[str, MockProvider]):
    """Provider factory resolving agents by id, as the council expects."""
    return lambda agent: providers[agent.id]


@pytest.fixture
def sample_agents() -> list[Agent]:
    return [
        Agent(id="claude", name="Claude", provider="anthropic", model="claude-sonnet-4-5"),
        Agent(id="gpt", name="GPT", provider="openai", model="gpt-4o"),
        Agent(id="gemini", name="Gemini", provider="gemini", model="gemini-2.5-flash"),
    ]


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        council="Advise the chair.",
        chair="You are the chair.",
        chair_council_suffix="Weigh the council.",
        secretary="Return JSON verdicts.",
        tools="TOOLS GRAMMAR",
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(storage_dir=tmp_path / "store")


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
    sample_agents: list[Agent],
) -> AppConfig:
    providers = {
        "anthropic": ProviderConfig("anthropic", "anthropic", "ANTHROPIC_API_KEY", 8192),
        "openai": ProviderConfig("openai", "openai", "OPENAI_API_KEY", 16384),
        "gemini": ProviderConfig("gemini", "gemini", "GEMINI_API_KEY", 8192),
    }
    return AppConfig(
        defaults=sample_defaults_config,
        providers=providers,
        agents=sample_agents,
        prompts=sample_prompts_config,
        roles=RolesConfig(chair="claude", secretary="gemini"),
        permissions=PermissionSet(),
        available_providers=set(providers),
    )


@pytest.fixture
def mock_providers() -> dict[str, MockProvider]:
    return {
        "claude": MockProvider("Claude", "Final answer from the chair."),
        "gpt": MockProvider("GPT", "Advice from GPT."),
        "gemini": MockProvider("Gemini", '{"gpt": "accepted", "claude": "accepted"}'),
    }


@pytest.fixture
def history_store() -> HistoryStore:
    return HistoryStore()


@pytest.fixture
def stats_store(tmp_path: Path) -> StatsStore:
    return StatsStore(tmp_path / "stats.json")


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()
