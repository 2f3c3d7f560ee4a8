"""Build and cache one provider adapter per agent."""

import logging

from council_ai.config.config_loader import AppConfig, api_key_for
from council_ai.errors import ProviderError
from council_ai.models import Agent
from council_ai.providers.anthropic import AnthropicProvider
from council_ai.providers.base import AIProvider
from council_ai.providers.gemini import GeminiProvider
from council_ai.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

# settings.yaml ``sdk`` -> adapter class
PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


class ProviderRegistry:
    """Callable ``Agent -> AIProvider``. Adapters are created lazily and reused.

    Raises ProviderError when the agent's provider is unknown or has no key.
    """

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self._cache: dict[str, AIProvider] = {}

    def __call__(self, agent: Agent) -> AIProvider:
        cached = self._cache.get(agent.id)
        if cached is not None:
            return cached

        provider_cfg = self._config.providers.get(agent.provider)
        if provider_cfg is None:
            raise ProviderError(agent.name, f"Unknown provider: {agent.provider}")
        cls = PROVIDER_CLASSES.get(provider_cfg.sdk)
        if cls is None:
            raise ProviderError(agent.name, f"Unsupported sdk '{provider_cfg.sdk}' for {agent.provider}")

        provider = cls(agent, provider_cfg, api_key_for(self._config, agent.provider))
        logger.debug("Provider created for %s: %s via %s", agent.id, agent.model, provider_cfg.sdk)
        self._cache[agent.id] = provider
        return provider
