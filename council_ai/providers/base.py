"""Abstract base for all AI model providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from council_ai.models import Message


@dataclass
class ProviderReply:
    text: str
    reasoning: str | None = None
    token_count: int | None = None


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'anthropic')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        history: list[Message],
        system_prompt: str,
        timeout_sec: float,
    ) -> ProviderReply:
        """Send the prompt with prior history and return the model's reply.

        Args:
            prompt: The current user turn.
            history: Earlier conversation, oldest first.
            system_prompt: Role instructions for this call.
            timeout_sec: Hard limit for the request.

        Returns:
            ProviderReply with the answer text and optional reasoning.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
                ``retryable`` is set for timeouts, dropped connections and 5xx.
        """
        ...
