"""Anthropic Claude provider using anthropic SDK with native async."""

import asyncio
import logging
import time

import anthropic as anthropic_sdk

from council_ai.config.config_loader import ProviderConfig
from council_ai.errors import ProviderError
from council_ai.models import Agent, Message
from council_ai.providers.base import AIProvider, ProviderReply
from council_ai.providers.formatting import ChatTurn, get_mime_type, prepare_turns

logger = logging.getLogger(__name__)


def _to_anthropic(turn: ChatTurn) -> dict:
    content = []
    for kind, value in turn.parts:
        if kind == "text":
            content.append({"type": "text", "text": value})
        else:
            content.append({
                "type": "image",
                "source": {"type": "base64", "media_type": get_mime_type(value), "data": value},
            })
    return {"role": turn.role, "content": content}


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, agent: Agent, config: ProviderConfig, api_key: str) -> None:
        self._agent = agent
        self._config = config
        if not api_key:
            raise ProviderError(agent.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key, base_url=config.base_url)

    def name(self) -> str:
        return self._agent.name

    def model_string(self) -> str:
        return self._agent.model

    async def complete(
        self,
        prompt: str,
        history: list[Message],
        system_prompt: str,
        timeout_sec: float,
    ) -> ProviderReply:
        turns = prepare_turns(history, prompt, system_prompt, self._agent.model)
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._agent.model,
                    max_tokens=self._config.max_tokens,
                    system=system_prompt,
                    messages=[_to_anthropic(t) for t in turns],
                ),
                timeout=timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self.name(), f"Request timed out after {timeout_sec:.0f}s", retryable=True) from exc
        except anthropic_sdk.APIConnectionError as exc:
            raise ProviderError(self.name(), f"Connection failed: {exc}", retryable=True) from exc
        except anthropic_sdk.APIStatusError as exc:
            raise ProviderError(
                self.name(),
                f"API call failed ({exc.status_code}): {exc.message}",
                retryable=exc.status_code >= 500,
                status=exc.status_code,
            ) from exc
        except Exception as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        text_blocks = [b.text for b in response.content if b.type == "text"]
        thinking_blocks = [b.thinking for b in response.content if b.type == "thinking"]
        if not text_blocks:
            raise ProviderError(self.name(), "No text blocks in response")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info("Anthropic %s: %.2fs, %s tokens", self._agent.model, latency, token_count)

        return ProviderReply(
            text="\n".join(text_blocks),
            reasoning="\n".join(thinking_blocks) or None,
            token_count=token_count,
        )
