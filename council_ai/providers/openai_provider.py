"""OpenAI-compatible provider using openai SDK with native async.

Serves OpenAI itself and the vendors exposing the same chat completions API
(DeepSeek, xAI Grok, Perplexity, OpenRouter) through ``base_url``.
"""

import asyncio
import logging
import time

import openai
from openai import AsyncOpenAI

from council_ai.config.config_loader import ProviderConfig
from council_ai.errors import ProviderError
from council_ai.models import Agent, Message
from council_ai.providers.base import AIProvider, ProviderReply
from council_ai.providers.formatting import ChatTurn, get_mime_type, prepare_turns

logger = logging.getLogger(__name__)

_OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://github.com/council-ai/council-ai",
    "X-Title": "council-ai",
}
# Reasoning families that take max_completion_tokens instead of max_tokens
_COMPLETION_TOKEN_PREFIXES = ("o1", "o3", "o4")
_REASONING_MAX_TOKENS = 32768


def _to_openai(turn: ChatTurn) -> dict:
    if not turn.has_images:
        return {"role": turn.role, "content": turn.text}
    content = []
    for kind, value in turn.parts:
        if kind == "text":
            content.append({"type": "text", "text": value})
        else:
            url = f"data:{get_mime_type(value)};base64,{value}"
            content.append({"type": "image_url", "image_url": {"url": url}})
    return {"role": turn.role, "content": content}


class OpenAIProvider(AIProvider):
    """OpenAI-compatible provider via openai SDK."""

    def __init__(self, agent: Agent, config: ProviderConfig, api_key: str) -> None:
        self._agent = agent
        self._config = config
        if not api_key:
            raise ProviderError(agent.name, f"Missing API key: {config.api_key_env}")
        headers = _OPENROUTER_HEADERS if config.name == "openrouter" else None
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url, default_headers=headers)

    def name(self) -> str:
        return self._agent.name

    def model_string(self) -> str:
        return self._agent.model

    def _token_kwargs(self) -> dict:
        if self._agent.model.startswith(_COMPLETION_TOKEN_PREFIXES):
            return {"max_completion_tokens": _REASONING_MAX_TOKENS}
        return {"max_tokens": self._config.max_tokens}

    async def complete(
        self,
        prompt: str,
        history: list[Message],
        system_prompt: str,
        timeout_sec: float,
    ) -> ProviderReply:
        turns = prepare_turns(history, prompt, system_prompt, self._agent.model)
        messages = [{"role": "system", "content": system_prompt}] + [_to_openai(t) for t in turns]
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._agent.model,
                    messages=messages,
                    **self._token_kwargs(),
                ),
                timeout=timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self.name(), f"Request timed out after {timeout_sec:.0f}s", retryable=True) from exc
        except openai.APIConnectionError as exc:
            raise ProviderError(self.name(), f"Connection failed: {exc}", retryable=True) from exc
        except openai.APIStatusError as exc:
            raise ProviderError(
                self.name(),
                f"API call failed ({exc.status_code}): {exc.message}",
                retryable=exc.status_code >= 500,
                status=exc.status_code,
            ) from exc
        except Exception as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self.name(), "Empty response content")

        # DeepSeek R1 and OpenRouter return reasoning beside the answer
        reasoning = getattr(choice.message, "reasoning_content", None) or getattr(choice.message, "reasoning", None)

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("OpenAI-compatible %s (%s): %.2fs, %s tokens", self._agent.model, self._config.name, latency, token_count)

        return ProviderReply(text=choice.message.content, reasoning=reasoning, token_count=token_count)
