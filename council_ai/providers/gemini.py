"""Gemini provider using google-genai SDK with native async."""

import asyncio
import base64
import logging
import time

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from council_ai.config.config_loader import ProviderConfig
from council_ai.errors import ProviderError
from council_ai.models import Agent, Message
from council_ai.providers.base import AIProvider, ProviderReply
from council_ai.providers.formatting import ChatTurn, get_mime_type, prepare_turns

logger = logging.getLogger(__name__)


def _to_gemini(turn: ChatTurn) -> genai_types.Content:
    parts = []
    for kind, value in turn.parts:
        if kind == "text":
            parts.append(genai_types.Part.from_text(text=value))
        else:
            parts.append(genai_types.Part.from_bytes(data=base64.b64decode(value), mime_type=get_mime_type(value)))
    return genai_types.Content(role="model" if turn.role == "assistant" else "user", parts=parts)


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, agent: Agent, config: ProviderConfig, api_key: str) -> None:
        self._agent = agent
        self._config = config
        if not api_key:
            raise ProviderError(agent.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

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
                self._client.aio.models.generate_content(
                    model=self._agent.model,
                    contents=[_to_gemini(t) for t in turns],
                    config=genai_types.GenerateContentConfig(
                        system_instruction=system_prompt,
                        max_output_tokens=self._config.max_tokens,
                    ),
                ),
                timeout=timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self.name(), f"Request timed out after {timeout_sec:.0f}s", retryable=True) from exc
        except genai_errors.ServerError as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}", retryable=True, status=exc.code) from exc
        except genai_errors.ClientError as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}", status=exc.code) from exc
        except Exception as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.text:
            raise ProviderError(self.name(), "Empty response text")

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info("Gemini %s: %.2fs, %s tokens", self._agent.model, latency, token_count)

        return ProviderReply(text=response.text, token_count=token_count)
