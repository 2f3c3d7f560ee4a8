"""Character-based token estimates and model context windows.

Budget math only: the numbers are deliberately conservative approximations,
not tokenizer output.
"""

import math

from council_ai.models import Message

# ~2.5 chars per token keeps Cyrillic and mixed text on the safe side
CHARS_PER_TOKEN = 2.5
IMAGE_TOKEN_PENALTY = 1000
DEFAULT_CONTEXT_WINDOW = 128_000

# Substring keys; the longest matching key wins.
MODEL_CONTEXT_WINDOWS: dict[str, int] = {
    "sonar": 128_000,
    "sonar-pro": 200_000,
    "sonar-reasoning": 128_000,
    "sonar-deep-research": 128_000,
    "gemini-3-pro": 200_000,
    "gemini-2.5-pro": 2_000_000,
    "gemini-2.5-flash": 1_000_000,
    "gemini-2.0-flash": 1_000_000,
    "gemma-3": 8_192,
    "gpt-5": 128_000,
    "gpt-4.1": 1_000_000,
    "gpt-4o": 128_000,
    "gpt-4": 8_192,
    "gpt-4-turbo": 128_000,
    "gpt-3.5": 16_385,
    "o1": 200_000,
    "o3": 200_000,
    "o4-mini": 200_000,
    "claude": 200_000,
    "deepseek-chat": 64_000,
    "deepseek-reasoner": 64_000,
    "grok-4": 128_000,
    "grok-3": 128_000,
    "grok-2": 32_768,
    "grok-code-fast": 128_000,
}


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_message_tokens(message: Message) -> int:
    return estimate_tokens(message.text) + IMAGE_TOKEN_PENALTY * len(message.images)


def estimate_history_tokens(messages: list[Message]) -> int:
    return sum(estimate_message_tokens(m) for m in messages)


def context_window_for(model: str, default: int = DEFAULT_CONTEXT_WINDOW) -> int:
    """Return the context window for a model id, exact match first, then longest substring."""
    if model in MODEL_CONTEXT_WINDOWS:
        return MODEL_CONTEXT_WINDOWS[model]
    for key in sorted(MODEL_CONTEXT_WINDOWS, key=len, reverse=True):
        if key in model:
            return MODEL_CONTEXT_WINDOWS[key]
    return default
