"""Vendor-neutral message preparation shared by the provider adapters."""

import logging
from dataclasses import dataclass, field

from council_ai.models import Message
from council_ai.tokens import context_window_for, estimate_message_tokens, estimate_tokens

logger = logging.getLogger(__name__)

# Window assumed for models missing from the context table.
UNKNOWN_MODEL_CONTEXT = 4096
OUTPUT_RESERVE_TOKENS = 2000

_MIME_SIGNATURES = (
    ("/9j/", "image/jpeg"),
    ("iVBORw0KGgo", "image/png"),
    ("R0lGODdh", "image/gif"),
    ("R0lGODlh", "image/gif"),
    ("UklGR", "image/webp"),
)


@dataclass
class ChatTurn:
    role: str                                   # "user" or "assistant"
    parts: list[tuple[str, str]] = field(default_factory=list)  # ("text", str) | ("image", base64)

    @property
    def text(self) -> str:
        return "\n".join(value for kind, value in self.parts if kind == "text")

    @property
    def has_images(self) -> bool:
        return any(kind == "image" for kind, _ in self.parts)


def get_mime_type(data: str) -> str:
    """Guess an image MIME type from the first bytes of its base64 encoding."""
    for prefix, mime in _MIME_SIGNATURES:
        if data.startswith(prefix):
            return mime
    return "image/jpeg"


def _turn_for(message: Message) -> ChatTurn:
    role = "assistant" if message.role == "assistant" else "user"
    parts = [("text", message.text)] + [("image", image) for image in message.images]
    return ChatTurn(role=role, parts=parts)


def prepare_turns(
    history: list[Message],
    prompt: str,
    system_prompt: str,
    model: str,
) -> list[ChatTurn]:
    """Fit history into the model window and append the prompt.

    History is taken newest first until the budget (window minus output
    reserve minus system prompt and prompt) runs out. A trailing user message
    identical to the prompt is skipped. Consecutive turns with the same role
    are merged since several vendors reject them.
    """
    budget = context_window_for(model, default=UNKNOWN_MODEL_CONTEXT) - OUTPUT_RESERVE_TOKENS
    remaining = max(0, budget - estimate_tokens(system_prompt) - estimate_tokens(prompt))

    selected: list[ChatTurn] = []
    for index in range(len(history) - 1, -1, -1):
        message = history[index]
        if index == len(history) - 1 and message.role == "user" and message.text == prompt:
            continue
        cost = estimate_message_tokens(message)
        if remaining - cost < 0:
            logger.debug("History trimmed for %s: kept %d of %d messages", model, len(selected), len(history))
            break
        selected.append(_turn_for(message))
        remaining -= cost
    selected.reverse()
    selected.append(ChatTurn(role="user", parts=[("text", prompt)]))

    merged: list[ChatTurn] = []
    for turn in selected:
        if merged and merged[-1].role == turn.role:
            merged[-1].parts.extend(turn.parts)
        else:
            merged.append(ChatTurn(role=turn.role, parts=list(turn.parts)))
    return merged
