"""Context-budget compaction: drop the oldest history so the chair's window has room."""

import logging
import math

from council_ai.history import HistoryStore
from council_ai.models import CompactionResult, Message
from council_ai.tokens import estimate_history_tokens, estimate_message_tokens

logger = logging.getLogger(__name__)

# Above this share of the window we compact; the rest is left for the model's output.
TRIGGER_RATIO = 0.8
# Compaction trims down to this share of the window.
TARGET_RATIO = 0.5
# Never keep fewer recent messages than this, whatever the budget says.
MIN_KEEP = 5


def plan_compaction(
    messages: list[Message],
    context_limit: int,
    trigger_ratio: float = TRIGGER_RATIO,
    target_ratio: float = TARGET_RATIO,
    min_keep: int = MIN_KEEP,
) -> CompactionResult | None:
    """Decide how many of the oldest messages to discard.

    Returns None when the history fits under ``context_limit * trigger_ratio``.
    Otherwise walks from the oldest message forward until the remaining
    estimate is at or below ``context_limit * target_ratio`` and reports the
    messages walked over as removed, keeping at least ``min_keep`` of the most
    recent ones.
    """
    tokens_before = estimate_history_tokens(messages)
    if tokens_before <= math.floor(context_limit * trigger_ratio):
        return None

    target = math.floor(context_limit * target_ratio)
    remaining = tokens_before
    keep = len(messages)
    for message in messages:
        remaining -= estimate_message_tokens(message)
        keep -= 1
        if remaining <= target:
            break

    keep = min(len(messages), max(keep, min_keep))
    kept = messages[len(messages) - keep:]
    result = CompactionResult(
        removed=len(messages) - keep,
        kept=keep,
        tokens_before=tokens_before,
        tokens_after=estimate_history_tokens(kept),
    )
    logger.info(
        "Compaction planned: %d -> %d tokens, removing %d of %d messages",
        result.tokens_before,
        result.tokens_after,
        result.removed,
        len(messages),
    )
    return result


def compact_history(store: HistoryStore, context_limit: int) -> CompactionResult | None:
    """Apply :func:`plan_compaction` to a history store. Returns None when nothing was trimmed."""
    result = plan_compaction(store.messages(), context_limit)
    if result is None or result.removed == 0:
        return None
    store.compact(result.kept)
    return result
