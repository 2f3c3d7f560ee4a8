"""Single model call with retry, per-model timeout and cooperative cancellation."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from council_ai.errors import AskAborted, ProviderError
from council_ai.models import Agent, Message, ProviderResponse
from council_ai.providers.base import AIProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Agent], AIProvider]
T = TypeVar("T")

MAX_ATTEMPTS = 2
RETRY_DELAY_SEC = 2.0
DEFAULT_TIMEOUT_SEC = 300.0
REASONING_TIMEOUT_SEC = 900.0
_SLOW_MODEL_MARKERS = ("reason", "r1", "o1-", "deep-research")


def timeout_for_model(model: str) -> float:
    """Reasoning and deep-research models get the long timeout."""
    lowered = model.lower()
    if any(marker in lowered for marker in _SLOW_MODEL_MARKERS):
        return REASONING_TIMEOUT_SEC
    return DEFAULT_TIMEOUT_SEC


async def race_abort(call: Awaitable[T], signal: asyncio.Event | None) -> T:
    """Await ``call`` unless ``signal`` fires first.

    On abort the call is cancelled and awaited, so its cleanup (killing a
    subprocess, closing a connection) has run before AskAborted is raised.
    """
    if signal is None:
        return await call
    call_task = asyncio.ensure_future(call)
    abort_task = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait({call_task, abort_task}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        call_task.cancel()
        raise
    finally:
        abort_task.cancel()
    if not call_task.done():
        call_task.cancel()
        await asyncio.gather(call_task, return_exceptions=True)
        raise AskAborted("Request aborted")
    return call_task.result()


async def _sleep_or_abort(delay: float, signal: asyncio.Event | None) -> None:
    if signal is None:
        await asyncio.sleep(delay)
        return
    try:
        await asyncio.wait_for(signal.wait(), timeout=delay)
    except TimeoutError:
        return
    raise AskAborted("Request aborted")


async def send(
    agent: Agent,
    providers: ProviderFactory,
    prompt: str,
    history: list[Message],
    system_prompt: str,
    signal: asyncio.Event | None = None,
    retry_delay: float = RETRY_DELAY_SEC,
) -> ProviderResponse:
    """Call one agent's model and wrap the outcome in a ProviderResponse.

    Never raises for provider failures; the error text lands in
    ``ProviderResponse.error``. Only cancellation escapes, as AskAborted.
    """
    if signal is not None and signal.is_set():
        raise AskAborted("Request aborted")

    response = ProviderResponse(agent_id=agent.id, model=agent.model)
    start = time.monotonic()
    try:
        provider = providers(agent)
    except ProviderError as exc:
        response.error = str(exc)
        return response

    timeout_sec = timeout_for_model(agent.model)
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            reply = await race_abort(provider.complete(prompt, history, system_prompt, timeout_sec), signal)
        except ProviderError as exc:
            if exc.retryable and attempt < MAX_ATTEMPTS:
                logger.warning(
                    "Agent %s attempt %d/%d failed, retrying in %.0fs: %s",
                    agent.id, attempt, MAX_ATTEMPTS, retry_delay, exc,
                )
                await _sleep_or_abort(retry_delay, signal)
                continue
            logger.warning("Agent %s failed: %s", agent.id, exc)
            response.error = str(exc)
            break
        except AskAborted:
            raise
        except Exception as exc:
            logger.warning("Agent %s unexpected failure: %s", agent.id, exc)
            response.error = str(ProviderError(agent.name, f"Unexpected error: {exc}"))
            break
        else:
            response.text = reply.text
            response.reasoning = reply.reasoning
            break

    response.latency_sec = time.monotonic() - start
    return response
