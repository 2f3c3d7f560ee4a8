"""Council fan-out: ask every member in parallel and collect opinions in member order."""

import asyncio
import logging
from collections.abc import Callable

from council_ai.calls import ProviderFactory, send
from council_ai.events import EventEmitter
from council_ai.models import Agent, EventType, Message, ProviderResponse
from council_ai.tokens import estimate_history_tokens, estimate_tokens

logger = logging.getLogger(__name__)

ResponseCallback = Callable[[ProviderResponse], None]


def identity_prompt(agent: Agent, council_prompt: str) -> str:
    return f"You are model {agent.model} from provider {agent.provider}. {council_prompt}"


async def _ask_member(
    agent: Agent,
    question: str,
    history: list[Message],
    providers: ProviderFactory,
    council_prompt: str,
    emitter: EventEmitter,
    signal: asyncio.Event | None,
    on_response: ResponseCallback | None,
) -> ProviderResponse:
    system_prompt = identity_prompt(agent, council_prompt)
    estimated = estimate_tokens(system_prompt) + estimate_tokens(question) + estimate_history_tokens(history)
    emitter.emit(EventType.AGENT_THINKING, agent=agent, estimated_tokens=estimated)

    response = await send(agent, providers, question, history, system_prompt, signal)

    emitter.emit(EventType.AGENT_RESPONSE, agent=agent, duration=round(response.latency_sec, 1))
    if not response.ok:
        logger.warning("Council member %s failed: %s", agent.id, response.error)
    if on_response is not None:
        on_response(response)
    return response


async def ask_council(
    question: str,
    history: list[Message],
    members: list[Agent],
    providers: ProviderFactory,
    council_prompt: str,
    emitter: EventEmitter,
    signal: asyncio.Event | None = None,
    on_response: ResponseCallback | None = None,
) -> list[ProviderResponse]:
    """Query all council members concurrently.

    ``history`` must already be cleaned and exclude the current question.
    A failing member yields a response with ``error`` set; it never prevents
    the other members from being collected. Cancellation raises AskAborted.

    Returns:
        One ProviderResponse per member, in ``members`` order.
    """
    if not members:
        return []

    logger.info("Asking council of %d: %s", len(members), ", ".join(m.id for m in members))
    responses = await asyncio.gather(
        *(
            _ask_member(m, question, history, providers, council_prompt, emitter, signal, on_response)
            for m in members
        )
    )
    ok_count = sum(1 for r in responses if r.ok)
    logger.info("Council answered: %d/%d ok", ok_count, len(responses))
    return list(responses)
