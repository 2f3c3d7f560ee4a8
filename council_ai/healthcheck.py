"""Agent health checks: ping each configured model before relying on it."""

import asyncio
import logging

from council_ai.calls import ProviderFactory
from council_ai.errors import ProviderError
from council_ai.models import Agent

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_PING_SYSTEM = "You are a connectivity check."
_TIMEOUT_SEC = 15.0


async def _check_one(agent: Agent, providers: ProviderFactory) -> tuple[str, bool, str]:
    """Ping a single agent. Returns (agent_id, ok, error_message)."""
    try:
        provider = providers(agent)
        await asyncio.wait_for(
            provider.complete(_PING_PROMPT, [], _PING_SYSTEM, _TIMEOUT_SEC),
            timeout=_TIMEOUT_SEC,
        )
        return agent.id, True, ""
    except TimeoutError:
        return agent.id, False, f"Timed out after {_TIMEOUT_SEC:.0f}s"
    except ProviderError as exc:
        return agent.id, False, str(exc)
    except Exception as exc:
        logger.debug("Health check for %s crashed", agent.id, exc_info=True)
        return agent.id, False, str(exc)


async def run_health_checks(agents: list[Agent], providers: ProviderFactory) -> dict[str, tuple[bool, str]]:
    """Ping all agents in parallel.

    Returns:
        Dict mapping agent id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(a, providers) for a in agents))
    return {agent_id: (ok, err) for agent_id, ok, err in results}
