"""Secretary scoring: judge how much of each member's advice the chair used."""

import asyncio
import json
import logging
import re

from council_ai.calls import ProviderFactory, send
from council_ai.events import EventEmitter
from council_ai.models import Agent, EventType, ProviderResponse
from council_ai.stats import VERDICTS, StatsStore

logger = logging.getLogger(__name__)

MAX_ADVICE_CHARS = 1000
MAX_DECISION_CHARS = 3000
_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)


def extract_json(text: str) -> dict | None:
    """Pull the first JSON object out of a model reply.

    Scans from the first ``{`` with a string- and escape-aware brace counter;
    if that fails, tries the whole (unfenced) text. Returns None when nothing
    parses to an object.
    """
    trimmed = text.strip()
    fenced = _FENCE_RE.match(trimmed)
    if fenced:
        trimmed = fenced.group(1)

    candidate = _balanced_object(trimmed)
    for source in (candidate, trimmed):
        if not source:
            continue
        try:
            parsed = json.loads(source)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _balanced_object(text: str) -> str | None:
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            in_string = not in_string
        elif not in_string:
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
    return None


def build_scoring_prompt(
    question: str,
    responses: list[ProviderResponse],
    members: list[Agent],
    chair_id: str,
    chair_answer: str,
    secretary_id: str,
) -> str:
    names = {a.id: a.name for a in members}
    prompt = f'User Question: "{question}"\n\n--- COUNCIL ADVICE ---\n'
    for response in responses:
        name = names.get(response.agent_id, response.agent_id)
        prompt += f"[ID: {response.agent_id}] {name}: {response.text[:MAX_ADVICE_CHARS]}\n\n"
    prompt += "----------------------\n\n"
    prompt += f"--- CHAIRMAN (ID: {chair_id}) DECISION ---\n{chair_answer[:MAX_DECISION_CHARS]}\n-------------------------\n"
    prompt += "\nEvaluate usage of advice. Return strictly JSON.\n"
    prompt += (
        f"IMPORTANT: Also evaluate the Chairman (ID: {chair_id})! If the final decision answers the "
        f'user\'s question well, mark Chairman as "accepted". If it refuses or fails, "rejected".\n'
    )
    prompt += (
        f'You can also evaluate yourself (ID: {secretary_id}) as "accepted" if this analysis '
        "process is working smoothly."
    )
    return prompt


class EfficiencyScorer:
    """Ask the secretary for verdicts and fold them into the stats store."""

    def __init__(
        self,
        secretary: Agent,
        providers: ProviderFactory,
        stats: StatsStore,
        system_prompt: str,
        emitter: EventEmitter,
    ) -> None:
        self._secretary = secretary
        self._providers = providers
        self._stats = stats
        self._system_prompt = system_prompt
        self._emitter = emitter

    async def evaluate(
        self,
        question: str,
        responses: list[ProviderResponse],
        members: list[Agent],
        chair_id: str,
        chair_answer: str,
    ) -> int:
        """Score one question. Returns the number of verdicts recorded; never raises."""
        self._emitter.emit(EventType.INFO, f"Secretary ({self._secretary.name}) analyzing efficiency...")
        advice = [r for r in responses if r.ok]
        prompt = build_scoring_prompt(question, advice, members, chair_id, chair_answer, self._secretary.id)

        response = await send(self._secretary, self._providers, prompt, [], self._system_prompt)
        if not response.ok:
            logger.warning("Secretary call failed: %s", response.error)
            self._emitter.emit(EventType.ERROR, f"Secretary error: {response.error}")
            return 0

        raw = response.text.strip()
        verdicts = extract_json(raw) if raw else None
        if not verdicts:
            snippet = raw if len(raw) <= 50 else raw[:50] + "..."
            logger.warning("Secretary returned no usable JSON: %r", raw[:200])
            self._emitter.emit(EventType.ERROR, f'Secretary error: no JSON verdicts (Content: "{snippet}")')
            return 0

        recorded = 0
        for agent_id, verdict in verdicts.items():
            if verdict in VERDICTS:
                self._stats.record(str(agent_id), verdict)
                recorded += 1
        logger.info("Secretary recorded %d verdict(s)", recorded)
        return recorded

    def schedule(
        self,
        question: str,
        responses: list[ProviderResponse],
        members: list[Agent],
        chair_id: str,
        chair_answer: str,
    ) -> asyncio.Task:
        """Run :meth:`evaluate` as a detached task; the caller need not await it."""
        task = asyncio.create_task(self.evaluate(question, responses, members, chair_id, chair_answer))
        task.add_done_callback(self._report_crash)
        return task

    def _report_crash(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Secretary task crashed: %s", exc)
            self._emitter.emit(EventType.ERROR, f"Secretary error: {exc}")
