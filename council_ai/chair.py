"""Chair tool loop: reply, run the tools it asked for, feed results back, repeat."""

import asyncio
import dataclasses
import logging
import re

from council_ai.calls import ProviderFactory, send
from council_ai.directives import parse_directives, strip_directives
from council_ai.errors import AskAborted, ChairError
from council_ai.events import EventEmitter
from council_ai.history import HistoryStore
from council_ai.models import Agent, EventType, Message, PermissionSet, ProviderResponse
from council_ai.permissions import denial_message, is_permitted
from council_ai.tools.executor import ToolExecutor, format_result

logger = logging.getLogger(__name__)

MAX_TURNS = 5
MAX_OPINION_CHARS = 4000
CONTINUE_PROMPT = "Continue."
CONTINUE_INSTRUCTION = "Continue executing the task taking tool results into account."
FINAL_ANSWER_SUFFIX = "\nGive the final answer and act if needed."
SYNTHESIS_INSTRUCTION = (
    "---------------------\n"
    "Use these opinions to reach a decision. You do not have to agree with all of them, "
    "but weigh their expertise.\n"
    "Your job is to synthesize the answer. Credit specific agents when you use their ideas "
    '(e.g. "As Claude noted...").\n'
)
_TRUNCATION_MARKER = "\n... [truncated, the answer was too long] ..."
_DISPLAY_ARG_CHARS = 50

# Trailing scoring blocks a chair sometimes appends; dropped from history so they are not imitated.
_TRAILING_BLOCK_RES = tuple(
    re.compile(rf"(\n\s*)?📊\s*(\*\*)?\s*{title}.*$", re.IGNORECASE | re.DOTALL)
    for title in (r"COUNCIL\s+EFFICIENCY", r"ЭФФЕКТИВНОСТЬ\s+СОВЕТА", r"EVALUATION")
)


def clean_history(messages: list[Message]) -> list[Message]:
    """Copy of ``messages`` with assistant tool blocks and trailing score blocks removed."""
    cleaned = []
    for message in messages:
        if message.role != "assistant":
            cleaned.append(message)
            continue
        text = message.text
        for pattern in _TRAILING_BLOCK_RES:
            text = pattern.sub("", text)
        cleaned.append(dataclasses.replace(message, text=strip_directives(text)))
    return cleaned


def build_chair_prompt(question: str, responses: list[ProviderResponse], members: list[Agent]) -> str:
    """Initial chair request: the question plus every successful council opinion."""
    by_id = {a.id: a for a in members}
    prompt = f'User request: "{question}"\n\n'
    opinions = [r for r in responses if r.ok]
    if opinions:
        prompt += "--- COUNCIL OPINIONS ---\n"
        for response in opinions:
            agent = by_id.get(response.agent_id)
            label = f"{agent.name} (ID: {agent.id})" if agent else response.agent_id
            text = response.text
            if len(text) > MAX_OPINION_CHARS:
                text = text[:MAX_OPINION_CHARS] + _TRUNCATION_MARKER
            prompt += f"[{label}]: {text}\n\n"
        prompt += SYNTHESIS_INSTRUCTION
    return prompt + FINAL_ANSWER_SUFFIX


def _display_arg(text: str) -> str:
    return text if len(text) <= _DISPLAY_ARG_CHARS else text[:_DISPLAY_ARG_CHARS - 3] + "..."


class ChairLoop:
    """Runs the chair for up to ``max_turns`` replies.

    A reply without tool directives is the final answer. A reply with
    directives gets its tools executed (permission permitting); the raw
    reply and a synthetic user message holding the tool outputs are
    appended to history and the chair is asked to continue. When the
    budget runs out the last reply stands as the answer.
    """

    def __init__(
        self,
        chair: Agent,
        providers: ProviderFactory,
        executor: ToolExecutor,
        history: HistoryStore,
        permissions: PermissionSet,
        emitter: EventEmitter,
        max_turns: int = MAX_TURNS,
    ) -> None:
        self._chair = chair
        self._providers = providers
        self._executor = executor
        self._history = history
        self._permissions = permissions
        self._emitter = emitter
        self._max_turns = max_turns

    async def run(
        self,
        prompt: str,
        system_prompt: str,
        signal: asyncio.Event | None = None,
    ) -> tuple[ProviderResponse, int]:
        """Drive the loop. Returns the final chair response and the number of turns used.

        Raises:
            ChairError: the chair call failed.
            AskAborted: ``signal`` was set.
        """
        response: ProviderResponse | None = None
        turn = 0
        while turn < self._max_turns:
            if signal is not None and signal.is_set():
                raise AskAborted("Aborted")

            history = clean_history(self._history.messages())
            if turn == 0:
                history = history[:-1]

            response = await send(self._chair, self._providers, prompt, history, system_prompt, signal)
            if not response.ok:
                raise ChairError(response.error)

            directives = parse_directives(response.text)
            if not directives:
                self._history.add(Message(role="assistant", text=response.text, agent_id=self._chair.id))
                logger.info("Chair finished after %d turn(s)", turn + 1)
                return response, turn + 1

            logger.info("Chair turn %d: %d tool directive(s)", turn + 1, len(directives))
            self._emitter.emit(EventType.STEP, "Executing tools", count=len(directives))
            outputs = f"\n\n--- TOOL OUTPUTS (Turn {turn + 1}) ---\n"
            images: list[str] = []
            for directive in directives:
                if signal is not None and signal.is_set():
                    raise AskAborted("Aborted")
                self._emitter.emit(
                    EventType.TOOL_START, tool=directive.kind.value, input=_display_arg(directive.primary)
                )
                if not is_permitted(directive.kind, self._permissions):
                    outputs += denial_message(directive)
                    self._emitter.emit(EventType.ERROR, f"Permission denied ({directive.kind.value})")
                    continue
                result = await self._executor.execute(directive, signal)
                outputs += format_result(directive, result)
                if result.image:
                    images.append(result.image)
                self._emitter.emit(EventType.TOOL_RESULT, tool=directive.kind.value, ok=result.error is None)

            if signal is not None and signal.is_set():
                raise AskAborted("Aborted")
            self._history.add(Message(role="assistant", text=response.text, agent_id=self._chair.id))
            self._history.add(Message(role="user", text=f"{outputs}\n{CONTINUE_INSTRUCTION}", images=images))
            prompt = CONTINUE_PROMPT
            turn += 1

        logger.warning("Chair turn budget (%d) exhausted, using last reply", self._max_turns)
        return response, turn
