"""Council orchestration: compaction, fan-out, chair loop and background scoring for one question."""

import asyncio
import base64
import logging
import re
from pathlib import Path

from council_ai.calls import ProviderFactory
from council_ai.chair import ChairLoop, build_chair_prompt, clean_history
from council_ai.compaction import compact_history
from council_ai.config.config_loader import AppConfig
from council_ai.events import EventEmitter
from council_ai.fanout import ResponseCallback, ask_council
from council_ai.history import HistoryStore
from council_ai.models import Agent, AskResult, CompactionResult, EventType, Message, ProviderResponse
from council_ai.scoring import EfficiencyScorer
from council_ai.stats import StatsStore
from council_ai.tokens import context_window_for
from council_ai.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)

NO_AGENTS_TEXT = "No active agents. Enable at least one agent in settings.yaml."
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp")
_IMAGE_PATH_RE = re.compile(
    r"""(?:^|\s)(['"]?)((?:/|~)[^\n\r]*?\.(?:png|jpg|jpeg|gif|webp))\1""", re.IGNORECASE
)


def _load_image(raw_path: str) -> str | None:
    """Base64 of an image file at ``raw_path``; tolerates ``~`` and shell-escaped spaces."""
    path = Path(raw_path).expanduser()
    if not path.exists():
        path = Path(raw_path.replace("\\ ", " ")).expanduser()
    if not path.is_file() or path.suffix.lower() not in IMAGE_EXTENSIONS:
        return None
    try:
        return base64.b64encode(path.read_bytes()).decode("ascii")
    except OSError as exc:
        logger.warning("Could not read image %s: %s", path, exc)
        return None


def detect_images(question: str) -> list[str]:
    """Images referenced by the question: the whole question as a path, or absolute/home paths inside it."""
    whole = question.strip()
    if len(whole) >= 2 and whole[0] == whole[-1] and whole[0] in ("'", '"'):
        whole = whole[1:-1]
    image = _load_image(whole)
    if image:
        return [image]
    found = []
    for match in _IMAGE_PATH_RE.finditer(question):
        image = _load_image(match.group(2).strip())
        if image:
            found.append(image)
    return found


class Council:
    """Answers questions with a council of agents and a tool-using chair."""

    def __init__(
        self,
        config: AppConfig,
        history: HistoryStore,
        stats: StatsStore,
        providers: ProviderFactory,
        executor: ToolExecutor,
        emitter: EventEmitter | None = None,
        workdir: Path | None = None,
    ) -> None:
        self.config = config
        self.history = history
        self.stats = stats
        self._providers = providers
        self._executor = executor
        self._emitter = emitter or EventEmitter()
        self._workdir = workdir or Path.cwd()

    def _agent(self, agent_id: str | None) -> Agent | None:
        return next((a for a in self.config.agents if a.id == agent_id), None)

    def enabled_agents(self) -> list[Agent]:
        return [a for a in self.config.agents if a.enabled]

    def resolve_chair(self, chair_id: str | None = None) -> Agent | None:
        """Requested chair, else the configured one, else the first enabled agent."""
        enabled = self.enabled_agents()
        for candidate in (chair_id, self.config.roles.chair):
            agent = next((a for a in enabled if a.id == candidate), None)
            if agent is not None:
                return agent
        return enabled[0] if enabled else None

    def council_members(self, chair: Agent, use_council: bool = True) -> list[Agent]:
        if not (use_council and self.config.defaults.council_active):
            return []
        secretary_id = self.config.roles.secretary
        return [a for a in self.enabled_agents() if a.id not in (chair.id, secretary_id)]

    def chair_system_prompt(self, has_council: bool) -> str:
        prompts = self.config.prompts
        text = prompts.chair
        if has_council and prompts.chair_council_suffix:
            text += " " + prompts.chair_council_suffix

        memory_name = self.config.defaults.memory_file
        memory_path = self._workdir / memory_name
        if memory_path.is_file():
            try:
                memory = memory_path.read_text(encoding="utf-8")
            except OSError as exc:
                logger.warning("Could not read memory file %s: %s", memory_path, exc)
            else:
                text += f"\n\n=== PROJECT MEMORY ({memory_name}) ===\n{memory}\n{'=' * 40}\n"
                text += f"\n[MEMORY]: {memory_name} holds the project context. Keep it up to date."
        else:
            text += f"\n[MEMORY]: To keep important context for later sessions, create {memory_name}."
        return f"{text}\n\n{prompts.tools}"

    def _auto_compact(self, chair: Agent) -> CompactionResult | None:
        if not self.config.defaults.auto_compact:
            return None
        result = compact_history(self.history, context_window_for(chair.model))
        if result is not None:
            self._emitter.emit(
                EventType.INFO,
                f"History auto-compacted [{chair.model}] ({result.tokens_before} -> {result.tokens_after} tokens)",
                removed=result.removed,
            )
        return result

    async def ask(
        self,
        question: str,
        signal: asyncio.Event | None = None,
        on_council_response: ResponseCallback | None = None,
        use_council: bool = True,
        chair_id: str | None = None,
    ) -> AskResult:
        """Answer one question.

        The question is appended to history first; council opinions are
        gathered in parallel, then the chair loop produces the answer and
        any tool side effects. Scoring runs afterwards as a detached task.

        Raises:
            ChairError: the chair call failed.
            AskAborted: ``signal`` was set.
        """
        chair = self.resolve_chair(chair_id)
        compaction = self._auto_compact(chair) if chair else None

        images = detect_images(question) if self.config.permissions.allow_file_read else []
        if images:
            logger.info("Attached %d image(s) from the question", len(images))
        self.history.add(Message(role="user", text=question, images=images))

        if chair is None:
            return AskResult(
                council_responses=[],
                chair_response=ProviderResponse(
                    agent_id="system", model="", text=NO_AGENTS_TEXT, error="No active agents"
                ),
                compaction=compaction,
            )

        members = self.council_members(chair, use_council)
        system_prompt = self.chair_system_prompt(bool(members))

        responses: list[ProviderResponse] = []
        if members:
            self._emitter.emit(EventType.STEP, f"Asking council ({len(members)})...")
            member_history = clean_history(self.history.messages())[:-1]
            responses = await ask_council(
                question,
                member_history,
                members,
                self._providers,
                self.config.prompts.council,
                self._emitter,
                signal,
                on_council_response,
            )

        self._emitter.emit(EventType.STEP, f"Chair analyzing ({chair.name})")
        loop = ChairLoop(
            chair,
            self._providers,
            self._executor,
            self.history,
            self.config.permissions,
            self._emitter,
            max_turns=self.config.defaults.max_turns,
        )
        chair_response, turns = await loop.run(build_chair_prompt(question, responses, members), system_prompt, signal)

        scoring_task = None
        secretary = self._agent(self.config.roles.secretary)
        if members and secretary is not None and responses:
            scorer = EfficiencyScorer(
                secretary, self._providers, self.stats, self.config.prompts.secretary, self._emitter
            )
            scoring_task = scorer.schedule(question, responses, members, chair.id, chair_response.text)

        return AskResult(
            council_responses=responses,
            chair_response=chair_response,
            turns=turns,
            compaction=compaction,
            scoring_task=scoring_task,
        )
