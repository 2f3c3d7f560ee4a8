"""Pure dataclasses for the council pipeline. No logic beyond derived properties, no deps."""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class Agent:
    id: str
    name: str
    provider: str          # "openai", "anthropic", "deepseek", "grok", "gemini", "perplexity", "openrouter"
    model: str             # actual model string used
    enabled: bool = True   # participates in the council


@dataclass
class Message:
    role: str              # "user" or "assistant"
    text: str
    images: list[str] = field(default_factory=list)  # base64 payloads
    agent_id: str | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ProviderResponse:
    agent_id: str
    model: str
    text: str = ""
    reasoning: str | None = None
    error: str | None = None
    latency_sec: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.error


@dataclass
class AgentStats:
    total: int = 0
    accepted: int = 0
    partial: int = 0
    rejected: int = 0

    @property
    def efficiency(self) -> float:
        """Percentage score where a partial acceptance counts half."""
        if self.total == 0:
            return 0.0
        return (self.accepted + 0.5 * self.partial) / self.total * 100


class ToolKind(str, Enum):
    RUN_COMMAND = "run_command"
    WRITE_FILE = "write_file"
    EDIT_FILE = "edit_file"
    READ_FILE = "read_file"
    LIST_TREE = "list_tree"
    SEARCH_TEXT = "search_text"
    OPEN_URL = "open_url"
    WEB_SEARCH = "web_search"
    PAGE_ACTION = "page_action"
    SCREEN_CAPTURE = "screen_capture"
    INPUT_ACTION = "input_action"
    RUN_DIAGNOSTICS = "run_diagnostics"
    PROJECT_CONFIG = "project_config"


@dataclass(frozen=True)
class ToolDirective:
    kind: ToolKind
    primary: str           # path, url, query, command or action
    secondary: str = ""    # file body for write/edit
    position: int = 0      # offset of the fence opener in the source text


@dataclass
class PermissionSet:
    allow_command: bool = True
    allow_file_read: bool = True
    allow_file_write: bool = True
    allow_file_edit: bool = True
    allow_browser: bool = True
    allow_desktop: bool = True


@dataclass
class ToolResult:
    output: str = ""
    error: str | None = None
    image: str | None = None  # base64 screenshot to attach to the next turn


class EventType(str, Enum):
    STEP = "step"
    TOOL_START = "tool_start"
    TOOL_RESULT = "tool_result"
    AGENT_THINKING = "agent_thinking"
    AGENT_RESPONSE = "agent_response"
    INFO = "info"
    ERROR = "error"
    SUCCESS = "success"


@dataclass
class CouncilEvent:
    type: EventType
    message: str = ""
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class CompactionResult:
    removed: int
    kept: int
    tokens_before: int
    tokens_after: int


@dataclass
class AskResult:
    council_responses: list[ProviderResponse]
    chair_response: ProviderResponse
    turns: int = 0
    compaction: CompactionResult | None = None
    scoring_task: asyncio.Task | None = None
