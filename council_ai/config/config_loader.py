"""Load settings.yaml into typed dataclasses. Drops agents whose API key is missing."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from council_ai.errors import ConfigError
from council_ai.models import Agent, PermissionSet

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"
SETTINGS_ENV = "COUNCIL_AI_SETTINGS"


@dataclass
class ProviderConfig:
    name: str
    sdk: str               # "openai", "anthropic" or "gemini"
    api_key_env: str
    max_tokens: int
    base_url: str | None = None


@dataclass
class PromptsConfig:
    council: str
    chair: str
    chair_council_suffix: str
    secretary: str
    tools: str


@dataclass
class DefaultsConfig:
    storage_dir: Path
    auto_compact: bool = True
    council_active: bool = True
    max_turns: int = 5
    manual_compact_keep: int = 10
    memory_file: str = ".council_memory.md"
    reset_stats_on_start: bool = False


@dataclass
class RolesConfig:
    chair: str | None = None
    secretary: str | None = None


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    providers: dict[str, ProviderConfig]
    agents: list[Agent]
    prompts: PromptsConfig
    roles: RolesConfig = field(default_factory=RolesConfig)
    permissions: PermissionSet = field(default_factory=PermissionSet)
    available_providers: set[str] = field(default_factory=set)


def default_settings_path() -> Path:
    override = os.environ.get(SETTINGS_ENV, "").strip()
    return Path(override) if override else _SETTINGS_PATH


def api_key_for(config: AppConfig, provider: str) -> str:
    provider_cfg = config.providers.get(provider)
    if provider_cfg is None:
        return ""
    return os.environ.get(provider_cfg.api_key_env, "").strip()


def _fix_roles(roles: RolesConfig, agents: list[Agent]) -> RolesConfig:
    """Clear role assignments that point at agents which no longer exist."""
    ids = {a.id for a in agents}
    chair = roles.chair
    if chair is not None and chair not in ids:
        first_enabled = next((a for a in agents if a.enabled), None)
        fallback = first_enabled or (agents[0] if agents else None)
        logger.info("Chair '%s' unavailable, falling back to %s", chair, fallback.id if fallback else None)
        chair = fallback.id if fallback else None
    secretary = roles.secretary
    if secretary is not None and secretary not in ids:
        logger.info("Secretary '%s' unavailable, role cleared", secretary)
        secretary = None
    return RolesConfig(chair=chair, secretary=secretary)


def load_config(settings_path: Path | None = None) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if the settings file is missing and ConfigError
    when a required section is absent. Agents whose provider has no API key
    in the environment are skipped with an info log.
    """
    settings_path = settings_path or default_settings_path()
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        defaults_raw = raw["defaults"]
        prompts_raw = raw["prompts"]
        providers_raw = raw["providers"]
    except KeyError as exc:
        raise ConfigError(f"Missing settings section: {exc.args[0]}") from exc

    defaults = DefaultsConfig(
        storage_dir=Path(os.path.expanduser(str(defaults_raw.get("storage_dir", "~/.council-ai")))),
        auto_compact=bool(defaults_raw.get("auto_compact", True)),
        council_active=bool(defaults_raw.get("council_active", True)),
        max_turns=int(defaults_raw.get("max_turns", 5)),
        manual_compact_keep=int(defaults_raw.get("manual_compact_keep", 10)),
        memory_file=str(defaults_raw.get("memory_file", ".council_memory.md")),
        reset_stats_on_start=bool(defaults_raw.get("reset_stats_on_start", False)),
    )

    prompts = PromptsConfig(
        council=prompts_raw["council"],
        chair=prompts_raw["chair"],
        chair_council_suffix=prompts_raw.get("chair_council_suffix", ""),
        secretary=prompts_raw["secretary"],
        tools=prompts_raw.get("tools", ""),
    )

    providers: dict[str, ProviderConfig] = {}
    available_providers: set[str] = set()
    for provider_name, provider_raw in providers_raw.items():
        providers[provider_name] = ProviderConfig(
            name=provider_name,
            sdk=provider_raw["sdk"],
            api_key_env=provider_raw["api_key_env"],
            max_tokens=int(provider_raw.get("max_tokens", 8192)),
            base_url=provider_raw.get("base_url"),
        )
        if os.environ.get(provider_raw["api_key_env"], "").strip():
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                provider_raw["api_key_env"],
            )

    agents: list[Agent] = []
    for agent_raw in raw.get("agents") or []:
        agent = Agent(
            id=str(agent_raw["id"]),
            name=str(agent_raw.get("name", agent_raw["id"])),
            provider=str(agent_raw["provider"]),
            model=str(agent_raw["model"]),
            enabled=bool(agent_raw.get("enabled", True)),
        )
        if agent.provider not in providers:
            logger.warning("Agent '%s' uses unknown provider '%s', skipping", agent.id, agent.provider)
            continue
        if agent.provider not in available_providers:
            logger.info("Agent '%s' skipped: no API key for %s", agent.id, agent.provider)
            continue
        agents.append(agent)

    roles_raw = raw.get("roles") or {}
    roles = _fix_roles(
        RolesConfig(chair=roles_raw.get("chair"), secretary=roles_raw.get("secretary")),
        agents,
    )

    permissions_raw = raw.get("permissions") or {}
    permissions = PermissionSet(
        **{k: bool(v) for k, v in permissions_raw.items() if k in PermissionSet.__dataclass_fields__}
    )

    return AppConfig(
        defaults=defaults,
        providers=providers,
        agents=agents,
        prompts=prompts,
        roles=roles,
        permissions=permissions,
        available_providers=available_providers,
    )
