"""Tests for council_ai/config/config_loader.py."""

from pathlib import Path

import pytest
import yaml

from council_ai.config.config_loader import SETTINGS_ENV, AppConfig, api_key_for, default_settings_path, load_config
from council_ai.errors import ConfigError


@pytest.fixture
def minimal_settings(tmp_path: Path) -> Path:
    """Write a minimal valid settings.yaml to a temp path."""
    settings = {
        "defaults": {
            "storage_dir": str(tmp_path / "store"),
            "auto_compact": False,
            "max_turns": 3,
        },
        "providers": {
            "anthropic": {"sdk": "anthropic", "api_key_env": "TEST_CLAUDE_KEY", "max_tokens": 4096},
            "openai": {"sdk": "openai", "api_key_env": "TEST_OPENAI_KEY"},
            "deepseek": {"sdk": "openai", "api_key_env": "TEST_DEEPSEEK_KEY", "base_url": "https://api.deepseek.com"},
        },
        "agents": [
            {"id": "claude", "name": "Claude", "provider": "anthropic", "model": "claude-sonnet-4-5"},
            {"id": "gpt", "name": "GPT", "provider": "openai", "model": "gpt-4o", "enabled": False},
            {"id": "deepseek", "provider": "deepseek", "model": "deepseek-chat"},
            {"id": "ghost", "provider": "nowhere", "model": "x"},
        ],
        "roles": {"chair": "deepseek", "secretary": "deepseek"},
        "permissions": {"allow_command": False, "not_a_flag": True},
        "prompts": {
            "council": "Advise.",
            "chair": "Chair.",
            "chair_council_suffix": "Weigh.",
            "secretary": "JSON.",
            "tools": "TOOLS",
        },
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    return path


@pytest.fixture
def keys(monkeypatch):
    monkeypatch.setenv("TEST_CLAUDE_KEY", "sk-test")
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
    monkeypatch.delenv("TEST_DEEPSEEK_KEY", raising=False)


def test_load_config_returns_app_config(minimal_settings, keys):
    assert isinstance(load_config(minimal_settings), AppConfig)


def test_load_config_defaults(minimal_settings, keys, tmp_path):
    config = load_config(minimal_settings)
    assert config.defaults.storage_dir == tmp_path / "store"
    assert config.defaults.auto_compact is False
    assert config.defaults.council_active is True
    assert config.defaults.max_turns == 3
    assert config.defaults.manual_compact_keep == 10


def test_load_config_providers(minimal_settings, keys):
    config = load_config(minimal_settings)
    assert config.providers["anthropic"].max_tokens == 4096
    assert config.providers["openai"].max_tokens == 8192
    assert config.providers["deepseek"].base_url == "https://api.deepseek.com"
    assert config.available_providers == {"anthropic", "openai"}


def test_agents_without_key_or_provider_are_dropped(minimal_settings, keys):
    config = load_config(minimal_settings)
    assert [a.id for a in config.agents] == ["claude", "gpt"]
    assert config.agents[1].enabled is False


def test_roles_pointing_at_dropped_agents_are_fixed(minimal_settings, keys):
    config = load_config(minimal_settings)
    assert config.roles.chair == "claude"
    assert config.roles.secretary is None


def test_permissions_ignore_unknown_flags(minimal_settings, keys):
    config = load_config(minimal_settings)
    assert config.permissions.allow_command is False
    assert config.permissions.allow_file_write is True


def test_api_key_for(minimal_settings, keys):
    config = load_config(minimal_settings)
    assert api_key_for(config, "anthropic") == "sk-test"
    assert api_key_for(config, "deepseek") == ""
    assert api_key_for(config, "unknown") == ""


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_missing_section_raises(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump({"defaults": {}}), encoding="utf-8")
    with pytest.raises(ConfigError, match="providers|prompts"):
        load_config(path)


def test_settings_path_env_override(monkeypatch, tmp_path):
    monkeypatch.setenv(SETTINGS_ENV, str(tmp_path / "custom.yaml"))
    assert default_settings_path() == tmp_path / "custom.yaml"


def test_bundled_settings_load(monkeypatch):
    monkeypatch.delenv(SETTINGS_ENV, raising=False)
    config = load_config()
    assert "anthropic" in config.providers
    assert config.prompts.tools
