"""Tests for the maintenance commands in council_ai/cli.py (no API calls)."""

import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from council_ai.cli import main
from council_ai.history import HistoryStore
from council_ai.models import Message
from council_ai.stats import StatsStore


@pytest.fixture
def settings_file(tmp_path: Path, monkeypatch) -> Path:
    """Settings whose only provider has no key, so no agent is available."""
    monkeypatch.delenv("TEST_NO_SUCH_KEY", raising=False)
    settings = {
        "defaults": {"storage_dir": str(tmp_path / "store"), "manual_compact_keep": 2},
        "providers": {"openai": {"sdk": "openai", "api_key_env": "TEST_NO_SUCH_KEY"}},
        "agents": [{"id": "gpt", "provider": "openai", "model": "gpt-4o"}],
        "prompts": {"council": "c", "chair": "ch", "secretary": "s"},
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    return path


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    return tmp_path / "store"


def _invoke(settings_file: Path, *args: str):
    return CliRunner().invoke(main, ["--settings", str(settings_file), *args])


def test_stats_empty(settings_file):
    result = _invoke(settings_file, "stats")
    assert result.exit_code == 0
    assert "Global efficiency: 0%" in result.output


def test_stats_lists_agents(settings_file, store_dir):
    stats = StatsStore(store_dir / "stats.json")
    stats.record("gpt", "accepted")
    stats.record("gpt", "rejected")

    result = _invoke(settings_file, "stats")

    assert result.exit_code == 0
    assert "gpt" in result.output
    assert "50%" in result.output


def test_reset_stats(settings_file, store_dir):
    StatsStore(store_dir / "stats.json").record("gpt", "accepted")

    result = _invoke(settings_file, "reset-stats")

    assert result.exit_code == 0
    assert "Stats reset." in result.output
    assert json.loads((store_dir / "stats.json").read_text(encoding="utf-8")) == {}


def test_compact_keeps_configured_count(settings_file, store_dir):
    history = HistoryStore(store_dir / "history.json")
    for i in range(5):
        history.add(Message(role="user", text=f"m{i}"))

    result = _invoke(settings_file, "compact")

    assert result.exit_code == 0
    assert "History compacted: 3 removed, 2 kept." in result.output
    reloaded = HistoryStore(store_dir / "history.json")
    reloaded.load()
    assert [m.text for m in reloaded.messages()] == ["m3", "m4"]


def test_clear(settings_file, store_dir):
    HistoryStore(store_dir / "history.json").add(Message(role="user", text="old"))

    result = _invoke(settings_file, "clear")

    assert result.exit_code == 0
    assert json.loads((store_dir / "history.json").read_text(encoding="utf-8")) == []


def test_check_without_agents_exits_1(settings_file):
    result = _invoke(settings_file, "check")
    assert result.exit_code == 1
    assert "No agents available" in result.output


def test_ask_without_agents_reports_it(settings_file, store_dir):
    result = _invoke(settings_file, "ask", "Hello?")

    assert result.exit_code == 0
    assert "No active agents" in result.output
    history = HistoryStore(store_dir / "history.json")
    history.load()
    assert [m.text for m in history.messages()] == ["Hello?"]


def test_missing_settings_exits_1(tmp_path):
    result = CliRunner().invoke(main, ["--settings", str(tmp_path / "missing.yaml"), "stats"])
    assert result.exit_code == 1
    assert "Config error" in result.output
