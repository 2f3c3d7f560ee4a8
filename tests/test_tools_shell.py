"""Tests for council_ai/tools/shell.py (runs real subprocesses)."""

import asyncio
import sys
import time
from pathlib import Path

import pytest

from council_ai.tools.shell import ShellSession

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell required")


async def test_run_returns_output(tmp_path):
    session = ShellSession(tmp_path)
    result = await session.run("echo hello")
    assert result.error is None
    assert result.output == "hello"


async def test_cd_persists_between_commands(tmp_path):
    (tmp_path / "sub").mkdir()
    session = ShellSession(tmp_path)

    await session.run("cd sub")
    result = await session.run("pwd")

    assert Path(result.output.strip()).resolve() == (tmp_path / "sub").resolve()
    assert session.cwd.resolve() == (tmp_path / "sub").resolve()


async def test_failing_command_reports_exit_code(tmp_path):
    session = ShellSession(tmp_path)
    result = await session.run("echo oops >&2; false")
    assert result.error.startswith("Command failed (Exit Code: 1)")
    assert "STDERR: oops" in result.error


async def test_stderr_appended_on_success(tmp_path):
    session = ShellSession(tmp_path)
    result = await session.run("echo out; echo warn >&2")
    assert result.error is None
    assert result.output == "out\n--- STDERR ---\nwarn\n"


async def test_search_outside_git(tmp_path):
    (tmp_path / "a.txt").write_text("first\nthe needle is here\n", encoding="utf-8")
    session = ShellSession(tmp_path)

    found = await session.search("needle")
    missing = await session.search("haystack-free-text")

    assert "a.txt:2:the needle is here" in found.output
    assert missing.output == "No matches found."


async def test_cancel_kills_the_whole_command(tmp_path):
    session = ShellSession(tmp_path)
    task = asyncio.ensure_future(session.run("sleep 5; touch finished.txt"))
    await asyncio.sleep(0.2)

    start = time.monotonic()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert time.monotonic() - start < 2
    await asyncio.sleep(0.3)
    assert not (tmp_path / "finished.txt").exists()
