"""Shell commands with a working directory that persists across calls."""

import asyncio
import logging
import os
import shlex
import signal
import sys
from pathlib import Path

from council_ai.models import ToolResult

logger = logging.getLogger(__name__)

CWD_MARKER = "__CWD__"
MAX_SEARCH_LINES = 100
_NON_INTERACTIVE_ENV = {"CI": "true", "GIT_TERMINAL_PROMPT": "0", "DEBIAN_FRONTEND": "noninteractive"}
_SEARCH_EXCLUDE_DIRS = (
    "node_modules", ".git", ".svn", ".hg",
    "dist", "build", "out", "target", "bin", "obj",
    "coverage", ".cache", ".npm", ".yarn", ".pnpm",
    "Library", "Applications", "System", "tmp", "temp",
    "vendor", "venv", ".env", ".venv", "env",
)


def _default_shell() -> str:
    return "/bin/zsh" if sys.platform == "darwin" else "/bin/bash"


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    """Kill the shell and everything it started (servers, pipelines)."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


class ShellSession:
    """Runs commands in a login-less shell; a ``cd`` in one command carries over to the next."""

    def __init__(self, cwd: Path | None = None, shell: str | None = None) -> None:
        self.cwd = Path(cwd or Path.cwd())
        self._shell = shell or _default_shell()

    async def run(self, command: str) -> ToolResult:
        """Run ``command``. Non-zero exit is reported in ``error`` with the exit code."""
        # Report the command's own exit status, not that of pwd.
        wrapped = f'{command}\n__rc=$?; echo "{CWD_MARKER}"; pwd; exit $__rc'
        env = {**os.environ, **_NON_INTERACTIVE_ENV}
        try:
            proc = await asyncio.create_subprocess_exec(
                self._shell, "-c", wrapped,
                cwd=str(self.cwd),
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            return ToolResult(error=f"Command failed to start: {exc}")

        try:
            stdout_b, stderr_b = await proc.communicate()
        except asyncio.CancelledError:
            _kill_group(proc)
            await proc.wait()
            logger.info("Command killed: %s", command)
            raise

        stdout = stdout_b.decode("utf-8", errors="replace")
        stderr = stderr_b.decode("utf-8", errors="replace")
        output = self._consume_cwd(stdout)

        if proc.returncode != 0:
            message = f"Command failed (Exit Code: {proc.returncode})"
            if stderr:
                message += f"\nSTDERR: {stderr}"
            logger.debug("Command exited %d: %s", proc.returncode, command)
            return ToolResult(output=output, error=message)

        if stderr:
            output += ("\n--- STDERR ---\n" if output else "") + stderr
        return ToolResult(output=output)

    def _consume_cwd(self, stdout: str) -> str:
        """Strip the trailing marker + pwd lines and adopt the reported directory."""
        lines = stdout.splitlines()
        if CWD_MARKER not in lines:
            return stdout
        index = len(lines) - 1 - lines[::-1].index(CWD_MARKER)
        if index + 1 < len(lines) and lines[index + 1].strip():
            new_cwd = Path(lines[index + 1].strip())
            if new_cwd != self.cwd:
                logger.debug("Working directory changed: %s -> %s", self.cwd, new_cwd)
            self.cwd = new_cwd
            return "\n".join(lines[:index])
        return stdout

    async def search(self, query: str, directory: str = ".") -> ToolResult:
        """Literal text search: ``git grep`` inside a work tree, recursive ``grep`` otherwise."""
        quoted_query, quoted_dir = shlex.quote(query), shlex.quote(directory)

        in_git = await self.run("git rev-parse --is-inside-work-tree")
        if not in_git.error and in_git.output.strip() == "true":
            result = await self.run(f"git grep -In -- {quoted_query} {quoted_dir} | head -n {MAX_SEARCH_LINES}")
            if not result.error:
                return result if result.output.strip() else ToolResult(output="No matches found (git grep).")

        excludes = " ".join(f"--exclude-dir={shlex.quote(d)}" for d in _SEARCH_EXCLUDE_DIRS)
        result = await self.run(f"grep -rInH {excludes} -- {quoted_query} {quoted_dir} | head -n {MAX_SEARCH_LINES}")
        if not result.error and not result.output.strip():
            return ToolResult(output="No matches found.")
        return result
