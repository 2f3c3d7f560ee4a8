"""Dispatch parsed tool directives to their implementations and format results for the chair."""

import asyncio
import base64
import logging
import platform
import shutil
import sys
from datetime import datetime, timezone
from pathlib import Path

import httpx

from council_ai.calls import race_abort
from council_ai.directives import split_search_replace
from council_ai.errors import AskAborted
from council_ai.models import ToolDirective, ToolKind, ToolResult
from council_ai.permissions import describe
from council_ai.tools import desktop, files, web, xcode
from council_ai.tools.browser import BrowserSession
from council_ai.tools.shell import ShellSession

logger = logging.getLogger(__name__)

BROWSER_TEXT_LIMIT = 2000
DIAGNOSTICS_DIR = ".council_diag_tmp"
CONNECTIVITY_URL = "https://www.google.com"

# kind -> label for the output section; labels ending in ":\n" put output on its own line
_OUTPUT_LABELS: dict[ToolKind, str] = {
    ToolKind.RUN_COMMAND: "Output: ",
    ToolKind.WRITE_FILE: "Result: ",
    ToolKind.EDIT_FILE: "Result: ",
    ToolKind.READ_FILE: "Content:\n",
    ToolKind.LIST_TREE: "Output:\n",
    ToolKind.SEARCH_TEXT: "Output:\n",
    ToolKind.OPEN_URL: "Content: ",
    ToolKind.WEB_SEARCH: "Results:\n",
    ToolKind.PAGE_ACTION: "Result: ",
    ToolKind.SCREEN_CAPTURE: "Result: ",
    ToolKind.INPUT_ACTION: "Result: ",
    ToolKind.RUN_DIAGNOSTICS: "Report:\n",
    ToolKind.PROJECT_CONFIG: "Output:\n",
}


def format_result(directive: ToolDirective, result: ToolResult) -> str:
    """Render one tool outcome as the text block the chair sees next turn."""
    output = result.output
    if directive.kind is ToolKind.OPEN_URL and len(output) > BROWSER_TEXT_LIMIT:
        output = output[:BROWSER_TEXT_LIMIT] + "..."
    text = f"{describe(directive)}\n{_OUTPUT_LABELS[directive.kind]}{output}\nError: {result.error or 'None'}\n\n"
    if result.image:
        text += "[SYSTEM]: Screenshot attached to context.\n"
    return text


def _encode_image(path: Path) -> str | None:
    try:
        return base64.b64encode(path.read_bytes()).decode("ascii")
    except OSError as exc:
        logger.warning("Could not attach screenshot %s: %s", path, exc)
        return None


class ToolExecutor:
    """Executes directives against one working directory. Tool failures come back as ToolResult.error."""

    def __init__(self, cwd: Path | None = None, browser: BrowserSession | None = None) -> None:
        self.shell = ShellSession(cwd)
        self.browser = browser or BrowserSession()

    @property
    def cwd(self) -> Path:
        return self.shell.cwd

    async def execute(self, directive: ToolDirective, signal: asyncio.Event | None = None) -> ToolResult:
        """Run one directive. Raises AskAborted if ``signal`` fires while the tool runs."""
        handler = getattr(self, f"_do_{directive.kind.value}")
        logger.info("Tool %s: %s", directive.kind.value, directive.primary[:80])
        try:
            return await race_abort(handler(directive), signal)
        except AskAborted:
            logger.info("Tool %s aborted", directive.kind.value)
            raise
        except Exception as exc:
            logger.exception("Tool %s crashed", directive.kind.value)
            return ToolResult(error=f"{type(exc).__name__}: {exc}")

    async def close(self) -> None:
        await self.browser.close()

    async def _do_run_command(self, d: ToolDirective) -> ToolResult:
        return await self.shell.run(d.primary)

    async def _do_write_file(self, d: ToolDirective) -> ToolResult:
        return files.write_file(self.cwd, d.primary, d.secondary)

    async def _do_edit_file(self, d: ToolDirective) -> ToolResult:
        parts = split_search_replace(d.secondary)
        if parts is None:
            return ToolResult(
                error="Invalid format. Must contain <<<<<<< SEARCH, =======, and >>>>>>> blocks."
            )
        search, replace = parts
        return files.edit_file(self.cwd, d.primary, search, replace)

    async def _do_read_file(self, d: ToolDirective) -> ToolResult:
        start = end = None
        if d.secondary:
            first, _, last = d.secondary.partition("-")
            start, end = int(first), int(last)
        return files.read_file(self.cwd, d.primary, start, end)

    async def _do_list_tree(self, d: ToolDirective) -> ToolResult:
        return files.tree_view(self.cwd, d.primary or ".")

    async def _do_search_text(self, d: ToolDirective) -> ToolResult:
        return await self.shell.search(d.primary, d.secondary or ".")

    async def _do_open_url(self, d: ToolDirective) -> ToolResult:
        return ToolResult(output=await self.browser.open(d.primary))

    async def _do_web_search(self, d: ToolDirective) -> ToolResult:
        try:
            hits = await web.web_search(d.primary)
        except httpx.HTTPError as exc:
            logger.warning("Fast search failed (%s), falling back to browser", exc)
            hits = []
        if hits:
            return ToolResult(output=web.format_hits(d.primary, hits))
        return ToolResult(output=await self.browser.search(d.primary))

    async def _do_page_action(self, d: ToolDirective) -> ToolResult:
        parts = d.primary.split()
        command = parts[0].lower() if parts else ""
        if command == "type" and len(parts) >= 2:
            return ToolResult(output=await self.browser.type(parts[1], " ".join(parts[2:])))
        if command == "click" and len(parts) >= 2:
            return ToolResult(output=await self.browser.click(parts[1]))
        if command == "screenshot" and len(parts) >= 2:
            target = files.resolve_path(self.cwd, parts[1])
            output = await self.browser.screenshot(target)
            image = _encode_image(target) if target.exists() else None
            return ToolResult(output=output, image=image)
        return ToolResult(error="Unknown browser action")

    async def _do_screen_capture(self, d: ToolDirective) -> ToolResult:
        target = files.resolve_path(self.cwd, d.primary)
        result = await desktop.screenshot(target)
        if not result.error and target.exists():
            result.image = _encode_image(target)
        return result

    async def _do_input_action(self, d: ToolDirective) -> ToolResult:
        return await desktop.act(d.primary)

    async def _do_project_config(self, d: ToolDirective) -> ToolResult:
        return xcode.project_config(self.cwd, d.primary)

    async def _do_run_diagnostics(self, d: ToolDirective) -> ToolResult:
        return ToolResult(output=await self.run_diagnostics())

    async def run_diagnostics(self) -> str:
        """Self-check of file tools, shell, network and git. Always returns a report."""
        report = [
            "System Diagnostics Report",
            f"Time: {datetime.now(timezone.utc).isoformat()}",
            f"Platform: {platform.system()} {platform.release()} ({platform.machine()})",
            f"Python: {sys.version.split()[0]}",
            f"CWD: {self.cwd}",
        ]

        test_dir = self.cwd / DIAGNOSTICS_DIR
        test_file = test_dir / "test.txt"
        try:
            shutil.rmtree(test_dir, ignore_errors=True)
            written = files.write_file(self.cwd, str(test_file), "Line 1\nLine 2\nLine 3")
            report.append(f"FAIL FS: Write ({written.error})" if written.error else "OK   FS: Write")
            edited = files.edit_file(self.cwd, str(test_file), "Line 2", "Line 2 EDITED")
            report.append(f"FAIL FS: Edit ({edited.error})" if edited.error else "OK   FS: Edit")
            read = files.read_file(self.cwd, str(test_file))
            report.append("OK   FS: Verify content" if "Line 2 EDITED" in read.output else "FAIL FS: Verify content mismatch")
        finally:
            shutil.rmtree(test_dir, ignore_errors=True)

        echo = await self.shell.run('echo "shell_ok"')
        report.append("OK   Shell" if "shell_ok" in echo.output else f"FAIL Shell ({echo.error or 'output mismatch'})")

        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                await client.get(CONNECTIVITY_URL)
            report.append("OK   Internet")
        except httpx.HTTPError as exc:
            report.append(f"WARN Internet: unreachable ({exc})")

        git = await self.shell.run("git --version")
        report.append(f"WARN Git ({git.error})" if git.error else f"OK   Git ({git.output.strip()})")

        return "\n".join(report)
