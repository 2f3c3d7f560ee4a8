"""Desktop screenshot and keyboard input through the OS tooling (macOS only)."""

import asyncio
import logging
import sys
from pathlib import Path

from council_ai.models import ToolResult

logger = logging.getLogger(__name__)

# AppleScript key codes
KEY_CODES: dict[str, int] = {
    "return": 36, "enter": 36,
    "tab": 48,
    "space": 49,
    "delete": 51, "backspace": 51,
    "escape": 53, "esc": 53,
    "left": 123, "right": 124, "down": 125, "up": 126,
}


def _is_macos() -> bool:
    return sys.platform == "darwin"


async def _run(*args: str) -> tuple[int, str]:
    proc = await asyncio.create_subprocess_exec(
        *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
    )
    _, stderr = await proc.communicate()
    return proc.returncode, stderr.decode("utf-8", errors="replace").strip()


def escape_applescript(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


async def screenshot(target: Path) -> ToolResult:
    if not _is_macos():
        return ToolResult(error="Screenshot not supported on this OS")
    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        code, stderr = await _run("screencapture", "-x", str(target))
    except OSError as exc:
        return ToolResult(error=f"Screenshot failed: {exc}")
    if code != 0:
        return ToolResult(error=f"Screenshot failed: {stderr or f'exit code {code}'}")
    return ToolResult(output=f"Screenshot saved to {target}")


async def act(action: str) -> ToolResult:
    """``type <text>`` or ``key <name>`` into the focused window."""
    command, _, rest = action.strip().partition(" ")
    if not _is_macos():
        return ToolResult(error="Unknown desktop action or OS not supported")

    if command == "type":
        script = f'tell application "System Events" to keystroke "{escape_applescript(rest)}"'
        done = f'Typed "{rest}"'
    elif command == "key":
        key = rest.strip().lower()
        if key not in KEY_CODES:
            return ToolResult(error=f"Unknown key: {key}")
        script = f'tell application "System Events" to key code {KEY_CODES[key]}'
        done = f"Pressed key {key}"
    else:
        return ToolResult(error="Unknown desktop action or OS not supported")

    try:
        code, stderr = await _run("osascript", "-e", script)
    except OSError as exc:
        return ToolResult(error=str(exc))
    if code != 0:
        return ToolResult(error=stderr or f"osascript exit code {code}")
    logger.info("Desktop action: %s", done)
    return ToolResult(output=done)
