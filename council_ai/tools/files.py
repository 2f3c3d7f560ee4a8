"""Filesystem tools: write, edit, read and tree view relative to a working directory."""

import json
import logging
import re
from pathlib import Path

from council_ai.models import ToolResult

logger = logging.getLogger(__name__)

MAX_READ_BYTES = 100 * 1024
TREE_DEPTH = 2
TREE_IGNORE = frozenset({"node_modules", ".git", ".DS_Store", "dist", "build", "coverage"})

# Strings are matched so comment markers inside them survive; group 1 is a comment.
_JSONC_RE = re.compile(r'\\"|"(?:\\"|[^"])*"|(//[^\n]*|/\*.*?\*/)', re.DOTALL)
_WS_RE = re.compile(r"\s+")


def resolve_path(cwd: Path, file_path: str) -> Path:
    """Expand ``~`` and resolve relative paths against ``cwd``."""
    path = Path(file_path.strip()).expanduser()
    return path if path.is_absolute() else (cwd / path).resolve()


def parse_jsonc(text: str) -> object:
    """Parse JSON that may carry // and /* */ comments."""
    stripped = _JSONC_RE.sub(lambda m: "" if m.group(1) else m.group(0), text)
    return json.loads(stripped)


def _validate_json(target: Path, content: str, action: str) -> str | None:
    if target.suffix != ".json":
        return None
    try:
        parse_jsonc(content)
    except ValueError as exc:
        return f"{action} failed: Invalid JSON content. {exc}"
    return None


def write_file(cwd: Path, file_path: str, content: str) -> ToolResult:
    target = resolve_path(cwd, file_path)
    if target.is_dir():
        return ToolResult(
            error=(
                f"The path '{file_path}' is a directory, not a file. "
                f"Please specify a filename (e.g. {file_path}/filename.ext)."
            )
        )
    invalid = _validate_json(target, content, "Write")
    if invalid:
        return ToolResult(error=invalid)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    except OSError as exc:
        return ToolResult(error=f"Write failed: {exc}")
    logger.info("Wrote %s (%d chars)", target, len(content))
    return ToolResult(output=f"File saved to {file_path}")


def _normalize(line: str) -> str:
    return _WS_RE.sub(" ", line.strip())


def _fuzzy_span(content_lines: list[str], search: str) -> tuple[int, int] | None:
    """Find ``search`` line by line ignoring indentation, whitespace runs and blank lines.

    Returns (first_line, line_count) of the matched region in ``content_lines``.
    """
    wanted = [n for n in (_normalize(line) for line in search.splitlines()) if n]
    if not wanted:
        return None
    for start, line in enumerate(content_lines):
        if _normalize(line) != wanted[0]:
            continue
        matched, idx = 1, start + 1
        while matched < len(wanted) and idx < len(content_lines):
            current = _normalize(content_lines[idx])
            idx += 1
            if not current:
                continue
            if current != wanted[matched]:
                break
            matched += 1
        if matched == len(wanted):
            return start, idx - start
    return None


def edit_file(cwd: Path, file_path: str, search: str, replace: str) -> ToolResult:
    """Replace the first occurrence of ``search``; exact match first, then whitespace-insensitive lines."""
    target = resolve_path(cwd, file_path)
    try:
        content = target.read_text(encoding="utf-8")
    except OSError as exc:
        return ToolResult(error=f"Edit failed: {exc}")

    if search and search in content:
        new_content, mode = content.replace(search, replace, 1), "Exact Match"
    else:
        if not any(line.strip() for line in search.splitlines()):
            return ToolResult(error="Search block is empty or whitespace only.")
        lines = content.splitlines()
        span = _fuzzy_span(lines, search)
        if span is None:
            return ToolResult(
                error=f"Search string not found in {file_path}. Tried exact match and fuzzy line match."
            )
        start, count = span
        before, after = "\n".join(lines[:start]), "\n".join(lines[start + count:])
        new_content = (before + "\n" if before else "") + replace + ("\n" + after if after else "")
        mode = "Fuzzy Match"

    invalid = _validate_json(target, new_content, "Edit")
    if invalid:
        return ToolResult(error=invalid)
    try:
        target.write_text(new_content, encoding="utf-8")
    except OSError as exc:
        return ToolResult(error=f"Edit failed: {exc}")
    logger.info("Edited %s (%s)", target, mode)
    return ToolResult(output=f"Successfully edited {file_path} ({mode})")


def read_file(cwd: Path, file_path: str, start: int | None = None, end: int | None = None) -> ToolResult:
    """Read a whole file (up to 100KB) or the 1-based inclusive line range ``start``-``end``."""
    target = resolve_path(cwd, file_path)
    try:
        size = target.stat().st_size
        if size > MAX_READ_BYTES and start is None:
            return ToolResult(
                error=(
                    f"File is too large ({round(size / 1024)}KB). Please read specific lines using "
                    f"'read:path:start-end' format (e.g. read:{file_path}:1-50)."
                )
            )
        content = target.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        return ToolResult(error=str(exc))

    if start is not None and end is not None:
        return ToolResult(output="\n".join(content.split("\n")[start - 1:end]))
    return ToolResult(output=content)


def tree_view(cwd: Path, dir_path: str = ".", depth: int = TREE_DEPTH) -> ToolResult:
    root = resolve_path(cwd, dir_path or ".")
    if not root.is_dir():
        return ToolResult(error=f"Tree failed: not a directory: {dir_path}")

    lines = [f"{root.name}/"]

    def walk(directory: Path, level: int, prefix: str) -> None:
        if level > depth:
            return
        entries = sorted(
            (e for e in directory.iterdir() if e.name not in TREE_IGNORE),
            key=lambda e: e.name,
        )
        for i, entry in enumerate(entries):
            last = i == len(entries) - 1
            is_dir = entry.is_dir()
            lines.append(f"{prefix}{'└── ' if last else '├── '}{entry.name}{'/' if is_dir else ''}")
            if is_dir:
                walk(entry, level + 1, prefix + ("    " if last else "│   "))

    try:
        walk(root, 1, "")
    except OSError as exc:
        return ToolResult(error=f"Tree failed: {exc}")
    if len(lines) == 1:
        return ToolResult(output="(empty directory)")
    return ToolResult(output="\n".join(lines))
