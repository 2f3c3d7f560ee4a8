"""Tool directive grammar: fenced blocks in chair output -> typed ToolDirective values.

A directive is a fenced block whose header starts with a known tag::

    ```bash
    ls -la
    ```

    ```file:src/app.py
    print("hi")
    ```

    ```edit:src/app.py
    <<<<<<< SEARCH
    old
    =======
    new
    >>>>>>>
    ```

    ```read:src/app.py:10-40```

Tags are matched case-insensitively with whitespace allowed around them.
Only a fence directly followed by a known tag opens a directive, so a stray
or inline fence elsewhere in the reply does not shift the pairing of later
blocks. Each block is classified by the first rule whose tag matches, and the
result is ordered by source offset.
"""

import logging
import re
from dataclasses import dataclass

from council_ai.models import ToolDirective, ToolKind

logger = logging.getLogger(__name__)

FENCE = "```"
TOOL_EXECUTED_MARKER = "[Tool Executed]"

_TAG_LOOKAHEAD = (
    r"\s*(?:"
    r"(?:terminal|command|console|shell|bash|term|zsh|cmd|sh)\b"
    r"|system_diagnostics\b"
    r"|ios:config\b"
    r"|(?:edit|tree|search|file|read)[:\s]"
    r"|browser:(?:open|act|search)\b"
    r"|desktop:(?:screenshot|act)\b"
    r")"
)
_BLOCK_RE = re.compile(rf"```(?={_TAG_LOOKAHEAD})(.*?)```", re.IGNORECASE | re.DOTALL)

_PLACEHOLDER_FRAGMENTS = ("path/to/", "/path/to")
_PLACEHOLDER_VALUES = ("file.txt", "example.com")
_ELLIPSIS = "..."

_SEARCH_MARKER_RE = re.compile(r"<{7}\s*SEARCH", re.IGNORECASE)
_DIVIDER = "======="
_REPLACE_MARKER_RE = re.compile(r">{7}(?:[ \t]*REPLACE)?", re.IGNORECASE)
_READ_RANGE_RE = re.compile(r"^(.*?):(\d+)-(\d+)$")


@dataclass(frozen=True)
class _Rule:
    kind: ToolKind
    pattern: re.Pattern
    has_body: bool = False      # group 1 is the argument line, group 2 the body
    needs_argument: bool = False


def _rule(kind: ToolKind, pattern: str, *, has_body: bool = False, needs_argument: bool = False) -> _Rule:
    return _Rule(kind, re.compile(pattern, re.IGNORECASE | re.DOTALL), has_body, needs_argument)


# Declaration order only matters for tags sharing a prefix; output order always
# follows source offsets.
_RULES: tuple[_Rule, ...] = (
    _rule(ToolKind.RUN_COMMAND, r"\s*(?:terminal|command|console|shell|bash|term|zsh|cmd|sh)\b(.*)", needs_argument=True),
    _rule(ToolKind.RUN_DIAGNOSTICS, r"\s*system_diagnostics\s*()$"),
    _rule(ToolKind.PROJECT_CONFIG, r"\s*ios:config\b(.*)"),
    _rule(ToolKind.EDIT_FILE, r"\s*edit[:\s]\s*([^\n]*)(.*)", has_body=True),
    _rule(ToolKind.LIST_TREE, r"\s*tree[:\s](.*)", needs_argument=True),
    _rule(ToolKind.SEARCH_TEXT, r"\s*search[:\s](.*)", needs_argument=True),
    _rule(ToolKind.WRITE_FILE, r"\s*file[:\s]\s*([^\n]*)(.*)", has_body=True),
    _rule(ToolKind.READ_FILE, r"\s*read[:\s](.*)", needs_argument=True),
    _rule(ToolKind.OPEN_URL, r"\s*browser:open\b:?(.*)"),
    _rule(ToolKind.PAGE_ACTION, r"\s*browser:act\b(.*)"),
    _rule(ToolKind.WEB_SEARCH, r"\s*browser:search\b(.*)"),
    _rule(ToolKind.SCREEN_CAPTURE, r"\s*desktop:screenshot\b(.*)"),
    _rule(ToolKind.INPUT_ACTION, r"\s*desktop:act\b(.*)"),
)


def _classify(block: str) -> tuple[ToolKind, str, str] | None:
    """Return (kind, argument, body) for a fenced block's inner text, or None."""
    for rule in _RULES:
        match = rule.pattern.match(block)
        if not match:
            continue
        if rule.has_body:
            return rule.kind, match.group(1).strip(), match.group(2).strip()
        argument = match.group(1).strip()
        if rule.needs_argument and not argument:
            return None
        return rule.kind, argument, ""
    return None


def _is_placeholder(kind: ToolKind, argument: str, body: str) -> bool:
    lowered = argument.lower()
    if any(fragment in lowered for fragment in _PLACEHOLDER_FRAGMENTS):
        return True
    if lowered in _PLACEHOLDER_VALUES:
        return True
    content = body if kind in (ToolKind.WRITE_FILE, ToolKind.EDIT_FILE) else argument
    return content.strip() == _ELLIPSIS


def _build(kind: ToolKind, argument: str, body: str, position: int) -> ToolDirective:
    if kind is ToolKind.READ_FILE:
        path, start, end = parse_read_argument(argument)
        line_range = f"{start}-{end}" if start is not None else ""
        return ToolDirective(kind, path, line_range, position)
    if kind is ToolKind.SEARCH_TEXT:
        query, directory = parse_search_argument(argument)
        return ToolDirective(kind, query, directory, position)
    return ToolDirective(kind, argument, body, position)


def parse_directives(text: str) -> list[ToolDirective]:
    """Extract tool directives from model output in the order they were emitted.

    Placeholder invocations (``path/to/...``, ``example.com``, ``file.txt``,
    bodies that are just ``...``) are treated as illustrative and dropped.
    """
    directives: list[ToolDirective] = []
    for match in _BLOCK_RE.finditer(text):
        classified = _classify(match.group(1))
        if classified is None:
            continue
        kind, argument, body = classified
        if _is_placeholder(kind, argument, body):
            logger.debug("Skipping placeholder %s directive: %r", kind.value, argument)
            continue
        directives.append(_build(kind, argument, body, match.start()))

    directives.sort(key=lambda d: d.position)
    return directives


def strip_directives(text: str) -> str:
    """Replace every directive block with a short marker, leaving other code blocks intact."""

    def _replace(match: re.Match) -> str:
        return TOOL_EXECUTED_MARKER if _classify(match.group(1)) else match.group(0)

    return _BLOCK_RE.sub(_replace, text)


def split_search_replace(body: str) -> tuple[str, str] | None:
    """Split an edit body into (search, replace); None when the markers are malformed."""
    parts = body.split(_DIVIDER)
    if len(parts) != 2:
        return None
    search = _SEARCH_MARKER_RE.sub("", parts[0], count=1).strip()
    replace = _REPLACE_MARKER_RE.sub("", parts[1], count=1).strip()
    return search, replace


def parse_read_argument(argument: str) -> tuple[str, int | None, int | None]:
    """``path[:start-end]`` -> (path, start, end)."""
    match = _READ_RANGE_RE.match(argument.strip())
    if match:
        return match.group(1), int(match.group(2)), int(match.group(3))
    return argument.strip(), None, None


def parse_search_argument(argument: str) -> tuple[str, str]:
    """``"quoted query" dir`` or ``query dir`` -> (query, dir); dir defaults to '.'."""
    trimmed = argument.strip()
    query, directory = trimmed, "."
    if trimmed[:1] in ("'", '"'):
        end_quote = trimmed.find(trimmed[0], 1)
        if end_quote != -1:
            query = trimmed[1:end_quote]
            rest = trimmed[end_quote + 1:].strip()
            if rest:
                directory = rest
    else:
        head, _, rest = trimmed.partition(" ")
        if rest.strip():
            query, directory = head, rest.strip()
    return query, directory
