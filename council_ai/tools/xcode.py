"""Read and change build settings in an Xcode ``project.pbxproj``.

The file is edited textually: build settings live in ``buildSettings = { ... };``
blocks of XCBuildConfiguration objects, one ``KEY = value;`` per line.
"""

import logging
import re
from pathlib import Path

from council_ai.models import ToolResult

logger = logging.getLogger(__name__)

USAGE = "Usage: ios:config <list|get|set> <project.pbxproj> [key] [value]"

_NATIVE_TARGET_RE = re.compile(
    r"^\s*([0-9A-F]{24}) /\* (.+?) \*/ = \{\s*isa = PBXNativeTarget;", re.MULTILINE
)
_CONFIG_RE = re.compile(
    r"^\s*([0-9A-F]{24}) /\* (.+?) \*/ = \{\s*isa = XCBuildConfiguration;", re.MULTILINE
)
_BUILD_SETTINGS_RE = re.compile(r"(buildSettings = \{)(.*?)(\n([ \t]*)\};)", re.DOTALL)
_SAFE_VALUE_RE = re.compile(r"^[A-Za-z0-9_./$()-]+$")


def _setting_re(key: str) -> re.Pattern:
    return re.compile(rf'^(\s*)("?){re.escape(key)}\2 = (.*);$', re.MULTILINE)


def _quote(value: str) -> str:
    if _SAFE_VALUE_RE.match(value):
        return value
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def list_settings(content: str) -> str:
    targets = _NATIVE_TARGET_RE.findall(content)
    configs = _CONFIG_RE.findall(content)
    report = ["Targets:"]
    report += [f" - {name} (UUID: {uuid})" for uuid, name in targets] or [" (none)"]
    report += ["", "Build Configurations:"]
    report += [f" - {name} (UUID: {uuid})" for uuid, name in configs] or [" (none)"]
    return "\n".join(report)


def get_setting(content: str, key: str) -> str | None:
    """First value of ``key`` across all build configurations, unquoted."""
    for block in _BUILD_SETTINGS_RE.finditer(content):
        match = _setting_re(key).search(block.group(2))
        if match:
            value = match.group(3).strip()
            if len(value) >= 2 and value[0] == value[-1] == '"':
                value = value[1:-1]
            return value
    return None


def set_setting(content: str, key: str, value: str) -> tuple[str, int]:
    """Set ``key`` in every build configuration, adding it where missing.

    Returns the new content and the number of configurations touched.
    """
    pattern = _setting_re(key)
    rendered = _quote(value)
    count = 0

    def _update(block: re.Match) -> str:
        nonlocal count
        count += 1
        body = block.group(2)
        if pattern.search(body):
            body = pattern.sub(lambda m: f"{m.group(1)}{m.group(2)}{key}{m.group(2)} = {rendered};", body)
        else:
            indent = block.group(4) + "\t"
            body = f"{body.rstrip()}\n{indent}{key} = {rendered};"
        return block.group(1) + body + block.group(3)

    return _BUILD_SETTINGS_RE.sub(_update, content), count


def project_config(cwd: Path, arguments: str) -> ToolResult:
    args = arguments.split()
    if len(args) < 2:
        return ToolResult(error=USAGE)
    action, project_arg = args[0].lower(), args[1]

    project = Path(project_arg).expanduser()
    if not project.is_absolute():
        project = cwd / project
    if not project.is_file():
        return ToolResult(error=f"Project file not found: {project}")

    try:
        content = project.read_text(encoding="utf-8")
        if action == "list":
            return ToolResult(output=list_settings(content))
        if action == "get":
            if len(args) < 3:
                return ToolResult(error="Missing key for get")
            return ToolResult(output=f"Value for {args[2]}: {get_setting(content, args[2])}")
        if action == "set":
            if len(args) < 4:
                return ToolResult(error="Missing key or value for set")
            key, value = args[2], " ".join(args[3:])
            new_content, count = set_setting(content, key, value)
            if count == 0:
                return ToolResult(error="No build configurations found")
            project.write_text(new_content, encoding="utf-8")
            logger.info("Set %s = %s in %d configurations of %s", key, value, count, project)
            return ToolResult(output=f"Successfully set {key} = {value} in {project_arg}")
    except OSError as exc:
        return ToolResult(error=f"iOS Config Error: {exc}")
    return ToolResult(error=f"Unknown action: {action}")
