"""Permission gate for tool directives. Denial is an outcome, never an exception."""

from council_ai.models import PermissionSet, ToolDirective, ToolKind

# kind -> (required flags, human label for the denial message)
_REQUIREMENTS: dict[ToolKind, tuple[tuple[str, ...], str]] = {
    ToolKind.RUN_COMMAND: (("allow_command",), "terminal commands"),
    ToolKind.RUN_DIAGNOSTICS: (("allow_command",), "terminal commands"),
    ToolKind.READ_FILE: (("allow_file_read",), "file reading"),
    ToolKind.LIST_TREE: (("allow_file_read",), "file reading"),
    ToolKind.SEARCH_TEXT: (("allow_file_read", "allow_command"), "file reading or terminal commands"),
    ToolKind.WRITE_FILE: (("allow_file_write",), "file writing"),
    ToolKind.EDIT_FILE: (("allow_file_edit",), "file editing"),
    ToolKind.PROJECT_CONFIG: (("allow_file_edit",), "file editing"),
    ToolKind.OPEN_URL: (("allow_browser",), "browser access"),
    ToolKind.WEB_SEARCH: (("allow_browser",), "browser access"),
    ToolKind.PAGE_ACTION: (("allow_browser",), "browser access"),
    ToolKind.SCREEN_CAPTURE: (("allow_desktop",), "desktop control"),
    ToolKind.INPUT_ACTION: (("allow_desktop",), "desktop control"),
}


def is_permitted(kind: ToolKind, permissions: PermissionSet) -> bool:
    flags, _ = _REQUIREMENTS[kind]
    return all(getattr(permissions, flag) for flag in flags)


def denial_message(directive: ToolDirective) -> str:
    """Textual record fed back to the chair when a directive is not allowed."""
    _, label = _REQUIREMENTS[directive.kind]
    return (
        f"{describe(directive)}\n"
        f"Error: Permission denied. User has disabled {label} in settings.\n\n"
    )


def describe(directive: ToolDirective) -> str:
    """One-line header naming the tool call, shared by results and denials."""
    kind = directive.kind
    if kind is ToolKind.RUN_COMMAND:
        return f"Command: {directive.primary}"
    if kind is ToolKind.WRITE_FILE:
        return f"Write File: {directive.primary}"
    if kind is ToolKind.EDIT_FILE:
        return f"Edit File: {directive.primary}"
    if kind is ToolKind.READ_FILE:
        suffix = f":{directive.secondary}" if directive.secondary else ""
        return f"Read File: {directive.primary}{suffix}"
    if kind is ToolKind.LIST_TREE:
        return f"Tree View: {directive.primary}"
    if kind is ToolKind.SEARCH_TEXT:
        return f'Smart Search: "{directive.primary}" in "{directive.secondary}"'
    if kind is ToolKind.RUN_DIAGNOSTICS:
        return "System Diagnostics"
    if kind is ToolKind.PROJECT_CONFIG:
        return f"Project Config: {directive.primary}"
    labels = {
        ToolKind.OPEN_URL: "Browser Open",
        ToolKind.WEB_SEARCH: "Browser Search",
        ToolKind.PAGE_ACTION: "Browser Act",
        ToolKind.SCREEN_CAPTURE: "Desktop Screenshot",
        ToolKind.INPUT_ACTION: "Desktop Act",
    }
    return f"{labels[kind]}: {directive.primary}"
