"""Rich console output and markdown transcript save for council answers."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from council_ai.models import Agent, AgentStats, AskResult, CouncilEvent, EventType, ProviderResponse

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_EVENT_STYLES: dict[EventType, str] = {
    EventType.STEP: "bold cyan",
    EventType.TOOL_START: "magenta",
    EventType.TOOL_RESULT: "dim",
    EventType.AGENT_THINKING: "dim",
    EventType.AGENT_RESPONSE: "green",
    EventType.INFO: "blue",
    EventType.ERROR: "bold red",
    EventType.SUCCESS: "bold green",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _preview(text: str, words: int = 50) -> str:
    """Return first N words of a response."""
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def describe_event(event: CouncilEvent) -> str:
    """One-line human description of a progress event."""
    payload = event.payload
    agent = payload.get("agent")
    if event.type is EventType.AGENT_THINKING and agent is not None:
        return f"{agent.name} thinking (~{payload.get('estimated_tokens', 0)} tokens)"
    if event.type is EventType.AGENT_RESPONSE and agent is not None:
        return f"{agent.name} answered in {payload.get('duration', 0)}s"
    if event.type is EventType.TOOL_START:
        return f"{payload.get('tool', '?')}: {payload.get('input', '')}"
    if event.type is EventType.TOOL_RESULT:
        return f"{payload.get('tool', '?')} {'done' if payload.get('ok') else 'failed'}"
    return event.message


def print_event(event: CouncilEvent, target: Console | None = None) -> None:
    (target or console).print(Text(describe_event(event), style=_EVENT_STYLES[event.type]))


def print_council_responses(responses: list[ProviderResponse], agents: list[Agent]) -> None:
    """Print a brief panel per council opinion."""
    if not responses:
        return
    names = {a.id: a.name for a in agents}
    console.print(Rule("[bold cyan]Council Opinions[/bold cyan]"))
    for resp in responses:
        body = _preview(resp.text) if resp.ok else f"[red]{resp.error}[/red]"
        console.print(
            Panel(
                body,
                title=f"[bold]{names.get(resp.agent_id, resp.agent_id)}[/bold] ({resp.model})",
                subtitle=f"{resp.latency_sec:.1f}s",
                border_style="dim" if resp.ok else "red",
            )
        )


def print_answer(result: AskResult, chair_name: str) -> None:
    """Print the chair's final answer using Rich markdown."""
    chair = result.chair_response
    if not chair.ok:
        console.print(f"[bold red]{chair.error}:[/bold red] {chair.text}")
        return
    console.print(Rule(f"[bold green]{chair_name}[/bold green]"))
    console.print(
        Text(
            f"Model: {chair.model} | Duration: {chair.latency_sec:.1f}s | Turns: {result.turns}",
            style="dim",
        )
    )
    console.print(Markdown(chair.text))


def print_stats(stats: dict[str, AgentStats], agents: list[Agent], global_efficiency: float) -> None:
    table = Table(title="Council efficiency")
    table.add_column("Agent")
    table.add_column("Total", justify="right")
    table.add_column("Accepted", justify="right")
    table.add_column("Partial", justify="right")
    table.add_column("Rejected", justify="right")
    table.add_column("Efficiency", justify="right")
    names = {a.id: a.name for a in agents}
    for agent_id in sorted(stats):
        s = stats[agent_id]
        table.add_row(
            names.get(agent_id, agent_id),
            str(s.total),
            str(s.accepted),
            str(s.partial),
            str(s.rejected),
            f"{s.efficiency:.0f}%",
        )
    console.print(table)
    console.print(f"Global efficiency: [bold]{global_efficiency:.0f}%[/bold]")


def save_transcript(question: str, result: AskResult, agents: list[Agent], output_dir: Path) -> Path:
    """Save the question, council opinions and chair answer as a markdown file.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(question)}.md"
    names = {a.id: a.name for a in agents}
    chair = result.chair_response

    lines: list[str] = [
        f"# AI Council: {question[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Chair:** {names.get(chair.agent_id, chair.agent_id)} ({chair.model})",
        f"**Council:** {', '.join(names.get(r.agent_id, r.agent_id) for r in result.council_responses) or 'none'}",
        f"**Turns:** {result.turns}",
        "",
        "---",
        "",
        "## Question",
        "",
        question,
        "",
    ]

    if result.council_responses:
        lines += ["## Council Opinions", ""]
        for resp in result.council_responses:
            lines.append(f"### {names.get(resp.agent_id, resp.agent_id)} ({resp.model})")
            lines.append("")
            lines.append(resp.text if resp.ok else f"*Failed: {resp.error}*")
            lines.append("")
            lines.append(f"*Latency: {resp.latency_sec:.2f}s*")
            lines.append("")

    lines += ["## Chair Answer", "", chair.text, ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
