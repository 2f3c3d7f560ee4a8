"""Click CLI: config loading, store wiring, council questions and maintenance commands."""

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from council_ai.config.config_loader import AppConfig, load_config
from council_ai.council import Council
from council_ai.errors import AskAborted, CouncilError
from council_ai.events import EventEmitter
from council_ai.healthcheck import run_health_checks
from council_ai.history import HistoryStore
from council_ai.models import AskResult, ProviderResponse
from council_ai.output import print_answer, print_council_responses, print_event, print_stats, save_transcript
from council_ai.providers.registry import ProviderRegistry
from council_ai.stats import StatsStore
from council_ai.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

HISTORY_FILE = "history.json"
STATS_FILE = "stats.json"
_EXIT_WORDS = {"/exit", "/quit", "exit", "quit"}


@dataclass
class Session:
    config: AppConfig
    history: HistoryStore
    stats: StatsStore


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _open_session(settings: str | None, reset_stats: bool = False) -> Session:
    """Load config and the persisted stores. Exits with status 1 on config errors."""
    try:
        config = load_config(Path(settings) if settings else None)
    except (FileNotFoundError, CouncilError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    storage = config.defaults.storage_dir
    history = HistoryStore(storage / HISTORY_FILE)
    history.load()
    stats = StatsStore(storage / STATS_FILE)
    stats.load()
    if reset_stats and config.defaults.reset_stats_on_start:
        stats.reset()
        logger.info("Stats reset at session start")
    return Session(config=config, history=history, stats=stats)


def _build_council(session: Session, executor: ToolExecutor) -> Council:
    return Council(
        config=session.config,
        history=session.history,
        stats=session.stats,
        providers=ProviderRegistry(session.config),
        executor=executor,
        emitter=EventEmitter(print_event),
    )


async def _ask_with_progress(
    council: Council,
    question: str,
    abort: asyncio.Event,
    use_council: bool,
    chair_id: str | None,
) -> AskResult:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Council is working...", total=None)

        def on_council_response(resp: ProviderResponse) -> None:
            mark = "[green]OK[/green]" if resp.ok else "[red]FAIL[/red]"
            progress.print(f"{mark} {resp.agent_id} ({resp.latency_sec:.1f}s)")

        return await council.ask(
            question,
            signal=abort,
            on_council_response=on_council_response,
            use_council=use_council,
            chair_id=chair_id,
        )


async def _ask_interruptible(
    council: Council,
    question: str,
    use_council: bool = True,
    chair_id: str | None = None,
) -> AskResult | None:
    """Run one question; Ctrl+C aborts it and returns None instead of exiting."""
    abort = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, abort.set)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False
    try:
        result = await _ask_with_progress(council, question, abort, use_council, chair_id)
    except AskAborted:
        console.print("[yellow]Aborted.[/yellow]")
        return None
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)

    chair = council.resolve_chair(chair_id)
    print_council_responses(result.council_responses, council.config.agents)
    print_answer(result, chair.name if chair else "Council")
    return result


@click.group()
@click.option("--settings", default=None, type=click.Path(dir_okay=False),
              help="Path to settings.yaml (default: $COUNCIL_AI_SETTINGS or the bundled file)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.pass_context
def main(ctx: click.Context, settings: str | None, verbose: bool) -> None:
    """AI Council -- a panel of models advises, a chair answers and acts.

    \b
    Examples:
      council-ai ask "Why does my build fail?"
      council-ai ask "Summarise README.md" --no-council
      council-ai ask "Refactor utils.py" --chair gpt --save ./transcripts
      council-ai chat
      council-ai stats
    """
    # Reconfigure stdout/stderr to UTF-8 on Windows so model responses containing
    # Unicode chars don't crash the ANSI render path.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command()
@click.argument("question")
@click.option("--no-council", is_flag=True, help="Ask the chair alone")
@click.option("--chair", "chair_id", default=None, help="Agent id to chair this question")
@click.option("--save", "save_dir", default=None, type=click.Path(file_okay=False),
              help="Save a markdown transcript into this directory")
@click.pass_context
def ask(ctx: click.Context, question: str, no_council: bool, chair_id: str | None, save_dir: str | None) -> None:
    """Ask the council one QUESTION."""
    session = _open_session(ctx.obj["settings"], reset_stats=True)

    async def _run() -> AskResult | None:
        executor = ToolExecutor()
        try:
            council = _build_council(session, executor)
            result = await _ask_interruptible(council, question, use_council=not no_council, chair_id=chair_id)
            if result is not None and result.scoring_task is not None:
                await result.scoring_task
            return result
        finally:
            await executor.close()

    try:
        result = asyncio.run(_run())
    except CouncilError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    if result is not None and save_dir:
        saved = save_transcript(question, result, session.config.agents, Path(save_dir))
        console.print(f"\n[dim]Saved to: {saved}[/dim]")


@main.command()
@click.pass_context
def chat(ctx: click.Context) -> None:
    """Interactive session. Ctrl+C aborts the current question; /exit leaves."""
    session = _open_session(ctx.obj["settings"], reset_stats=True)

    async def _loop() -> None:
        executor = ToolExecutor()
        council = _build_council(session, executor)
        pending: list[asyncio.Task] = []
        console.print("[bold cyan]AI Council[/bold cyan] -- /exit to quit, /clear, /compact, /stats")
        try:
            while True:
                try:
                    line = await asyncio.to_thread(click.prompt, "You", prompt_suffix="> ")
                except (click.Abort, EOFError):
                    break
                text = line.strip()
                if not text:
                    continue
                if text in _EXIT_WORDS:
                    break
                if text == "/clear":
                    session.history.clear()
                    console.print("[dim]New session started.[/dim]")
                    continue
                if text == "/compact":
                    removed = session.history.compact(session.config.defaults.manual_compact_keep)
                    console.print(f"[dim]History compacted ({removed} messages removed).[/dim]")
                    continue
                if text == "/stats":
                    print_stats(session.stats.all(), session.config.agents, session.stats.global_efficiency())
                    continue
                try:
                    result = await _ask_interruptible(council, text)
                except CouncilError as exc:
                    console.print(f"[bold red]Error:[/bold red] {exc}")
                    continue
                if result is not None and result.scoring_task is not None:
                    pending.append(result.scoring_task)
        finally:
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            await executor.close()

    asyncio.run(_loop())


@main.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show per-agent efficiency counters."""
    session = _open_session(ctx.obj["settings"])
    print_stats(session.stats.all(), session.config.agents, session.stats.global_efficiency())


@main.command("reset-stats")
@click.pass_context
def reset_stats(ctx: click.Context) -> None:
    """Zero all efficiency counters."""
    session = _open_session(ctx.obj["settings"])
    session.stats.reset()
    console.print("Stats reset.")


@main.command()
@click.pass_context
def compact(ctx: click.Context) -> None:
    """Keep only the most recent messages of the history."""
    session = _open_session(ctx.obj["settings"])
    keep = session.config.defaults.manual_compact_keep
    removed = session.history.compact(keep)
    console.print(f"History compacted: {removed} removed, {len(session.history)} kept.")


@main.command()
@click.pass_context
def clear(ctx: click.Context) -> None:
    """Start a new session by wiping the history."""
    session = _open_session(ctx.obj["settings"])
    session.history.clear()
    console.print("History cleared.")


@main.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Ping every enabled agent in parallel."""
    session = _open_session(ctx.obj["settings"])
    agents = [a for a in session.config.agents if a.enabled]
    if not agents:
        console.print("[bold red]Error:[/bold red] No agents available. Check API keys in .env.")
        sys.exit(1)

    console.print("\n[bold]Checking agents...[/bold]")
    results = asyncio.run(run_health_checks(agents, ProviderRegistry(session.config)))
    failed = 0
    for agent_id in sorted(results):
        ok, err = results[agent_id]
        if ok:
            console.print(f"  [green]OK  [/green] {agent_id}")
        else:
            failed += 1
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {agent_id}: {short_err}")
    if failed == len(results):
        sys.exit(1)


@main.command()
def diagnostics() -> None:
    """Run the tool self-diagnostics in the current directory."""

    async def _run() -> str:
        executor = ToolExecutor()
        try:
            return await executor.run_diagnostics()
        finally:
            await executor.close()

    console.print(asyncio.run(_run()))


if __name__ == "__main__":
    main()
