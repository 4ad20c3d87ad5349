"""CLI commands for agent-sensei."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from agent_sensei import __version__

if TYPE_CHECKING:
    from agent_sensei.config.schema import Config
    from agent_sensei.engine import PendingApproval
    from agent_sensei.providers.base import CompletionProvider

app = typer.Typer(
    name="agent-sensei",
    help="agent-sensei - watches CLI coding agents in tmux and answers them",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"agent-sensei v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """agent-sensei entrypoint."""
    del version


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


@app.command()
def onboard(
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite existing config without prompt.",
    ),
) -> None:
    """Write a default configuration file."""
    from agent_sensei.config.loader import get_config_path, save_config
    from agent_sensei.config.schema import Config
    from agent_sensei.utils.helpers import get_data_path

    config_path = get_config_path()
    if config_path.exists() and not force:
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    config = Config()
    save_config(config, config_path)
    console.print(f"[green]OK[/green] Created config at {config_path}")

    data_path = get_data_path(config.data_dir)
    console.print(f"[green]OK[/green] Data directory at {data_path}")

    console.print("\nNext steps:")
    console.print("  1. (Optional) set [cyan]completion.apiKey[/cyan] and [cyan]completion.enabled[/cyan]")
    console.print("  2. Watch a project: [cyan]agent-sensei watch ~/code/project[/cyan]")


@app.command()
def status() -> None:
    """Show config location and effective engine settings."""
    from agent_sensei.config.loader import get_config_path, load_config

    config_path = get_config_path()
    config = load_config()

    console.print("agent-sensei Status\n")
    console.print(f"Config: {config_path} {'[green]OK[/green]' if config_path.exists() else '[red]NO[/red]'}")
    console.print(f"Data: {config.data_path}")
    console.print(f"Command: [cyan]{escape(config.supervisor.command)}[/cyan]")
    if config.completion.enabled:
        console.print(
            f"Completion: [cyan]{config.completion.base_url}{config.completion.endpoint}[/cyan]"
            f" model={config.completion.model}"
        )
    else:
        console.print("Completion: [dim]disabled[/dim]")

    table = Table(title="Engine")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in config.engine.model_dump().items():
        table.add_row(name, escape(str(value)))
    console.print(table)


@app.command()
def normalize(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Captured frame text."),
    markers: str = typer.Option(
        "",
        "--markers",
        help="Comma-separated busy markers (default: configured markers).",
    ),
) -> None:
    """Print a captured frame as normalized lines, marking busy lines."""
    from agent_sensei.config.loader import load_config
    from agent_sensei.engine import BusyDetector, parse_frame

    config = load_config()
    marker_list = [m.strip() for m in markers.split(",") if m.strip()] or config.engine.busy_markers
    detector = BusyDetector(marker_list)

    raw = file.read_text(encoding="utf-8", errors="replace")
    frame = parse_frame(raw, display_limit=config.engine.display_limit)
    for line in frame.display:
        flag = "[yellow]busy[/yellow]" if detector.is_busy_line(line) else "[dim]    [/dim]"
        console.print(f"{flag} {escape(line)}")

    state = "[yellow]busy[/yellow]" if detector.is_busy(frame.display) else "[green]idle[/green]"
    console.print(f"\n{len(frame.display)} display lines, {len(frame.full)} log lines, {state}")


@app.command()
def watch(
    directory: Path = typer.Argument(..., exists=True, file_okay=False, help="Project directory."),
    command: str = typer.Option("", "--command", "-c", help="Command to run in tmux."),
    quiet_window: float = typer.Option(None, "--quiet-window", help="Quiet window in seconds."),
    min_interval: float = typer.Option(None, "--min-interval", help="Minimum seconds between dispatches."),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging."),
) -> None:
    """Run an agent in tmux and approve its automated responses."""
    from agent_sensei.config.loader import load_config

    _configure_logging(verbose)
    config = load_config()
    if command:
        config.supervisor.command = command

    overrides: dict[str, float] = {}
    if quiet_window is not None:
        overrides["quiet_window_s"] = quiet_window
    if min_interval is not None:
        overrides["min_dispatch_interval_s"] = min_interval

    try:
        asyncio.run(_watch(config, directory.resolve(), overrides))
    except KeyboardInterrupt:
        console.print("\nStopped.")


def _build_suggester(config: "Config", directory: Path) -> "CompletionProvider | None":
    if not config.completion.enabled:
        return None

    from agent_sensei.providers.openai_compat import OpenAICompatProvider
    from agent_sensei.providers.suggester import TerminalSuggester

    provider = OpenAICompatProvider(
        api_key=config.completion.api_key,
        api_base=config.completion.base_url,
        endpoint=config.completion.endpoint,
        default_model=config.completion.model,
        request_timeout_s=config.completion.request_timeout_s,
    )
    return TerminalSuggester(
        provider,
        project_name=config.completion.project_name or directory.name,
        project_path=str(directory),
        model=config.completion.model,
        system_prompt=config.completion.system_prompt,
        max_tokens=config.completion.max_tokens,
        temperature=config.completion.temperature,
    )


async def _watch(config: "Config", directory: Path, overrides: dict[str, float]) -> None:
    from agent_sensei.providers.supervisor import TmuxSupervisor
    from agent_sensei.session.registry import SessionRegistry
    from agent_sensei.session.store import JsonFileStore
    from agent_sensei.utils.helpers import get_state_path

    staged: asyncio.Queue[tuple[str, PendingApproval]] = asyncio.Queue()

    def on_epoch_closed(session_id: str, pending: "PendingApproval | None") -> None:
        if pending is not None:
            staged.put_nowait((session_id, pending))

    def on_error(session_id: str, error: str) -> None:
        console.print(f"[red]{session_id}: {escape(error)}[/red]")

    sup = config.supervisor
    supervisor = TmuxSupervisor(
        command=sup.command,
        session_prefix=sup.session_prefix,
        log_dir=sup.log_dir,
        scrollback_lines=sup.scrollback_lines,
        chunk_size=sup.chunk_size,
        chunk_delay_s=sup.chunk_delay_s,
        command_timeout_s=sup.command_timeout_s,
    )
    registry = SessionRegistry(
        supervisor,
        config=config.engine,
        store=JsonFileStore(get_state_path(config.data_dir)),
        suggester=_build_suggester(config, directory),
        on_epoch_closed=on_epoch_closed,
        on_error=on_error,
    )

    ctx = await registry.open_session(str(directory), overrides=overrides)
    console.print(f"Watching [cyan]{directory}[/cyan] as session [cyan]{ctx.session_id}[/cyan]")
    console.print(f"Attach with: [cyan]tmux attach -t {ctx.handle.name}[/cyan]")

    try:
        while True:
            session_id, pending = await staged.get()
            if not registry.get(session_id).gate.is_current(pending):
                continue
            console.rule("Agent is waiting")
            console.print(escape(pending.filtered_content))
            choice = await asyncio.to_thread(
                typer.prompt, "[a]pprove / [e]dit / [r]eject / [q]uit", default="a"
            )
            choice = choice.strip().lower()[:1]
            if choice == "q":
                break
            if choice == "r":
                await registry.reject(session_id)
                console.print("[yellow]Rejected[/yellow]")
                continue

            text = None
            if choice == "e":
                text = await asyncio.to_thread(typer.prompt, "Text to send")
            result = await registry.approve(session_id, text)
            if result is None:
                console.print("[dim]Asked for a suggestion...[/dim]")
            elif result.sent:
                console.print(f"[green]Sent[/green] {escape(result.text)}")
            elif result.reason == "rate_limited":
                console.print(f"[yellow]Cooldown: {result.remaining_s:.0f}s remaining[/yellow]")
            else:
                console.print(f"[red]Not sent ({result.reason})[/red] {escape(result.error)}")
    finally:
        await registry.close_all()


@app.command()
def history(
    session_id: str = typer.Argument(..., help="Session id."),
) -> None:
    """Show the persisted history of a session."""
    from agent_sensei.config.loader import load_config
    from agent_sensei.engine import HistoryEntry
    from agent_sensei.session.store import JsonFileStore, session_key
    from agent_sensei.utils.helpers import get_state_path

    config = load_config()
    store = JsonFileStore(get_state_path(config.data_dir))
    items = store.get(session_key(session_id, "history"))
    if not isinstance(items, list) or not items:
        console.print(f"[red]No history for session {escape(session_id)}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"History {session_id}")
    table.add_column("Time", style="dim")
    table.add_column("Kind", style="cyan")
    table.add_column("Approved")
    table.add_column("Content")
    for item in items:
        entry = HistoryEntry.from_dict(item)
        stamp = datetime.fromtimestamp(entry.timestamp).strftime("%Y-%m-%d %H:%M:%S")
        approved = "" if entry.approved is None else ("yes" if entry.approved else "no")
        table.add_row(stamp, entry.kind.value, approved, escape(entry.content))
    console.print(table)
