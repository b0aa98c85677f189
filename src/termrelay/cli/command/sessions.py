"""Sessions command group: inspect and kill relay-owned tmux sessions"""

import asyncio
from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

from ..util import get_instance_path, use_instance

console = Console()


def _controller(path: str | None):
    use_instance(get_instance_path(path))
    from termrelay.backend.config import Settings
    from termrelay.backend.terminal.tmux import TmuxController

    return TmuxController.from_settings(Settings())


def _relay_sessions(tmux):
    from termrelay.backend.terminal.namer import SESSION_NAMESPACE

    sessions = asyncio.run(tmux.list_all_sessions())
    return [s for s in sessions if s.session_name.startswith(f"{SESSION_NAMESPACE}-")]


def _format_time(ts: int) -> str:
    return datetime.fromtimestamp(ts).strftime("%m-%d %H:%M") if ts else "-"


@click.group(name="sessions", help="Manage relay tmux sessions")
def sessions():
    pass


@sessions.command(name="list", help="List relay tmux sessions")
@click.argument("path", type=click.Path(), required=False)
def list_sessions(path: str = None):
    tmux = _controller(path)
    relay_sessions = _relay_sessions(tmux)

    if not relay_sessions:
        console.print("[yellow]No relay sessions[/yellow]")
        return

    table = Table(title=f"tmux sessions on {tmux.socket_path or 'default socket'}")
    table.add_column("Name", style="cyan")
    table.add_column("Created")
    table.add_column("Last activity")
    table.add_column("Attached", justify="right")

    for info in sorted(relay_sessions, key=lambda s: s.created_at):
        table.add_row(
            info.session_name,
            _format_time(info.created_at),
            _format_time(info.last_activity),
            str(info.attached),
        )
    console.print(table)


@sessions.command(name="kill", help="Kill relay tmux sessions by name")
@click.argument("names", nargs=-1)
@click.option("--all", "kill_all", is_flag=True, help="Kill every relay session")
@click.option("--path", type=click.Path(), default=None, help="Instance directory path")
def kill_sessions(names: tuple[str, ...], kill_all: bool = False, path: str = None):
    tmux = _controller(path)
    known = {s.session_name for s in _relay_sessions(tmux)}

    if kill_all:
        targets = sorted(known)
    elif names:
        targets = list(names)
    else:
        console.print("[red]Error: Give session names or --all[/red]")
        raise click.Abort()

    for name in targets:
        if name not in known:
            console.print(f"[yellow]Skipping {name}: not a relay session[/yellow]")
            continue
        asyncio.run(tmux.kill_session(name))
        console.print(f"[green]✓ Killed {name}[/green]")
