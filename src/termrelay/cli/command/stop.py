"""Stop command implementation"""

import os
import signal
import time

import click
from rich.console import Console

from ..util import (
    get_instance_path,
    get_pid_file,
    is_initialized,
    is_process_alive,
    read_pid,
)

console = Console()

# Seconds to wait for a graceful shutdown
STOP_TIMEOUT = 10


def _wait_for_exit(pid: int, timeout: float) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not is_process_alive(pid):
            return True
        time.sleep(0.2)
    return not is_process_alive(pid)


@click.command(name="stop", help="Stop the termrelay server")
@click.argument(
    "path",
    type=click.Path(),
    required=False,
)
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Force kill if graceful shutdown fails",
)
def stop(path: str = None, force: bool = False):
    """Stop the termrelay server

    tmux sessions are not touched: they keep running for the next start.

    Args:
        path: Instance directory path (default: ~/.termrelay)
        force: Force kill if graceful shutdown fails
    """
    instance_path = get_instance_path(path)

    if not is_initialized(instance_path):
        console.print(
            f"[red]Error: Not initialized at {instance_path}[/red]"
        )
        raise click.Abort()

    pid_file = get_pid_file(instance_path)
    pid = read_pid(instance_path)
    if pid is None or not is_process_alive(pid):
        pid_file.unlink(missing_ok=True)
        console.print(f"[yellow]Instance not running at {instance_path}[/yellow]")
        return

    # 1. Graceful shutdown
    console.print(f"Stopping termrelay (pid {pid})...")
    os.kill(pid, signal.SIGTERM)

    # 2. Wait, then escalate if asked to
    if not _wait_for_exit(pid, STOP_TIMEOUT):
        if not force:
            console.print(
                f"[red]Error: Process {pid} did not exit within {STOP_TIMEOUT}s[/red]"
            )
            console.print("[yellow]Retry with --force to kill it[/yellow]")
            raise click.Abort()
        console.print("[yellow]Graceful shutdown timed out, sending SIGKILL[/yellow]")
        os.kill(pid, signal.SIGKILL)
        _wait_for_exit(pid, 2)

    pid_file.unlink(missing_ok=True)
    console.print("[green]✓ termrelay stopped[/green]")
