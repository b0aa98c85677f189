"""Start command implementation"""

import os

import click
from pydantic import ValidationError
from rich.console import Console

from ..util import (
    get_instance_path,
    get_pid_file,
    is_initialized,
    is_running,
    use_instance,
)

console = Console()


@click.command(name="start", help="Start the termrelay server")
@click.argument(
    "path",
    type=click.Path(),
    required=False,
)
def start(path: str = None):
    """Start the termrelay server in the foreground

    Args:
        path: Instance directory path (default: ~/.termrelay)
    """
    instance_path = get_instance_path(path)

    if not is_initialized(instance_path):
        console.print(
            f"[red]Error: Not initialized at {instance_path}[/red]"
        )
        console.print(
            f"[yellow]Run: termrelay init {path if path else ''}[/yellow]"
        )
        raise click.Abort()

    if is_running(instance_path):
        console.print("[red]Error: Instance already running[/red]")
        console.print(f"[yellow]Location: {instance_path}[/yellow]")
        raise click.Abort()

    # Load configuration
    use_instance(instance_path)
    from termrelay.backend.config import Settings

    try:
        settings = Settings()
    except ValidationError as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        raise click.Abort()

    host = settings.server_host
    port = settings.server_port

    console.print(f"[cyan]Starting termrelay from {instance_path}[/cyan]")
    console.print(f"[cyan]Server: http://{host}:{port}[/cyan]")
    console.print(f"[cyan]Terminal: ws://{host}:{port}/ws[/cyan]")
    if not settings.auth_token:
        console.print("[yellow]Warning: auth_token is empty, auth is disabled[/yellow]")
    console.print("")

    import uvicorn
    from termrelay.backend.app import create_app

    app = create_app(settings)

    # Save PID (current process)
    pid_file = get_pid_file(instance_path)
    pid_file.write_text(str(os.getpid()))

    try:
        uvicorn.run(
            app,
            host=host,
            port=port,
        )
    finally:
        # Clean up PID file when server stops
        pid_file.unlink(missing_ok=True)
