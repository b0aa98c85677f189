"""Init command implementation"""

import json
import secrets
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console

from ..util import INSTANCE_FLAG, get_instance_path, is_initialized

console = Console()

CONFIG_TEMPLATE = """# termrelay configuration
# Every key can also be set through an environment variable of the same
# name (e.g. AUTH_TOKEN), which takes precedence over this file.

server_host = "0.0.0.0"
server_port = 3001

# Clients must present this token; leave empty to disable auth
auth_token = "{auth_token}"

default_working_dir = "{home}"

tmux_binary = "tmux"
tmux_socket_path = "{home}/.tmux-sockets/termrelay"
history_limit = 50000

attach_scrollback_lines = 1000
capture_scrollback_lines = 10000

session_ttl_hours = 24
sweep_interval_minutes = 60

cors_origins = ["http://localhost:3000"]
"""


@click.command(name="init", help="Initialize a new termrelay instance")
@click.argument(
    "path",
    type=click.Path(),
    required=False,
)
@click.option(
    "--no-auth",
    is_flag=True,
    help="Leave auth_token empty (development only)",
)
def init(path: str = None, no_auth: bool = False):
    """Initialize a new termrelay instance

    Args:
        path: Instance directory path (default: ~/.termrelay)
        no_auth: Skip generating an auth token
    """
    instance_path = get_instance_path(path)

    if is_initialized(instance_path):
        console.print(
            f"[red]Error: Already initialized at {instance_path}[/red]"
        )
        raise click.Abort()

    if instance_path.exists() and any(instance_path.iterdir()):
        console.print(
            f"[red]Error: Directory is not empty: {instance_path}[/red]"
        )
        raise click.Abort()

    # 1. Create directory structure
    console.print(f"Initializing termrelay instance at {instance_path}")
    console.print("")

    instance_path.mkdir(parents=True, exist_ok=True)
    (instance_path / "logs").mkdir(exist_ok=True)

    # 2. Generate config.toml
    console.print("Generating configuration...")

    auth_token = "" if no_auth else secrets.token_urlsafe(32)
    config_file = instance_path / "config.toml"
    config_file.write_text(CONFIG_TEMPLATE.format(
        auth_token=auth_token,
        home=Path.home().as_posix(),
    ))
    config_file.chmod(0o600)

    # 3. Create flag file
    flag_data = {
        "initialized_at": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "instance_path": str(instance_path),
    }
    with open(instance_path / INSTANCE_FLAG, "w") as f:
        json.dump(flag_data, f, indent=2)

    # 4. Display success message
    console.print("")
    console.print("[green]✓ termrelay instance initialized successfully![/green]")
    console.print("")
    console.print(f"Location: {instance_path}")
    if auth_token:
        console.print(f"Auth token: [bold]{auth_token}[/bold]")
    else:
        console.print("[yellow]Auth disabled: any client can open a terminal[/yellow]")
    console.print("")
    console.print("Next steps:")
    console.print("  1. (Optional) Edit configuration:")
    console.print(f"     {config_file}")
    console.print("")
    console.print("  2. Start the relay:")
    console.print(f"     termrelay start {path or ''}".rstrip())
    console.print("")
    console.print(f"Logs: {instance_path}/logs/")
