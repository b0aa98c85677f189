"""termrelay CLI entry point"""

import click
from rich.console import Console

from .command.init import init
from .command.sessions import sessions
from .command.start import start
from .command.stop import stop

console = Console()


@click.group(
    name="termrelay",
    help="termrelay - Persistent browser terminals backed by tmux",
)
def main():
    """Main CLI entry point"""
    pass


# Register commands
main.add_command(init)
main.add_command(start)
main.add_command(stop)
main.add_command(sessions)


if __name__ == "__main__":
    main()
