"""CLI command package"""

from .init import init
from .sessions import sessions
from .start import start
from .stop import stop

__all__ = ["init", "sessions", "start", "stop"]
