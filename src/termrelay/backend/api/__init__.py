"""
API package for REST and WebSocket endpoints.
"""

from .health import router as health_router
from .session import router as session_router
from .websocket import router as websocket_router

__all__ = [
    "health_router",
    "session_router",
    "websocket_router",
]
