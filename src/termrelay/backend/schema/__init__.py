"""
Pydantic schemas for the HTTP API and the relay websocket protocol.
"""

from .response import SuccessResponse, ErrorResponse
from .session import SessionOut, WorkingDirectoryOut, PaneCommandOut, HealthOut
from .terminal import (
    InputMessage,
    ResizeMessage,
    PingMessage,
    CaptureScrollbackMessage,
    OutputMessage,
    ScrollbackMessage,
    ScrollbackContentMessage,
    ConnectedMessage,
    ErrorMessage,
    PongMessage,
    parse_client_message,
)

__all__ = [
    "SuccessResponse",
    "ErrorResponse",
    "SessionOut",
    "WorkingDirectoryOut",
    "PaneCommandOut",
    "HealthOut",
    "InputMessage",
    "ResizeMessage",
    "PingMessage",
    "CaptureScrollbackMessage",
    "OutputMessage",
    "ScrollbackMessage",
    "ScrollbackContentMessage",
    "ConnectedMessage",
    "ErrorMessage",
    "PongMessage",
    "parse_client_message",
]
