"""Enumeration types for backend"""
from enum import IntEnum


class CloseCode(IntEnum):
    """Websocket close codes sent by the relay

    The client keys its reconnect policy off these: no retry on
    UNAUTHORIZED or INVALID_SESSION_ID, no immediate reconnect on
    SUPERSEDED.
    """
    NORMAL = 1000  # terminal process exited
    INTERNAL_ERROR = 1011
    UNAUTHORIZED = 4001
    SUPERSEDED = 4002  # replaced by a newer connection for the same session
    ATTACH_FAILED = 4003
    INVALID_SESSION_ID = 4004
