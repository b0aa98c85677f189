"""
Relay websocket message schemas.

Client -> Server:
    {"type": "input", "data": "ls\r"}
    {"type": "resize", "cols": 120, "rows": 40}
    {"type": "ping"}
    {"type": "capture-scrollback"}

Server -> Client:
    {"type": "output", "data": "..."}
    {"type": "scrollback", "data": "..."}
    {"type": "scrollback-content", "data": "..."}
    {"type": "connected", "resumed": true}
    {"type": "error", "error": "..."}
    {"type": "pong", "timestamp": 1767225600000}
"""

import math
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

MIN_DIMENSION = 1
MAX_DIMENSION = 500


def clamp_dimension(value: Any, default: int) -> int:
    """Floor and clamp a terminal dimension to [1, 500]; junk becomes default."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or number == 0:
        return default
    if math.isinf(number):
        return MAX_DIMENSION if number > 0 else MIN_DIMENSION
    return max(MIN_DIMENSION, min(MAX_DIMENSION, math.floor(number)))


# ==================== Inbound ====================


class InputMessage(BaseModel):
    type: Literal["input"]
    data: str


class ResizeMessage(BaseModel):
    type: Literal["resize"]
    cols: int = 80
    rows: int = 24

    @field_validator('cols', mode='before')
    @classmethod
    def clamp_cols(cls, value: Any) -> int:
        return clamp_dimension(value, 80)

    @field_validator('rows', mode='before')
    @classmethod
    def clamp_rows(cls, value: Any) -> int:
        return clamp_dimension(value, 24)


class PingMessage(BaseModel):
    type: Literal["ping"]


class CaptureScrollbackMessage(BaseModel):
    type: Literal["capture-scrollback"]


ClientMessage = Annotated[
    Union[InputMessage, ResizeMessage, PingMessage, CaptureScrollbackMessage],
    Field(discriminator="type"),
]

client_message_adapter: TypeAdapter = TypeAdapter(ClientMessage)


def parse_client_message(raw: str) -> ClientMessage:
    """
    Parse one inbound websocket frame.

    Raises:
        pydantic.ValidationError: If the frame is not JSON or not a known message
    """
    return client_message_adapter.validate_json(raw)


# ==================== Outbound ====================


class OutputMessage(BaseModel):
    type: Literal["output"] = "output"
    data: str


class ScrollbackMessage(BaseModel):
    type: Literal["scrollback"] = "scrollback"
    data: str


class ScrollbackContentMessage(BaseModel):
    type: Literal["scrollback-content"] = "scrollback-content"
    data: str


class ConnectedMessage(BaseModel):
    type: Literal["connected"] = "connected"
    resumed: bool


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    error: str


class PongMessage(BaseModel):
    type: Literal["pong"] = "pong"
    timestamp: int = Field(..., description="Server time in milliseconds")
