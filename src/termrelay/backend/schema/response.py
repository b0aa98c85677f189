"""
Envelope shared by every HTTP endpoint.

    {"success": true,  "message": null, "data": {...}}
    {"success": false, "message": "Session not found", "data": null, "error": {"code": "NOT_FOUND"}}

Websocket relay messages do not use the envelope; see schema.terminal.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar('T')


class BaseResponse(BaseModel):
    success: bool = Field(..., description="False when the request hit a relay error")
    message: Optional[str] = Field(None, description="Human-readable note or error message")


class SuccessResponse(BaseResponse, Generic[T]):
    """Payload wrapper, e.g. SuccessResponse[list[SessionOut]] for GET /api/sessions."""

    success: bool = True
    data: T = Field(..., description="Endpoint payload")


class ErrorResponse(BaseResponse):
    """Built by the app's exception handlers from TermRelayException.code."""

    success: bool = False
    data: None = None
    error: Optional[dict] = Field(
        None,
        description="Machine-readable error code, plus validation details when present",
        examples=[
            {"code": "AUTHENTICATION_ERROR"},
            {"code": "VALIDATION_ERROR", "details": [{"loc": ["path", "session_id"], "msg": "Invalid"}]},
        ],
    )
