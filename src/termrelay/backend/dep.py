"""Dependency injection functions for FastAPI routes"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings
from .security import authenticate
from .terminal.registry import ConnectionRegistry
from .terminal.tmux import TmuxController

logger = logging.getLogger(__name__)

# auto_error is off so development mode (no auth_token) works without a header
security_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_tmux(request: Request) -> TmuxController:
    return request.app.state.tmux


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_credential(
    settings: Settings = Depends(get_settings),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> str:
    """Get the caller's credential from the Authorization header (HTTP API)

    The credential scopes every session operation: a caller only ever sees
    sessions derived from its own credential.

    Usage:
        from typing import Annotated
        from fastapi import Depends

        CredentialDep = Annotated[str, Depends(get_credential)]

        @router.get("/sessions")
        async def list_sessions(credential: CredentialDep):
            ...

    Returns:
        str: The credential sessions are named by

    Raises:
        AuthenticationError: If auth is enabled and the token is missing or wrong
    """
    token = credentials.credentials if credentials else None
    return authenticate(token, settings.auth_token)
