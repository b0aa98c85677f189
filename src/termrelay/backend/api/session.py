"""Session management API endpoints"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from ..config import Settings
from ..dep import get_credential, get_registry, get_settings, get_tmux
from ..exception import InternalError, NotFoundError, ValidationError
from ..schema.response import SuccessResponse
from ..schema.session import PaneCommandOut, SessionOut, WorkingDirectoryOut
from ..terminal.namer import build_session_name, credential_to_prefix, is_valid_session_id
from ..terminal.registry import ConnectionRegistry
from ..terminal.tmux import TmuxController

logger = logging.getLogger(__name__)

# Router configuration
router = APIRouter(prefix="/sessions", tags=["Session Management"])


# ==================== Type Aliases ====================

CredentialDep = Annotated[str, Depends(get_credential)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
TmuxDep = Annotated[TmuxController, Depends(get_tmux)]
RegistryDep = Annotated[ConnectionRegistry, Depends(get_registry)]


def _session_name_or_raise(credential: str, session_id: str) -> str:
    if not is_valid_session_id(session_id):
        raise ValidationError("Invalid session id")
    return build_session_name(credential, session_id)


# ==================== API Endpoints ====================

@router.get("", response_model=SuccessResponse[list[SessionOut]])
async def list_sessions(
    credential: CredentialDep,
    tmux: TmuxDep,
    registry: RegistryDep,
):
    """List the caller's named tmux sessions

    Only sessions created with a sessionId are listed. The caller's
    unnamed default session has no id and is not addressable here.
    """
    prefix = credential_to_prefix(credential)
    active = registry.active_session_names()

    sessions = [
        SessionOut(
            session_id=info.session_id,
            session_name=info.session_name,
            created_at=info.created_at,
            active=info.session_name in active,
        )
        for info in await tmux.list_sessions(prefix)
    ]
    sessions.sort(key=lambda s: s.created_at, reverse=True)
    return SuccessResponse(data=sessions)


@router.delete("/{session_id}", response_model=SuccessResponse[None])
async def kill_session(
    session_id: str,
    credential: CredentialDep,
    tmux: TmuxDep,
):
    """Kill one of the caller's sessions

    Killing a session that no longer exists is not an error.

    Raises:
        ValidationError: If session_id is not a valid identifier
        InternalError: If tmux could not be run or timed out
    """
    session_name = _session_name_or_raise(credential, session_id)
    result = await tmux.kill_session(session_name)
    if result.returncode == -1:
        raise InternalError(f"Failed to kill session: {result.error}")
    logger.info(f"Session killed via API: {session_name}")
    return SuccessResponse(data=None, message="Session killed")


@router.get("/{session_id}/cwd", response_model=SuccessResponse[WorkingDirectoryOut])
async def get_session_cwd(
    session_id: str,
    credential: CredentialDep,
    settings: SettingsDep,
    tmux: TmuxDep,
):
    """Working directory of the session's pane

    A directory deleted after the shell entered it resolves to the
    configured default working directory.

    Raises:
        ValidationError: If session_id is not a valid identifier
        NotFoundError: If the session does not exist
    """
    session_name = _session_name_or_raise(credential, session_id)
    cwd = await tmux.get_working_directory(session_name, fallback=settings.default_working_dir)
    if cwd is None:
        raise NotFoundError("Session not found")
    return SuccessResponse(data=WorkingDirectoryOut(cwd=cwd))


@router.get("/{session_id}/pane-command", response_model=SuccessResponse[PaneCommandOut])
async def get_session_pane_command(
    session_id: str,
    credential: CredentialDep,
    tmux: TmuxDep,
):
    """Foreground command of the session's pane, empty when unknown

    Raises:
        ValidationError: If session_id is not a valid identifier
    """
    session_name = _session_name_or_raise(credential, session_id)
    command = await tmux.get_foreground_command(session_name)
    return SuccessResponse(data=PaneCommandOut(command=command or ""))
