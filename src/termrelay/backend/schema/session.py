"""Session management schemas"""

from pydantic import BaseModel, Field


class SessionOut(BaseModel):
    """One tmux session owned by the caller's credential"""

    session_id: str = Field(..., description="Caller-chosen session identifier")
    session_name: str = Field(..., description="Derived tmux session name")
    created_at: int = Field(..., description="Creation time (unix seconds)")
    active: bool = Field(..., description="Whether a relay connection is attached")


class WorkingDirectoryOut(BaseModel):
    cwd: str = Field(..., description="Working directory of the session's pane")


class PaneCommandOut(BaseModel):
    command: str = Field(..., description="Foreground command in the pane, empty if unknown")


class HealthOut(BaseModel):
    status: str
    timestamp: str
    tmux_available: bool
