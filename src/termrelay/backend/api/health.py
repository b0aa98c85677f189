"""Health check endpoint"""

from datetime import datetime, timezone

from typing import Annotated

from fastapi import APIRouter, Depends

from ..dep import get_tmux
from ..schema.response import SuccessResponse
from ..schema.session import HealthOut
from ..terminal.tmux import TmuxController

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=SuccessResponse[HealthOut])
async def health(tmux: Annotated[TmuxController, Depends(get_tmux)]):
    """Liveness probe, no authentication"""
    return SuccessResponse(data=HealthOut(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        tmux_available=tmux.is_available(),
    ))
