"""WebSocket API for terminal relay"""

import logging

from fastapi import APIRouter, WebSocket

from ..terminal.gateway import RelayGateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def terminal_websocket_endpoint(websocket: WebSocket):
    """
    Terminal relay endpoint, one connection per browser terminal.

    Connection Establishment:
    /ws?token=xxx&cols=80&rows=24&sessionId=abc

    - token: Required when the server has an auth_token configured
    - cols, rows: Initial size, clamped to 1..500
    - sessionId: Optional, [A-Za-z0-9_-]{1,32}; omitted means the caller's default session

    Client -> Server Message Format:
    {"type": "input", "data": "ls\\r"}
    {"type": "resize", "cols": 120, "rows": 40}
    {"type": "ping"}
    {"type": "capture-scrollback"}

    Server -> Client Message Format:
    {"type": "connected", "resumed": true}
    {"type": "scrollback", "data": "..."}
    {"type": "output", "data": "..."}
    {"type": "scrollback-content", "data": "..."}
    {"type": "pong", "timestamp": 1735689600000}
    {"type": "error", "error": "..."}

    Close codes:
    - 1000: Terminal exited or relay finished
    - 1011: Internal error
    - 4001: Unauthorized
    - 4002: Replaced by a newer connection for the same session
    - 4003: tmux session could not be created or attached
    - 4004: Invalid sessionId
    """
    state = websocket.app.state
    gateway = RelayGateway(
        websocket,
        settings=state.settings,
        tmux=state.tmux,
        registry=state.registry,
    )
    await gateway.run()
