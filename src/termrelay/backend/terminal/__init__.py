"""Terminal relay module.

This module bridges browser websockets to long-lived tmux sessions so a
terminal survives network interruptions. It handles session naming, tmux
lifecycle, PTY attach, backpressure and stale session cleanup.

Components:
- TmuxController: tmux lifecycle commands and queries
- TerminalBridge: PTY process attached to one tmux session
- ConnectionRegistry: session name -> attached connection, for eviction
- FlowController: watermark backpressure for one connection
- RelayGateway: per-connection handshake and relay loops
- StaleSessionReaper: periodic cleanup of abandoned sessions
"""

from .bridge import TerminalBridge, sanitized_env
from .flow_control import FlowController
from .gateway import RelayConnection, RelayGateway
from .namer import build_session_name, credential_to_prefix, is_valid_session_id
from .reaper import StaleSessionReaper
from .registry import ConnectionRegistry
from .tmux import TmuxController, TmuxResult, TmuxSessionInfo

__all__ = [
    'TerminalBridge',
    'sanitized_env',
    'FlowController',
    'RelayConnection',
    'RelayGateway',
    'build_session_name',
    'credential_to_prefix',
    'is_valid_session_id',
    'StaleSessionReaper',
    'ConnectionRegistry',
    'TmuxController',
    'TmuxResult',
    'TmuxSessionInfo',
]
