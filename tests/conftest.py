"""
Test configuration and fixtures.

Provides isolated settings plus in-memory stand-ins for the websocket,
the PTY bridge and the tmux controller, so relay logic can be exercised
without a browser, a PTY or a tmux server.
"""

import asyncio
import json
from typing import Any, Callable, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from termrelay.backend.config import Settings
from termrelay.backend.terminal.bridge import ExitStatus
from termrelay.backend.terminal.tmux import TmuxController, TmuxResult


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    """Settings isolated from the user's instance directory."""
    monkeypatch.setenv("TERMRELAY_INSTANCE_PATH", str(tmp_path))
    return Settings(
        auth_token="",
        default_working_dir=str(tmp_path),
        tmux_socket_path=tmp_path / "tmux.sock",
        log_dir=tmp_path / "logs",
        flow_high_water=16 * 1024,
        flow_low_water=4 * 1024,
    )


@pytest.fixture
def events() -> List[Tuple[str, ...]]:
    """Shared, ordered log of everything the fake websockets saw."""
    return []


class FakeWebSocket:
    """Minimal stand-in for starlette's WebSocket.

    Inbound frames are fed with push_text()/disconnect(); outbound messages
    and close calls are appended to a shared event log as
    ("send", label, message) and ("close", label, code).
    """

    def __init__(
        self,
        label: str,
        events: list,
        query: Optional[dict] = None,
        send_delay: float = 0.0,
    ):
        self.label = label
        self.events = events
        self.query_params = dict(query or {})
        self.send_delay = send_delay
        self.accepted = False
        self.sent: List[dict] = []
        self.close_code: Optional[int] = None
        self._inbound: asyncio.Queue = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True

    async def receive(self) -> dict:
        return await self._inbound.get()

    async def send_json(self, data: Any) -> None:
        if self.close_code is not None:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        self.sent.append(data)
        self.events.append(("send", self.label, data))

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.close_code = code
        self.events.append(("close", self.label, code))

    # ---- test helpers ----

    def push_text(self, payload: Any) -> None:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        self._inbound.put_nowait({"type": "websocket.receive", "text": text})

    def disconnect(self, code: int = 1001) -> None:
        self._inbound.put_nowait({"type": "websocket.disconnect", "code": code})

    def messages_of(self, message_type: str) -> List[dict]:
        return [m for m in self.sent if m.get("type") == message_type]


class FakeBridge:
    """In-memory TerminalBridge with the same channel semantics."""

    def __init__(self, exit_status: ExitStatus = ExitStatus(0, 0), start_error: Optional[Exception] = None):
        self.exit_status = exit_status
        self.start_error = start_error
        self.started = False
        self.killed = False
        self.writes: List[str] = []
        self.resizes: List[Tuple[int, int]] = []
        self.resize_error: Optional[Exception] = None
        self.pause_calls = 0
        self.resume_calls = 0
        self._chunks: asyncio.Queue = asyncio.Queue()

    async def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def feed(self, data: bytes) -> None:
        self._chunks.put_nowait(data)

    def exit(self) -> None:
        self._chunks.put_nowait(None)

    async def read(self) -> Optional[bytes]:
        chunk = await self._chunks.get()
        if chunk is None:
            self._chunks.put_nowait(None)
        return chunk

    async def wait(self) -> ExitStatus:
        return self.exit_status

    def write(self, data) -> None:
        self.writes.append(data)

    def resize(self, cols: int, rows: int) -> None:
        self.resizes.append((cols, rows))
        if self.resize_error is not None:
            raise self.resize_error

    def pause_reading(self) -> None:
        self.pause_calls += 1

    def resume_reading(self) -> None:
        self.resume_calls += 1

    def kill(self) -> None:
        self.killed = True
        self.exit()


def bridge_factory_for(*bridges: FakeBridge) -> Callable:
    """Bridge factory handing out the given fakes in order."""
    queue = list(bridges)

    def factory(tmux, session_name, cols, rows):
        return queue.pop(0)

    return factory


@pytest.fixture
def fake_tmux() -> MagicMock:
    """TmuxController mock: async methods become AsyncMocks via the spec."""
    tmux = MagicMock(spec=TmuxController)
    tmux.has_session.return_value = False
    tmux.create_session.return_value = None
    tmux.capture_scrollback.return_value = ""
    tmux.resize_session.return_value = TmuxResult(["resize-window"], 0)
    tmux.kill_session.return_value = TmuxResult(["kill-session"], 0)
    tmux.list_all_sessions.return_value = []
    tmux.list_sessions.return_value = []
    tmux.get_working_directory.return_value = None
    tmux.get_foreground_command.return_value = None
    tmux.is_available.return_value = True
    return tmux


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll predicate on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)
