"""Relay gateway: one websocket connection bridged to one tmux session.

Connection Establishment:
1. Client connects to /ws?token=xxx&cols=80&rows=24&sessionId=abc
2. Server accepts, checks the token (4001 on failure)
3. Server validates sessionId before any tmux command (4004 on failure)
4. Server claims the session name, evicting an older connection (4002)
5. Server creates or resumes the tmux session and attaches a PTY bridge
6. Server sends connected{resumed}, then scrollback when resuming

After that three tasks run until one of them ends:
- receive loop: control messages from the client
- pump: bridge output -> outbound queue, paused by the flow controller
- send loop: outbound queue -> websocket, releasing flow control

Closing the connection only kills the bridge. The tmux session stays
alive for the next connection.
"""

import asyncio
import codecs
import logging
import time
from typing import Callable, Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError as PydanticValidationError

from .bridge import TerminalBridge
from .flow_control import FlowController
from .namer import build_session_name, is_valid_session_id
from .registry import ConnectionRegistry
from .tmux import TmuxController
from ..config import Settings
from ..enum import CloseCode
from ..exception import AuthenticationError, BridgeSpawnError, TmuxCommandError
from ..schema.terminal import (
    CaptureScrollbackMessage,
    ConnectedMessage,
    ErrorMessage,
    InputMessage,
    OutputMessage,
    PingMessage,
    PongMessage,
    ResizeMessage,
    ScrollbackContentMessage,
    ScrollbackMessage,
    clamp_dimension,
    parse_client_message,
)
from ..security import authenticate

logger = logging.getLogger(__name__)

# Upper bound for consecutive output chunks merged into one frame
MAX_COALESCE_BYTES = 64 * 1024

BridgeFactory = Callable[[TmuxController, str, int, int], TerminalBridge]


class RelayConnection:
    """
    State of one accepted relay websocket.

    Attributes:
        websocket: The accepted websocket
        session_name: Derived tmux session name
        cols: Current terminal width
        rows: Current terminal height
        bridge: The PTY bridge this connection owns (None before attach)
        flow: Backpressure state (None before the relay starts)
        resumed: Whether the tmux session existed before this connection
        close_code: Code this side closed with, if it did
    """

    def __init__(self, websocket: WebSocket, session_name: str, cols: int, rows: int):
        self.websocket = websocket
        self.session_name = session_name
        self.cols = cols
        self.rows = rows
        self.bridge: Optional[TerminalBridge] = None
        self.flow: Optional[FlowController] = None
        self.resumed = False
        self.close_code: Optional[int] = None
        self.closed = asyncio.Event()
        self._send_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return not self.closed.is_set()

    def mark_closed(self) -> None:
        """Record that the peer is gone without sending a close frame."""
        self.closed.set()

    async def send(self, message: BaseModel) -> bool:
        """Send one message; False if the connection is already gone."""
        if not self.is_open:
            return False
        async with self._send_lock:
            try:
                await self.websocket.send_json(message.model_dump())
                return True
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.debug(f"[Relay] Send failed, connection gone: session={self.session_name}, error={e}")
                self.mark_closed()
                return False

    async def close(self, code: int, reason: str = "") -> None:
        """Close with code; idempotent, later calls are no-ops."""
        if not self.is_open:
            return
        self.close_code = int(code)
        self.mark_closed()
        try:
            await self.websocket.close(code=int(code), reason=reason)
        except (RuntimeError, OSError) as e:
            logger.debug(f"[Relay] Close on finished websocket ignored: session={self.session_name}, error={e}")


class RelayGateway:
    """
    Per-connection controller.

    Usage:
        gateway = RelayGateway(websocket, settings, tmux, registry)
        await gateway.run()

    Args:
        websocket: Not yet accepted websocket
        settings: Relay settings
        tmux: Shared TmuxController
        registry: Shared ConnectionRegistry
        bridge_factory: Builds the bridge for a session (tests swap this)
    """

    def __init__(
        self,
        websocket: WebSocket,
        settings: Settings,
        tmux: TmuxController,
        registry: ConnectionRegistry,
        bridge_factory: BridgeFactory = TerminalBridge.for_session,
    ):
        self.websocket = websocket
        self.settings = settings
        self.tmux = tmux
        self.registry = registry
        self.bridge_factory = bridge_factory
        self.connection: Optional[RelayConnection] = None

    async def run(self) -> None:
        """Serve the connection until either side goes away."""
        await self.websocket.accept()

        params = self.websocket.query_params
        token = params.get("token")
        raw_session_id = params.get("sessionId") or None
        cols = clamp_dimension(params.get("cols"), self.settings.default_cols)
        rows = clamp_dimension(params.get("rows"), self.settings.default_rows)

        # 1. Authenticate
        try:
            credential = authenticate(token, self.settings.auth_token)
        except AuthenticationError as e:
            logger.warning(f"[Relay] Unauthorized connection attempt: {e.message}")
            await self._reject(CloseCode.UNAUTHORIZED, "Unauthorized")
            return

        # 2. Validate the session id before it reaches any tmux command
        if raw_session_id is not None and not is_valid_session_id(raw_session_id):
            logger.warning(f"[Relay] Invalid sessionId rejected: {raw_session_id!r}")
            await self._reject(CloseCode.INVALID_SESSION_ID, "Invalid sessionId")
            return

        session_name = build_session_name(credential, raw_session_id)
        connection = RelayConnection(self.websocket, session_name, cols, rows)
        self.connection = connection
        logger.info(f"[Relay] Client connected: session={session_name}, size={cols}x{rows}")

        try:
            await self._serve(connection)
        except Exception as e:
            logger.error(f"[Relay] Unexpected error: session={session_name}, error={e}", exc_info=True)
            await connection.send(ErrorMessage(error="Internal error"))
            await connection.close(CloseCode.INTERNAL_ERROR, "Internal error")
        finally:
            await self._cleanup(connection)

    async def _reject(self, code: CloseCode, reason: str) -> None:
        try:
            await self.websocket.close(code=int(code), reason=reason)
        except (RuntimeError, OSError) as e:
            logger.debug(f"[Relay] Reject on finished websocket ignored: {e}")

    # ==================== Attach ====================

    async def _serve(self, connection: RelayConnection) -> None:
        session_name = connection.session_name

        # Evict the previous holder before this connection reports anything
        previous = self.registry.claim(session_name, connection)
        if previous is not None:
            logger.info(f"[Relay] Kicking existing connection for session: {session_name}")
            await previous.close(CloseCode.SUPERSEDED, "Replaced by new connection")

        resumed = await self.tmux.has_session(session_name)
        try:
            if resumed:
                await self.tmux.resize_session(session_name, connection.cols, connection.rows)
            else:
                await self.tmux.create_session(
                    session_name,
                    connection.cols,
                    connection.rows,
                    self.settings.default_working_dir,
                )
        except TmuxCommandError as e:
            logger.error(f"[Relay] Failed to create tmux session {session_name}: {e.message}")
            await connection.send(ErrorMessage(error="Failed to create terminal session"))
            await connection.close(CloseCode.ATTACH_FAILED, "Session create failed")
            return

        scrollback = ""
        if resumed:
            scrollback = await self.tmux.capture_scrollback(
                session_name,
                self.settings.attach_scrollback_lines,
                self.settings.capture_max_bytes,
            )

        bridge = self.bridge_factory(self.tmux, session_name, connection.cols, connection.rows)
        connection.bridge = bridge
        try:
            await bridge.start()
        except BridgeSpawnError as e:
            logger.error(f"[Relay] Failed to attach PTY to session {session_name}: {e.message}")
            await connection.send(ErrorMessage(error="Failed to attach to terminal session"))
            await connection.close(CloseCode.ATTACH_FAILED, "PTY attach failed")
            return

        if not connection.is_open:
            logger.info(f"[Relay] Connection closed during attach: session={session_name}")
            return

        connection.resumed = resumed
        await connection.send(ConnectedMessage(resumed=resumed))
        if scrollback:
            await connection.send(ScrollbackMessage(data=scrollback))

        await self._relay(connection, bridge)

    async def _relay(self, connection: RelayConnection, bridge: TerminalBridge) -> None:
        flow = FlowController(
            high_water=self.settings.flow_high_water,
            low_water=self.settings.flow_low_water,
            on_pause=bridge.pause_reading,
            on_resume=bridge.resume_reading,
        )
        connection.flow = flow
        outbound: asyncio.Queue = asyncio.Queue()

        tasks = [
            asyncio.create_task(self._receive_loop(connection, bridge)),
            asyncio.create_task(self._pump(connection, bridge, flow, outbound)),
            asyncio.create_task(self._send_loop(connection, flow, outbound)),
            asyncio.create_task(connection.closed.wait()),
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in done:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()

    # ==================== Loops ====================

    async def _receive_loop(self, connection: RelayConnection, bridge: TerminalBridge) -> None:
        """Client -> bridge. Returns when the client disconnects."""
        while True:
            try:
                message = await self.websocket.receive()
            except RuntimeError:
                # receive after disconnect
                connection.mark_closed()
                return

            if message["type"] == "websocket.disconnect":
                logger.info(
                    f"[Relay] Client disconnected: session={connection.session_name}, "
                    f"code={message.get('code')}"
                )
                connection.mark_closed()
                return

            raw = message.get("text")
            if raw is None and message.get("bytes") is not None:
                raw = message["bytes"].decode("utf-8", errors="replace")
            if raw is None:
                continue

            try:
                parsed = parse_client_message(raw)
            except PydanticValidationError:
                logger.debug(f"[Relay] Ignoring malformed message: session={connection.session_name}")
                continue

            await self._dispatch(connection, bridge, parsed)

    async def _dispatch(self, connection: RelayConnection, bridge: TerminalBridge, message) -> None:
        session_name = connection.session_name

        if isinstance(message, InputMessage):
            bridge.write(message.data)

        elif isinstance(message, ResizeMessage):
            connection.cols, connection.rows = message.cols, message.rows
            # Two independent best-effort calls; neither failure blocks the other
            try:
                bridge.resize(message.cols, message.rows)
            except OSError as e:
                logger.warning(f"[Relay] PTY resize failed: session={session_name}, error={e}")
            await self.tmux.resize_session(session_name, message.cols, message.rows)

        elif isinstance(message, PingMessage):
            await connection.send(PongMessage(timestamp=int(time.time() * 1000)))

        elif isinstance(message, CaptureScrollbackMessage):
            content = await self.tmux.capture_scrollback(
                session_name,
                self.settings.capture_scrollback_lines,
                self.settings.capture_max_bytes,
            )
            await connection.send(ScrollbackContentMessage(data=content))

    async def _pump(
        self,
        connection: RelayConnection,
        bridge: TerminalBridge,
        flow: FlowController,
        outbound: asyncio.Queue,
    ) -> None:
        """Bridge -> outbound queue. Returns after the bridge exits."""
        # multi-byte characters may straddle chunk boundaries
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        while True:
            await flow.wait_writable()
            chunk = await bridge.read()
            if chunk is None:
                break
            text = decoder.decode(chunk)
            if text:
                outbound.put_nowait((text, len(chunk)))
                flow.add(len(chunk))

        tail = decoder.decode(b"", final=True)
        if tail:
            outbound.put_nowait((tail, 0))

        # Deliver everything the process wrote before reporting its exit
        await outbound.join()
        status = await bridge.wait()
        logger.info(
            f"[Relay] PTY exited for session {connection.session_name}, "
            f"code: {status.exit_code}, signal: {status.signal}"
        )
        detail = f"exit code {status.exit_code}"
        if status.signal:
            detail += f", signal {status.signal}"
        await connection.send(ErrorMessage(error=f"Terminal process exited ({detail})"))
        await connection.close(CloseCode.NORMAL, "PTY exited")

    async def _send_loop(
        self,
        connection: RelayConnection,
        flow: FlowController,
        outbound: asyncio.Queue,
    ) -> None:
        """Outbound queue -> websocket, merging chunks that are already queued."""
        while True:
            text, nbytes = await outbound.get()
            parts = [text]
            count = 1
            while nbytes < MAX_COALESCE_BYTES and not outbound.empty():
                more_text, more_bytes = outbound.get_nowait()
                parts.append(more_text)
                nbytes += more_bytes
                count += 1

            sent = await connection.send(OutputMessage(data="".join(parts)))
            for _ in range(count):
                outbound.task_done()
            flow.release(nbytes)
            if not sent:
                return

    # ==================== Teardown ====================

    async def _cleanup(self, connection: RelayConnection) -> None:
        """Detach the bridge, drop the registry entry, close the socket."""
        if connection.bridge is not None:
            connection.bridge.kill()
        self.registry.release(connection.session_name, connection)
        if connection.is_open:
            await connection.close(CloseCode.NORMAL, "Relay finished")
        logger.info(f"[Relay] Connection closed: session={connection.session_name}")
