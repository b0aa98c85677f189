"""PTY bridge: a local tmux client attached to one tmux session.

This module manages one PTY process, handling:
- Process lifecycle (fork, exec, kill)
- Output as a pausable byte channel (read, pause_reading, resume_reading)
- Input with non-blocking partial writes
- Terminal sizing (TIOCSWINSZ ioctl)

Killing the bridge only detaches the tmux client. The tmux session keeps
running for the next connection.
"""

import asyncio
import enum
import fcntl
import logging
import os
import pty
import signal
import struct
import termios
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Set, Union

from ..exception import BridgeSpawnError

logger = logging.getLogger(__name__)

# Environment variables whose names contain any of these are never passed
# to the attached program.
SENSITIVE_ENV_KEYS = (
    'AUTH_TOKEN',
    'SECRET',
    'PASSWORD',
    'API_KEY',
    'PRIVATE_KEY',
    'ACCESS_TOKEN',
    'CREDENTIAL',
)

# Set when the relay itself runs inside tmux; tmux refuses a nested attach
NESTING_ENV_KEYS = ('TMUX', 'TMUX_PANE')

TERM_NAME = 'xterm-256color'
READ_SIZE = 4096
KILL_GRACE_SECONDS = 0.5
REAP_POLL_SECONDS = 0.05

# Keep reaper tasks referenced until they finish
_background_tasks: Set[asyncio.Task] = set()


def sanitized_env(base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Copy of base (default: os.environ) without credential-like variables."""
    env = dict(os.environ if base is None else base)
    for key in list(env):
        upper = key.upper()
        if any(sensitive in upper for sensitive in SENSITIVE_ENV_KEYS):
            del env[key]
    env['TERM'] = TERM_NAME
    return env


def tmux_client_env(base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Sanitized environment for any tmux process the relay starts.

    The first tmux command on the socket starts the server, and every pane
    created by new-session inherits the environment of that command.
    """
    env = sanitized_env(base)
    for key in NESTING_ENV_KEYS:
        env.pop(key, None)
    return env


def _set_winsize(fd: int, cols: int, rows: int) -> None:
    # Pack window size: (rows, cols, xpixel, ypixel)
    winsize = struct.pack("HHHH", rows, cols, 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, winsize)


class BridgeState(str, enum.Enum):
    STARTING = "starting"
    ATTACHED = "attached"
    EXITED = "exited"


@dataclass(frozen=True)
class ExitStatus:
    """How the bridge process ended

    Attributes:
        exit_code: Process exit code (0 when killed by a signal)
        signal: Terminating signal number (0 when it exited normally)
    """
    exit_code: int
    signal: int


class TerminalBridge:
    """
    One PTY subprocess attached to one tmux session.

    State machine: starting -> attached -> exited.

    Output is consumed with read(), which returns None once the process is
    gone. The reader is taken off the event loop while the consumer has
    paused it or while max_pending_chunks unread chunks are queued, so
    memory stays bounded no matter how fast the program writes.

    write() and resize() are no-ops once exited, and kill() is idempotent:
    the exit notification is asynchronous, so callers racing it must not
    see errors.

    Attributes:
        argv: Command line of the attach process
        cols: Terminal width
        rows: Terminal height
        env: Sanitized environment for the process
        state: Current BridgeState
        pid: Child process ID (None until started)
        master_fd: PTY master file descriptor (None when closed)
    """

    def __init__(
        self,
        argv: Sequence[str],
        cols: int,
        rows: int,
        env: Optional[Mapping[str, str]] = None,
        max_pending_chunks: int = 16,
    ):
        self.argv: List[str] = list(argv)
        self.cols = cols
        self.rows = rows
        self.env = sanitized_env(env)
        self.state = BridgeState.STARTING
        self.pid: Optional[int] = None
        self.master_fd: Optional[int] = None

        self._chunks: asyncio.Queue = asyncio.Queue()
        self._max_pending = max_pending_chunks
        self._consumer_paused = False
        self._reading = False
        self._writing = False
        self._write_buffer = bytearray()
        self._killed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._exit: Optional[asyncio.Future] = None

    @classmethod
    def for_session(cls, tmux, session_name: str, cols: int, rows: int) -> "TerminalBridge":
        """Bridge whose only job is `tmux attach-session -t =session_name`"""
        return cls(tmux.attach_argv(session_name), cols, rows, env=tmux_client_env())

    @property
    def alive(self) -> bool:
        return self.state == BridgeState.ATTACHED

    # ==================== Lifecycle ====================

    async def start(self) -> None:
        """
        Fork the PTY process and start reading its output.

        Raises:
            RuntimeError: If already started
            BridgeSpawnError: If the PTY could not be created
        """
        if self.state != BridgeState.STARTING or self._exit is not None:
            raise RuntimeError(f"Bridge already started: argv={self.argv}")

        self._loop = asyncio.get_running_loop()
        self._exit = self._loop.create_future()

        try:
            self.pid, self.master_fd = await self._loop.run_in_executor(None, self._fork_pty)
        except OSError as e:
            self.state = BridgeState.EXITED
            self._finish(ExitStatus(-1, 0))
            self._chunks.put_nowait(None)
            raise BridgeSpawnError(f"Failed to spawn {self.argv[0]}: {e}") from e

        os.set_blocking(self.master_fd, False)

        if self._killed:
            # kill() arrived while the fork was in flight
            self.state = BridgeState.ATTACHED
            self._killed = False
            self.kill()
            return

        self.state = BridgeState.ATTACHED
        self._update_reader()
        logger.info(f"[Bridge] Started: pid={self.pid}, argv={self.argv}, size={self.cols}x{self.rows}")

    def _fork_pty(self) -> tuple[int, int]:
        """Fork the PTY process (blocking, runs in executor)."""
        pid, master_fd = pty.fork()

        if pid == 0:  # Child process
            try:
                _set_winsize(pty.STDIN_FILENO, self.cols, self.rows)
                os.execvpe(self.argv[0], self.argv, self.env)
            finally:
                os._exit(127)

        return pid, master_fd

    def kill(self) -> None:
        """
        Detach: terminate the PTY process and drop all pending output.

        Safe to call multiple times and in any state. Pending output and
        the reader registration are released immediately; the process
        itself is reaped in the background.
        """
        if self._killed:
            return
        self._killed = True

        if self.state == BridgeState.ATTACHED:
            self.state = BridgeState.EXITED
            self._stop_io()
            try:
                os.kill(self.pid, signal.SIGTERM)
            except ProcessLookupError:
                pass
            self._spawn(self._reap())
            logger.info(f"[Bridge] Killed: pid={self.pid}")
        elif self.state == BridgeState.STARTING and self._exit is None:
            self.state = BridgeState.EXITED

        self._write_buffer.clear()
        self._drop_pending()
        self._chunks.put_nowait(None)

    async def wait(self) -> ExitStatus:
        """Wait for the process to be reaped and return its exit status."""
        if self._exit is None:
            raise RuntimeError("Bridge not started")
        return await asyncio.shield(self._exit)

    # ==================== Output Channel ====================

    async def read(self) -> Optional[bytes]:
        """Next output chunk in emission order, or None after exit."""
        chunk = await self._chunks.get()
        if chunk is None:
            # end of stream is sticky for later readers
            self._chunks.put_nowait(None)
            return None
        self._update_reader()
        return chunk

    def pause_reading(self) -> None:
        self._consumer_paused = True
        self._update_reader()

    def resume_reading(self) -> None:
        self._consumer_paused = False
        self._update_reader()

    def _update_reader(self) -> None:
        if self._loop is None or self.master_fd is None:
            return
        want = (
            self.state == BridgeState.ATTACHED
            and not self._consumer_paused
            and self._chunks.qsize() < self._max_pending
        )
        if want and not self._reading:
            self._loop.add_reader(self.master_fd, self._on_readable)
            self._reading = True
        elif not want and self._reading:
            self._loop.remove_reader(self.master_fd)
            self._reading = False

    def _on_readable(self) -> None:
        try:
            data = os.read(self.master_fd, READ_SIZE)
        except BlockingIOError:
            return
        except OSError:
            # EIO once the slave side has closed
            data = b""

        if not data:
            self._on_eof()
            return

        self._chunks.put_nowait(data)
        self._update_reader()

    def _on_eof(self) -> None:
        if self.state != BridgeState.ATTACHED:
            return
        logger.info(f"[Bridge] Output closed: pid={self.pid}")
        self.state = BridgeState.EXITED
        self._stop_io()
        self._chunks.put_nowait(None)
        self._spawn(self._reap())

    def _drop_pending(self) -> None:
        while not self._chunks.empty():
            self._chunks.get_nowait()

    # ==================== Input ====================

    def write(self, data: Union[str, bytes]) -> None:
        """Queue input for the PTY; silently ignored once exited."""
        if self.state != BridgeState.ATTACHED:
            return
        if isinstance(data, str):
            data = data.encode('utf-8')
        self._write_buffer.extend(data)
        self._flush()

    def _flush(self) -> None:
        if self.state != BridgeState.ATTACHED:
            return
        while self._write_buffer:
            try:
                written = os.write(self.master_fd, self._write_buffer)
            except BlockingIOError:
                break
            except OSError as e:
                logger.debug(f"[Bridge] Write failed, dropping input: pid={self.pid}, error={e}")
                self._write_buffer.clear()
                break
            del self._write_buffer[:written]

        want = bool(self._write_buffer)
        if want and not self._writing:
            self._loop.add_writer(self.master_fd, self._flush)
            self._writing = True
        elif not want and self._writing:
            self._loop.remove_writer(self.master_fd)
            self._writing = False

    def resize(self, cols: int, rows: int) -> None:
        """
        Resize the PTY; ignored once exited.

        Raises:
            OSError: If the ioctl fails
        """
        if self.state != BridgeState.ATTACHED:
            return
        _set_winsize(self.master_fd, cols, rows)
        self.cols, self.rows = cols, rows

    # ==================== Teardown ====================

    def _stop_io(self) -> None:
        if self.master_fd is None:
            return
        if self._reading:
            self._loop.remove_reader(self.master_fd)
            self._reading = False
        if self._writing:
            self._loop.remove_writer(self.master_fd)
            self._writing = False
        try:
            os.close(self.master_fd)
        except OSError:
            pass
        self.master_fd = None

    async def _reap(self) -> None:
        """Collect the child, escalating to SIGKILL after a grace period."""
        deadline = self._loop.time() + KILL_GRACE_SECONDS
        force_killed = False
        while True:
            try:
                pid, status = os.waitpid(self.pid, os.WNOHANG)
            except ChildProcessError:
                self._finish(ExitStatus(0, 0))
                return

            if pid != 0:
                self._finish(self._decode_status(status))
                return

            if not force_killed and self._loop.time() >= deadline:
                try:
                    os.kill(self.pid, signal.SIGKILL)
                except ProcessLookupError:
                    pass
                force_killed = True

            await asyncio.sleep(REAP_POLL_SECONDS)

    @staticmethod
    def _decode_status(status: int) -> ExitStatus:
        if os.WIFSIGNALED(status):
            return ExitStatus(0, os.WTERMSIG(status))
        return ExitStatus(os.WEXITSTATUS(status), 0)

    def _finish(self, status: ExitStatus) -> None:
        if self._exit is not None and not self._exit.done():
            self._exit.set_result(status)
            logger.info(
                f"[Bridge] Exited: pid={self.pid}, code={status.exit_code}, signal={status.signal}"
            )

    def _spawn(self, coro) -> None:
        task = self._loop.create_task(coro)
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
