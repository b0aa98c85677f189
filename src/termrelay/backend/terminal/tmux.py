"""tmux controller: lifecycle commands against the external session host.

Every command runs as `tmux -S <socket> ...` with a timeout, so a hung tmux
server can never block a relay connection indefinitely. The fixed socket
lets a restarted service find the tmux server that outlived it.

Single-session commands always target `=<name>`. Without the `=` tmux
resolves targets by prefix, and `termrelay-x-a` would silently match
`termrelay-x-ab` when the former does not exist.

Command outcomes come back as TmuxResult values. Best-effort callers log
and drop a failed result; critical-path callers call raise_for_status().
"""

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .bridge import tmux_client_env
from .namer import split_session_name
from ..exception import TmuxCommandError

logger = logging.getLogger(__name__)

DELETED_SUFFIX = " (deleted)"


@dataclass
class TmuxResult:
    """Outcome of one tmux invocation

    Attributes:
        args: tmux arguments (without binary and socket)
        returncode: Process exit code, -1 if it never ran or timed out
        stdout: Decoded standard output
        stderr: Decoded standard error (or the spawn/timeout reason)
        timed_out: True if the command was killed by the timeout
    """
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def error(self) -> str:
        if self.ok:
            return ""
        if self.timed_out:
            return "timed out"
        return (self.stderr or self.stdout or f"exit status {self.returncode}").strip()

    def raise_for_status(self) -> "TmuxResult":
        """Raise TmuxCommandError unless the command succeeded"""
        if not self.ok:
            command = self.args[0] if self.args else "tmux"
            raise TmuxCommandError(
                f"tmux {command} failed: {self.error}",
                returncode=self.returncode,
            )
        return self


@dataclass
class TmuxSessionInfo:
    """One line of `tmux list-sessions`

    Attributes:
        session_name: Full tmux session name
        session_id: Suffix after the credential prefix (None for unscoped listings)
        created_at: Creation time, unix seconds
        last_activity: Last activity time, unix seconds
        attached: Number of attached tmux clients
    """
    session_name: str
    session_id: Optional[str]
    created_at: int
    last_activity: int = 0
    attached: int = 0


@dataclass
class TmuxController:
    """Issues tmux commands for relay sessions

    Attributes:
        socket_path: Fixed tmux socket (None uses the tmux default server)
        timeout: Per-command timeout in seconds
        history_limit: Scrollback depth applied to new sessions
        binary: tmux executable
    """
    socket_path: Optional[Path] = None
    timeout: float = 5.0
    history_limit: int = 50000
    binary: str = "tmux"
    _socket_ready: bool = field(default=False, init=False, repr=False)

    @classmethod
    def from_settings(cls, settings) -> "TmuxController":
        return cls(
            socket_path=settings.tmux_socket_path,
            timeout=settings.tmux_command_timeout,
            history_limit=settings.history_limit,
            binary=settings.tmux_binary,
        )

    # ==================== Command Execution ====================

    def base_argv(self) -> List[str]:
        argv = [self.binary]
        if self.socket_path is not None:
            argv += ["-S", str(self.socket_path)]
        return argv

    def _ensure_socket_dir(self) -> None:
        if self._socket_ready or self.socket_path is None:
            return
        try:
            Path(self.socket_path).parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        except OSError as e:
            logger.warning(f"Could not create tmux socket directory for {self.socket_path}: {e}")
        self._socket_ready = True

    async def _run(self, *args: str) -> TmuxResult:
        """Run one tmux command with the configured timeout.

        Never raises for command failures; spawn errors and timeouts are
        folded into the returned TmuxResult.
        """
        self._ensure_socket_dir()
        argv = self.base_argv() + list(args)
        logger.debug(f"tmux exec: {' '.join(args)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=tmux_client_env(),
            )
        except OSError as e:
            return TmuxResult(list(args), -1, stderr=str(e))

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"tmux {args[0]} timed out after {self.timeout}s")
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            return TmuxResult(list(args), -1, stderr="timed out", timed_out=True)

        return TmuxResult(
            list(args),
            proc.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    def attach_argv(self, session_name: str) -> List[str]:
        """argv for a tmux client attaching to exactly session_name"""
        return self.base_argv() + ["attach-session", "-t", f"={session_name}"]

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    # ==================== Session Lifecycle ====================

    async def has_session(self, session_name: str) -> bool:
        """Existence probe; any failure counts as "does not exist"."""
        result = await self._run("has-session", "-t", f"={session_name}")
        return result.ok

    async def create_session(
        self,
        session_name: str,
        cols: int,
        rows: int,
        workdir: str,
    ) -> None:
        """Create a detached session and apply the relay option bundle.

        Callers must check has_session() first. Configuration is best-effort
        and never fails the creation.

        Raises:
            TmuxCommandError: If new-session fails
        """
        args = [
            "new-session", "-d",
            "-s", session_name,
            "-x", str(cols),
            "-y", str(rows),
            "-P", "-F", "#{session_id}",
        ]
        if os.path.isdir(workdir):
            args += ["-c", workdir]
        else:
            logger.warning(f"Working directory {workdir} does not exist, tmux default used")
        result = await self._run(*args)
        result.raise_for_status()

        # $N ids are unambiguous; set-option ignores the = exact-match prefix
        target = result.stdout.strip() or session_name
        configured = await self.configure_session(target)
        if not configured.ok:
            logger.warning(f"Failed to configure tmux session {session_name}: {configured.error}")

        logger.info(f"Created tmux session: {session_name} ({cols}x{rows}) in {workdir}")

    async def configure_session(self, target: str) -> TmuxResult:
        """Scrollback depth, status bar off, mouse off."""
        return await self._run(
            "set-option", "-t", target, "history-limit", str(self.history_limit), ";",
            "set-option", "-t", target, "status", "off", ";",
            "set-option", "-t", target, "mouse", "off",
        )

    async def resize_session(self, session_name: str, cols: int, rows: int) -> TmuxResult:
        """Best-effort; fails harmlessly when the size is unchanged."""
        result = await self._run(
            "resize-window", "-t", f"={session_name}",
            "-x", str(cols), "-y", str(rows),
        )
        if not result.ok:
            logger.debug(f"resize-window {session_name} {cols}x{rows} ignored: {result.error}")
        return result

    async def kill_session(self, session_name: str) -> TmuxResult:
        """Best-effort; a missing session is not an error."""
        result = await self._run("kill-session", "-t", f"={session_name}")
        if result.ok:
            logger.info(f"Killed tmux session: {session_name}")
        else:
            logger.debug(f"kill-session {session_name} ignored: {result.error}")
        return result

    # ==================== Queries ====================

    async def list_all_sessions(self) -> List[TmuxSessionInfo]:
        """Every session on the relay's tmux server; [] if none or no server."""
        result = await self._run(
            "list-sessions", "-F",
            "#{session_name}:#{session_created}:#{session_activity}:#{session_attached}",
        )
        if not result.ok:
            return []

        sessions = []
        for line in result.stdout.splitlines():
            parts = line.strip().rsplit(":", 3)
            if len(parts) != 4:
                continue
            name, created, activity, attached = parts
            try:
                sessions.append(TmuxSessionInfo(
                    session_name=name,
                    session_id=None,
                    created_at=int(created),
                    last_activity=int(activity or 0),
                    attached=int(attached or 0),
                ))
            except ValueError:
                logger.debug(f"Skipping unparsable list-sessions line: {line!r}")
        return sessions

    async def list_sessions(self, prefix: str) -> List[TmuxSessionInfo]:
        """Sessions under a credential prefix, keyed by session id."""
        matched = []
        for info in await self.list_all_sessions():
            session_id = split_session_name(info.session_name, prefix)
            if session_id is None:
                continue
            info.session_id = session_id
            matched.append(info)
        return matched

    async def capture_scrollback(self, session_name: str, max_lines: int, max_bytes: Optional[int] = None) -> str:
        """Last max_lines of the pane with colour escapes preserved.

        capture-pane reads the pane as tmux holds it and never toggles the
        alternate screen, so full-screen programs are left untouched.
        Output over max_bytes (UTF-8) keeps the newest whole lines.
        Returns "" when the session cannot be captured.
        """
        result = await self._run(
            "capture-pane", "-t", f"={session_name}:",
            "-p", "-e",
            "-S", f"-{max_lines}",
        )
        if not result.ok:
            logger.error(f"Failed to capture scrollback for {session_name}: {result.error}")
            return ""
        content = result.stdout
        if max_bytes is None:
            return content
        data = content.encode("utf-8")
        if len(data) <= max_bytes:
            return content
        # Drop the partial first line so no escape sequence or character is cut
        tail = data[-max_bytes:]
        if data[-max_bytes - 1:-max_bytes] != b"\n":
            newline = tail.find(b"\n", 0, len(tail) - 1)
            if newline != -1:
                tail = tail[newline + 1:]
        return tail.decode("utf-8", errors="ignore")

    async def get_working_directory(self, session_name: str, fallback: Optional[str] = None) -> Optional[str]:
        """Current directory of the session's pane.

        Returns None when the session or pane is absent. A directory that
        has since been deleted resolves to fallback.
        """
        # list-panes honours =; display-message does not
        result = await self._run(
            "list-panes", "-t", f"={session_name}", "-F", "#{pane_current_path}",
        )
        if not result.ok:
            return None
        lines = result.stdout.strip().splitlines()
        if not lines:
            return None

        cwd = lines[0].strip()
        if cwd.endswith(DELETED_SUFFIX):
            cwd = cwd[:-len(DELETED_SUFFIX)]
        if fallback is not None and (not cwd or not os.path.isdir(cwd)):
            cwd = fallback
        return cwd

    async def get_foreground_command(self, session_name: str) -> Optional[str]:
        """Name of the command running in the pane, None when absent."""
        result = await self._run(
            "list-panes", "-t", f"={session_name}", "-F", "#{pane_current_command}",
        )
        if not result.ok:
            return None
        lines = result.stdout.strip().splitlines()
        return lines[0].strip() if lines else None
