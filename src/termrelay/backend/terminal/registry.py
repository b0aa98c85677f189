"""Connection registry: session name -> the one relay connection attached to it.

A newer connection for a session replaces the entry and evicts the older
one, which is how the relay keeps a single writer per tmux session: tmux
itself offers no lock. Entries are weak references, so the registry never
keeps a finished connection alive.
"""

import logging
import weakref
from typing import Optional, Protocol, Set

logger = logging.getLogger(__name__)


class RegisteredConnection(Protocol):
    """What the registry needs from a connection"""

    @property
    def is_open(self) -> bool: ...


class ConnectionRegistry:
    """
    Process-wide table of attached connections.

    All mutation goes through claim() and release(). Only the current holder
    can remove its entry, so a late cleanup from an evicted connection never
    unregisters its replacement.

    Lifecycle:
    - Created once by the application factory (stored in app.state)
    - Passed to every RelayGateway and to the reaper
    """

    def __init__(self):
        # session_name -> connection (weak)
        self._connections: "weakref.WeakValueDictionary[str, RegisteredConnection]" = (
            weakref.WeakValueDictionary()
        )

    def claim(self, session_name: str, connection: RegisteredConnection) -> Optional[RegisteredConnection]:
        """
        Register connection as the holder of session_name.

        Returns:
            The previous holder if it is still open and is not connection,
            so the caller can evict it; otherwise None.
        """
        previous = self._connections.get(session_name)
        self._connections[session_name] = connection

        if previous is None or previous is connection or not previous.is_open:
            return None

        logger.info(f"[Registry] Session {session_name} claimed by a newer connection")
        return previous

    def release(self, session_name: str, connection: RegisteredConnection) -> bool:
        """
        Remove the entry if connection is still the holder.

        Returns:
            True if the entry was removed, False if another connection
            holds the session (or nobody does)
        """
        if self._connections.get(session_name) is not connection:
            logger.debug(f"[Registry] Release of {session_name} skipped, not the holder")
            return False
        del self._connections[session_name]
        return True

    def get(self, session_name: str) -> Optional[RegisteredConnection]:
        return self._connections.get(session_name)

    def active_session_names(self) -> Set[str]:
        """Names of sessions with an open connection"""
        return {
            name for name, connection in list(self._connections.items())
            if connection.is_open
        }

    def __len__(self) -> int:
        return len(self._connections)
