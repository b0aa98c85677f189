"""
Flow Controller - watermark backpressure between PTY output and a websocket.

The pump adds bytes as it queues output for the client; the sender
releases them once they are written to the socket. Crossing the high
water mark pauses the producer, dropping to the low water mark resumes
it. Outstanding bytes therefore never exceed high water plus the one
chunk that crossed it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

__all__ = ["FlowController"]


class FlowController:
    """
    High/low watermark flow control for one relay connection.

    Window Management:
    - add(n) when n bytes are queued for the client
    - release(n) when n bytes have been sent
    - pending >= high_water: pause (on_pause callback, wait_writable blocks)
    - pending <= low_water while paused: resume (on_resume callback)

    Attributes:
        high_water: Pause threshold in bytes
        low_water: Resume threshold in bytes
        pending_bytes: Bytes queued but not yet sent
        peak_pending_bytes: Highest pending_bytes observed
        is_paused: Whether the producer is currently paused
    """

    __slots__ = (
        'high_water',
        'low_water',
        'pending_bytes',
        'peak_pending_bytes',
        'is_paused',
        '_writable',
        '_on_pause',
        '_on_resume',
        '_stats',
    )

    def __init__(
        self,
        high_water: int = 262144,
        low_water: int = 65536,
        on_pause: Optional[Callable[[], None]] = None,
        on_resume: Optional[Callable[[], None]] = None,
    ):
        if not 0 <= low_water < high_water:
            raise ValueError(
                f"Invalid water marks: low_water={low_water}, high_water={high_water}"
            )
        self.high_water = high_water
        self.low_water = low_water
        self.pending_bytes = 0
        self.peak_pending_bytes = 0
        self.is_paused = False

        self._writable = asyncio.Event()
        self._writable.set()
        self._on_pause = on_pause
        self._on_resume = on_resume

        self._stats = {
            "pause_count": 0,
            "resume_count": 0,
            "total_bytes_sent": 0,
        }

    def add(self, nbytes: int) -> None:
        """Account for nbytes queued towards the client."""
        self.pending_bytes += nbytes
        self.peak_pending_bytes = max(self.peak_pending_bytes, self.pending_bytes)

        if not self.is_paused and self.pending_bytes >= self.high_water:
            self.is_paused = True
            self._writable.clear()
            self._stats["pause_count"] += 1
            logger.debug(f"Flow control: pausing ({self.pending_bytes}/{self.high_water} bytes pending)")
            if self._on_pause:
                self._on_pause()

    def release(self, nbytes: int) -> None:
        """Account for nbytes written to the client."""
        self.pending_bytes = max(0, self.pending_bytes - nbytes)
        self._stats["total_bytes_sent"] += nbytes

        if self.is_paused and self.pending_bytes <= self.low_water:
            self.is_paused = False
            self._writable.set()
            self._stats["resume_count"] += 1
            logger.debug(f"Flow control: resuming ({self.pending_bytes} bytes pending)")
            if self._on_resume:
                self._on_resume()

    async def wait_writable(self) -> None:
        """Block while the producer is paused."""
        await self._writable.wait()

    def get_stats(self) -> dict:
        """Get flow control statistics for monitoring."""
        return {
            "high_water": self.high_water,
            "low_water": self.low_water,
            "pending_bytes": self.pending_bytes,
            "peak_pending_bytes": self.peak_pending_bytes,
            "is_paused": self.is_paused,
            **self._stats,
        }
