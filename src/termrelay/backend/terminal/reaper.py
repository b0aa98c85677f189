"""Stale session reaper.

tmux sessions outlive their connections on purpose, so something has to
remove the ones nobody comes back to. A periodic APScheduler job kills
relay-owned sessions that are detached and idle for longer than the TTL.
"""

import logging
import time
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .namer import SESSION_NAMESPACE
from .registry import ConnectionRegistry
from .tmux import TmuxController

logger = logging.getLogger(__name__)


class StaleSessionReaper:
    """
    Periodic sweep over the relay's tmux sessions.

    A session is stale when all of the following hold:
    - its name is in the relay namespace (termrelay-...)
    - no tmux client is attached to it
    - no relay connection holds it in the registry
    - its last activity (or creation, if activity is unknown) is older than the TTL

    Usage:
        reaper = StaleSessionReaper(tmux, registry, ttl_hours=24, interval_minutes=60)
        reaper.start()   # inside a running event loop
        ...
        reaper.stop()
    """

    JOB_ID = "stale_session_sweep"

    def __init__(
        self,
        tmux: TmuxController,
        registry: ConnectionRegistry,
        ttl_hours: float,
        interval_minutes: float,
    ):
        self.tmux = tmux
        self.registry = registry
        self.ttl_seconds = ttl_hours * 3600
        self.interval_minutes = interval_minutes
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Create the scheduler and register the sweep job."""
        if self.running:
            logger.warning("StaleSessionReaper already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.sweep,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=self.JOB_ID,
            name="Kill stale tmux sessions",
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(
            f"StaleSessionReaper started: ttl={self.ttl_seconds / 3600:g}h, "
            f"interval={self.interval_minutes:g}min"
        )

    def stop(self) -> None:
        if not self.running:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("StaleSessionReaper stopped")

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        """
        Kill every stale session once.

        Args:
            now: Current unix time (defaults to time.time())

        Returns:
            Names of the sessions that were killed
        """
        cutoff = (time.time() if now is None else now) - self.ttl_seconds
        active = self.registry.active_session_names()

        stale = []
        for info in await self.tmux.list_all_sessions():
            if not info.session_name.startswith(f"{SESSION_NAMESPACE}-"):
                continue
            if info.attached > 0 or info.session_name in active:
                continue
            last_seen = info.last_activity or info.created_at
            if last_seen < cutoff:
                logger.info(
                    f"Cleaning up stale session: {info.session_name} "
                    f"(last activity {time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(last_seen))})"
                )
                stale.append(info.session_name)

        for session_name in stale:
            await self.tmux.kill_session(session_name)

        if stale:
            logger.info(f"Stale session sweep killed {len(stale)} session(s)")
        return stale
