"""Uptime and shutdown bookkeeping for the daemon."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


class DaemonLifecycle:
    """Process-wide state shared by the health endpoint, the signal handlers
    and the serve loop.

    Shutdown is a one-way latch backed by an asyncio.Event, so the serve loop
    awaits it directly instead of polling.
    """

    def __init__(self, shutdown_timeout: float = 30.0) -> None:
        self.shutdown_timeout = shutdown_timeout
        self.started_at = datetime.now(timezone.utc)
        self._started = time.monotonic()
        self._stop_requested: float | None = None
        self._stopped = asyncio.Event()

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started

    @property
    def is_shutting_down(self) -> bool:
        return self._stop_requested is not None

    def grace_remaining(self) -> float | None:
        """Seconds left for in-flight requests, or None before shutdown."""
        if self._stop_requested is None:
            return None
        elapsed = time.monotonic() - self._stop_requested
        return max(0.0, self.shutdown_timeout - elapsed)

    def initiate_shutdown(self, reason: str = "requested") -> bool:
        """Latch shutdown and wake the serve loop.

        Returns:
            True for the call that latched, False for every later one.
        """
        if self._stop_requested is not None:
            return False
        self._stop_requested = time.monotonic()
        logger.info(
            "Shutdown initiated (%s), in-flight requests get %.1fs",
            reason,
            self.shutdown_timeout,
        )
        self._stopped.set()
        return True

    async def wait_for_shutdown(self) -> None:
        await self._stopped.wait()
