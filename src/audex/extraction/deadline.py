"""Wall-clock deadline for a single extraction run."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_SECONDS = 300.0


class DeadlineGuard:
    """Fires a callback once if a run outlives its deadline.

    Must be started from a running event loop. The callback runs on the loop
    thread and is never invoked after cancel().
    """

    def __init__(self, timeout: float, on_expire: Callable[[], None]) -> None:
        """Initialize the guard.

        Args:
            timeout: Seconds from start() until expiry. Must be positive.
            on_expire: Called at most once when the deadline passes.

        Raises:
            ValueError: If timeout is not positive.
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.timeout = timeout
        self._on_expire = on_expire
        self._handle: asyncio.TimerHandle | None = None
        self._deadline: float | None = None
        self._expired = False
        self._cancelled = False

    @property
    def deadline(self) -> float | None:
        """Absolute ``time.monotonic()`` expiry, or None before start()."""
        return self._deadline

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def active(self) -> bool:
        return self._handle is not None and not (self._expired or self._cancelled)

    def start(self) -> None:
        """Schedule the expiry callback.

        Raises:
            RuntimeError: If already started or called outside a running loop.
        """
        if self._handle is not None or self._cancelled:
            raise RuntimeError("DeadlineGuard already started")
        loop = asyncio.get_running_loop()
        self._deadline = time.monotonic() + self.timeout
        self._handle = loop.call_later(self.timeout, self._fire)

    def cancel(self) -> None:
        """Cancel the timer. Safe to call any number of times."""
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()

    def _fire(self) -> None:
        if self._cancelled or self._expired:
            return
        self._expired = True
        logger.warning("Deadline of %gs expired", self.timeout)
        self._on_expire()
