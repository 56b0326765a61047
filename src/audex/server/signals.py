"""SIGTERM and SIGINT handling for the daemon.

Both signals latch the lifecycle's shutdown, which the serve loop awaits.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from audex.server.lifecycle import DaemonLifecycle

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def install_shutdown_handlers(
    loop: asyncio.AbstractEventLoop, lifecycle: DaemonLifecycle
) -> list[signal.Signals]:
    """Route shutdown signals on loop to lifecycle.initiate_shutdown.

    Loops without signal support (non-main thread, Windows) are logged and
    skipped.

    Returns:
        The signals actually installed, for uninstall_shutdown_handlers().
    """
    installed: list[signal.Signals] = []
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, lifecycle.initiate_shutdown, sig.name)
        except (ValueError, RuntimeError, NotImplementedError) as e:
            logger.warning("Cannot handle %s on this event loop: %s", sig.name, e)
        else:
            installed.append(sig)
    return installed


def uninstall_shutdown_handlers(
    loop: asyncio.AbstractEventLoop, installed: list[signal.Signals]
) -> None:
    for sig in installed:
        loop.remove_signal_handler(sig)
