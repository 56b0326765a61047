"""Run context for structured logging.

Each extraction run sets its id in a contextvar so every record emitted while
serving it can be attributed to that run, even with many runs interleaved on
one event loop.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)


def get_run_id() -> str | None:
    """Return the id of the run being served in this context, if any."""
    return _run_id.get()


@contextmanager
def run_context(run_id: str) -> Generator[None, None, None]:
    """Attach a run id to all log records emitted inside the block.

    Example:
        with run_context(artifact.id):
            logger.info("Spawning downloader")  # carries run_id
    """
    token = _run_id.set(run_id)
    try:
        yield
    finally:
        _run_id.reset(token)


class RunContextFilter(logging.Filter):
    """Logging filter that injects the current run id into records.

    Adds ``run_id`` for JSON output and ``run_tag`` (``[R1a2b3c4d] `` or an
    empty string) for the text format.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        run_id = get_run_id()
        record.run_id = run_id
        record.run_tag = f"[R{run_id[:8]}] " if run_id else ""
        return True
