"""Blocking execution of short tool invocations such as version checks.

Extraction runs do not use this: the pipeline spawns and supervises its own
processes on the event loop.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess  # nosec B404 - version checks need subprocess
import time
from collections.abc import Sequence
from typing import Any, NamedTuple

logger = logging.getLogger(__name__)


class CommandResult(NamedTuple):
    stdout: str
    stderr: str
    returncode: int


def run_command(
    args: Sequence[str | os.PathLike[str]],
    timeout: float = 10,
    **kwargs: Any,
) -> CommandResult:
    """Run a command to completion and capture its decoded output.

    Undecodable bytes are replaced rather than raising.

    Raises:
        subprocess.TimeoutExpired: The child outlived timeout. It has already
            been killed and reaped.
        OSError: The executable could not be started.
    """
    argv = [os.fspath(arg) for arg in args]
    started = time.monotonic()
    logger.debug("Running %s", shlex.join(argv), extra={"timeout": timeout})
    try:
        completed = subprocess.run(  # nosec B603 - argv built from resolved tools
            argv,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            check=False,
            **kwargs,
        )
    except subprocess.TimeoutExpired:
        logger.warning("%s timed out after %gs", argv[0], timeout)
        raise

    logger.debug(
        "%s exited %d after %.3fs",
        argv[0],
        completed.returncode,
        time.monotonic() - started,
    )
    return CommandResult(
        completed.stdout or "", completed.stderr or "", completed.returncode
    )
