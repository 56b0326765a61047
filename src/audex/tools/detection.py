"""Locate yt-dlp and ffmpeg and check their versions for `audex doctor`.

Extraction runs never consult this module. They resolve both tools afresh on
every run, so a tool installed after startup is picked up without a restart.
"""

from __future__ import annotations

import logging
import re
import subprocess  # nosec B404 - TimeoutExpired
from datetime import datetime, timezone

from audex.core.subprocess_utils import run_command
from audex.extraction.resolver import DOWNLOADER, TRANSCODER, ExecutableResolver
from audex.tools.models import ToolInfo, ToolStatus, VersionCheck

logger = logging.getLogger(__name__)

DETECTION_TIMEOUT = 10

VERSION_CHECKS: dict[str, VersionCheck] = {
    DOWNLOADER: VersionCheck("--version", re.compile(r"^\s*(\S+)")),
    TRANSCODER: VersionCheck("-version", re.compile(r"ffmpeg version (\S+)")),
}

_LEADING_NUMBERS = re.compile(r"\d+(?:\.\d+)*")


def parse_version_string(version_str: str) -> tuple[int, ...] | None:
    """Leading dotted numbers of a version as a comparable tuple.

    An ``n`` (ffmpeg git builds) or ``v`` prefix is ignored and anything after
    the numbers is dropped: ``"n7.0-static"`` gives ``(7, 0)`` and yt-dlp's
    ``"2024.08.06"`` gives ``(2024, 8, 6)``. None if there are no numbers.
    """
    match = _LEADING_NUMBERS.match(version_str.lstrip("nv"))
    if match is None:
        return None
    return tuple(map(int, match.group().split(".")))


def _check_version(info: ToolInfo, check: VersionCheck) -> None:
    assert info.path is not None
    try:
        stdout, stderr, returncode = run_command(
            [info.path, check.flag], timeout=DETECTION_TIMEOUT
        )
    except FileNotFoundError:
        info.status_message = f"{info.name} could not be started: {info.path}"
        return
    except subprocess.TimeoutExpired:
        info.status = ToolStatus.ERROR
        info.status_message = f"{info.name} version check timed out"
        return
    except OSError as e:
        info.status = ToolStatus.ERROR
        info.status_message = f"Failed to run {info.name}: {e}"
        return

    if returncode != 0:
        info.status = ToolStatus.ERROR
        info.status_message = f"{info.name} {check.flag} exited {returncode}: " + (
            stderr.strip()
        )
        return

    info.status = ToolStatus.AVAILABLE
    info.version = check.extract(stdout)
    if info.version is not None:
        info.version_tuple = parse_version_string(info.version)
        if info.version_tuple is None:
            logger.info("Unrecognised %s version %r", info.name, info.version)


def detect_tool(name: str, resolver: ExecutableResolver) -> ToolInfo:
    """Resolve one tool the way an extraction run would, then check its version.

    Tool problems are reported through the returned ToolInfo, not raised.
    An unknown name raises KeyError.
    """
    check = VERSION_CHECKS[name]
    info = ToolInfo(name=name, detected_at=datetime.now(timezone.utc))
    info.path = resolver.resolve(name)
    if info.path is None:
        info.status_message = f"{name} not found in PATH"
    else:
        _check_version(info, check)
    return info


def detect_all_tools(resolver: ExecutableResolver) -> dict[str, ToolInfo]:
    return {name: detect_tool(name, resolver) for name in VERSION_CHECKS}
