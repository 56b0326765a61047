"""Executable resolution for the downloader and transcoder.

Two strategies cover the two deployment shapes:

- SearchPathResolver: the host may or may not have the tools; look them up
  on every call and report absence explicitly.
- FixedNameResolver: a known image where the tools are assumed present;
  invoke them by configured path or bare name without searching.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from audex.config.models import ToolPathsConfig

logger = logging.getLogger(__name__)

DOWNLOADER = "yt-dlp"
TRANSCODER = "ffmpeg"


class ExecutableResolver(Protocol):
    """Locates an external tool by logical name."""

    def resolve(self, tool: str) -> str | None:
        """Return an invocable path or name for tool, or None if absent."""
        ...


class SearchPathResolver:
    """Resolve tools via configured paths, then the platform search path.

    Nothing is cached: every call looks again, so a tool installed or removed
    while the daemon runs is picked up by the next run.
    """

    def __init__(self, configured: dict[str, Path | None] | None = None) -> None:
        self._configured = dict(configured or {})

    def resolve(self, tool: str) -> str | None:
        configured_path = self._configured.get(tool)
        if configured_path is not None:
            if configured_path.is_file():
                return str(configured_path)
            logger.warning(
                "Configured path for %s is not a file: %s", tool, configured_path
            )

        found = shutil.which(tool)
        if found is None:
            logger.debug("%s not found in PATH", tool)
        return found


class FixedNameResolver:
    """Resolve tools to a fixed invocation name without searching.

    Absence is only discovered when the process fails to spawn.
    """

    def __init__(self, configured: dict[str, Path | None] | None = None) -> None:
        self._configured = dict(configured or {})

    def resolve(self, tool: str) -> str | None:
        configured_path = self._configured.get(tool)
        return str(configured_path) if configured_path is not None else tool


def create_resolver(tools: ToolPathsConfig) -> ExecutableResolver:
    """Build the resolver strategy selected by configuration.

    Args:
        tools: Tool configuration ("search" or "fixed" plus explicit paths).

    Returns:
        Resolver instance.
    """
    configured = {DOWNLOADER: tools.yt_dlp, TRANSCODER: tools.ffmpeg}
    if tools.resolver == "fixed":
        return FixedNameResolver(configured)
    return SearchPathResolver(configured)
