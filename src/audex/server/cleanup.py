"""Startup sweep for artifacts a previous process left behind.

Artifacts are deleted as soon as their response completes, so anything still
on disk at startup belongs to a process that was killed mid-run.
"""

from __future__ import annotations

import logging
import re
import time
from pathlib import Path

logger = logging.getLogger(__name__)

# Names produced by TempArtifact.allocate(): audio_<uuid4 hex>.<ext>
ARTIFACT_NAME_PATTERN = re.compile(r"^audio_[0-9a-f]{32}\.(mp3|wav)$")


def cleanup_orphaned_artifacts(directory: Path, max_age_hours: float = 1.0) -> int:
    """Delete stale artifacts from directory and return how many went.

    Only regular files matching the artifact naming scheme and last modified
    more than max_age_hours ago are removed, so another process sharing the
    directory keeps its in-flight files. Subdirectories are not searched.
    """
    if not directory.is_dir():
        return 0

    oldest_allowed = time.time() - max_age_hours * 3600
    removed = 0
    for entry in directory.iterdir():
        if not ARTIFACT_NAME_PATTERN.fullmatch(entry.name):
            continue
        try:
            stat = entry.lstat()
            if not entry.is_file() or stat.st_mtime >= oldest_allowed:
                continue
            entry.unlink()
        except FileNotFoundError:
            # Removed concurrently
            continue
        except OSError as e:
            logger.warning("Could not remove stale artifact %s: %s", entry, e)
            continue
        logger.info("Removed stale artifact %s", entry.name)
        removed += 1
    return removed
