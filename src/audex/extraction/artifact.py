"""Artifact verification and chunked reading.

The transcoder writes the artifact; this module checks the result and hands
it out in fixed-size chunks without loading it into memory.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from typing import BinaryIO

from audex.extraction.errors import EmptyOutputError, FilesystemError, StreamError
from audex.extraction.models import TempArtifact

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def verify_artifact(artifact: TempArtifact) -> int:
    """Check that the transcoder produced a non-empty file.

    Args:
        artifact: Artifact to inspect.

    Returns:
        File size in bytes.

    Raises:
        EmptyOutputError: If the file is missing or has zero length.
        FilesystemError: If the file cannot be stat-ed for another reason.
    """
    try:
        size = artifact.path.stat().st_size
    except FileNotFoundError:
        raise EmptyOutputError() from None
    except OSError as e:
        raise FilesystemError(detail=f"stat failed: {e}") from e

    if size == 0:
        raise EmptyOutputError()
    return size


def open_artifact(artifact: TempArtifact) -> tuple[BinaryIO, int]:
    """Open the artifact for streaming.

    The size comes from the open descriptor so it matches exactly what will
    be read.

    Returns:
        Tuple of (binary file object, size in bytes). Caller closes it.

    Raises:
        StreamError: If the file cannot be opened or stat-ed.
    """
    try:
        fh = artifact.path.open("rb")
    except OSError as e:
        raise StreamError(detail=f"open failed: {e}") from e
    try:
        size = os.fstat(fh.fileno()).st_size
    except OSError as e:
        fh.close()
        raise StreamError(detail=f"fstat failed: {e}") from e
    return fh, size


async def iter_chunks(
    fh: BinaryIO, chunk_size: int = CHUNK_SIZE
) -> AsyncIterator[bytes]:
    """Yield the file in chunks, reading in a worker thread."""
    while True:
        chunk = await asyncio.to_thread(fh.read, chunk_size)
        if not chunk:
            return
        yield chunk
