"""Data models for audio extraction runs."""

from __future__ import annotations

import logging
import os
import signal
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from asyncio.subprocess import Process

    from audex.extraction.outcome import OutcomeCell

logger = logging.getLogger(__name__)


class AudioFormat(str, Enum):
    """Target encodings supported by the transcoder."""

    MP3 = "mp3"
    WAV = "wav"

    @property
    def content_type(self) -> str:
        """MIME type sent to the caller."""
        return "audio/wav" if self is AudioFormat.WAV else "audio/mpeg"

    @property
    def extension(self) -> str:
        return self.value

    @classmethod
    def coerce(cls, value: object) -> AudioFormat:
        """Return the matching format, or MP3 for anything unrecognised."""
        if isinstance(value, str):
            for member in cls:
                if member.value == value:
                    return member
        return cls.MP3


class FailureSource(str, Enum):
    """Stage that produced a failure."""

    VALIDATION = "validation"
    RESOLVER = "resolver"
    DOWNLOADER = "downloader"
    TRANSCODER = "transcoder"
    FILESYSTEM = "filesystem"
    DEADLINE = "deadline"


class RunState(Enum):
    """Lifecycle of a PipelineRun."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.SUCCEEDED, RunState.FAILED, RunState.TIMED_OUT)


@dataclass(frozen=True)
class ExtractionRequest:
    """A validated extraction request. Immutable once constructed."""

    source_url: str
    format: AudioFormat = AudioFormat.MP3
    start_seconds: int | None = None
    end_seconds: int | None = None

    def __post_init__(self) -> None:
        """Validate offsets."""
        for name in ("start_seconds", "end_seconds"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must not be negative, got {value}")
        if (
            self.start_seconds is not None
            and self.end_seconds is not None
            and self.start_seconds >= self.end_seconds
        ):
            raise ValueError("start_seconds must be before end_seconds")

    @property
    def suggested_filename(self) -> str:
        return f"extracted_audio.{self.format.extension}"


@dataclass(frozen=True)
class TempArtifact:
    """Temporary file holding the transcoder output for one run."""

    id: str
    path: Path
    format: AudioFormat

    @classmethod
    def allocate(cls, directory: Path, audio_format: AudioFormat) -> TempArtifact:
        """Create a fresh artifact descriptor with a unique id.

        Nothing is written to disk; the transcoder creates the file.
        """
        artifact_id = uuid.uuid4().hex
        path = directory / f"audio_{artifact_id}.{audio_format.extension}"
        return cls(id=artifact_id, path=path, format=audio_format)

    def discard(self) -> bool:
        """Remove the artifact file, best-effort.

        Safe to call any number of times. A missing file is not an error and
        other failures are logged, never raised.

        Returns:
            True if a file was removed by this call.
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Could not remove artifact %s: %s", self.path.name, e)
            return False
        logger.debug("Removed artifact %s", self.path.name)
        return True


def kill_process_group(process: Process) -> bool:
    """SIGKILL the process group led by process.

    The group outlives its leader while any member is alive, so this also
    reaches children left behind by a tool that has already exited.

    Returns:
        True if the group still existed and was signalled.
    """
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        return False
    except PermissionError as e:
        # macOS refuses killpg for a group whose leader is a zombie
        logger.debug("killpg(%d) refused: %s", process.pid, e)
        if process.returncode is not None:
            return False
        try:
            process.kill()
        except ProcessLookupError:
            return False
    return True


@dataclass
class PipelineRun:
    """State of one extraction from validated request to terminal outcome.

    Owns both process handles and the artifact for its whole lifetime.
    """

    request: ExtractionRequest
    artifact: TempArtifact
    outcome: OutcomeCell
    deadline: float | None = None
    """Absolute ``time.monotonic()`` value after which the run is killed."""

    downloader: Process | None = None
    transcoder: Process | None = None
    state: RunState = RunState.PENDING
    downloader_exit: int | None = None
    transcoder_exit: int | None = None
    stderr_tail: dict[str, list[str]] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.artifact.id

    def terminate(self) -> list[str]:
        """Force-kill both tools and everything they started (SIGKILL).

        Each tool is spawned as the leader of its own process group, so the
        whole group is signalled. Helpers a tool forked die with it even when
        the tool itself has already exited. Safe to call repeatedly.

        Returns:
            Names of the process groups that were signalled.
        """
        killed = []
        for name, process in (
            ("downloader", self.downloader),
            ("transcoder", self.transcoder),
        ):
            if process is not None and kill_process_group(process):
                killed.append(name)
        if killed:
            logger.info("Killed %s", ", ".join(killed))
        return killed
