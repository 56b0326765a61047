"""Extraction pipeline: downloader piped into transcoder under a deadline.

A run spawns two OS processes connected by a kernel pipe:

    yt-dlp (stdout) ──pipe──▶ (stdin) ffmpeg ──▶ artifact file

The parent closes both pipe ends right after spawning, so back-pressure and
EOF flow directly between the children. A single supervising coroutine waits
for the transcoder while a DeadlineGuard races it. Whichever commits to the
run's OutcomeCell first decides the result.

Each tool starts its own session and so leads its own process group. Kills
go to the whole group, which takes down helpers a tool forked (yt-dlp runs
ffmpeg for some streams) together with the tool.

Only the transcoder's exit status decides success. A non-zero downloader
exit is logged and otherwise ignored (it commonly dies of SIGPIPE once the
transcoder has read enough for a trimmed slice).
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING

from audex.config.loader import get_temp_directory
from audex.core.timespec import format_timespec
from audex.extraction.artifact import verify_artifact
from audex.extraction.commands import (
    build_downloader_command,
    build_transcoder_command,
)
from audex.extraction.deadline import DEFAULT_DEADLINE_SECONDS, DeadlineGuard
from audex.extraction.errors import (
    ExtractionError,
    ExtractionTimeoutError,
    ProcessError,
    ToolNotFoundError,
    TranscodeFailedError,
)
from audex.extraction.models import (
    ExtractionRequest,
    PipelineRun,
    RunState,
    TempArtifact,
    kill_process_group,
)
from audex.extraction.outcome import OutcomeCell
from audex.extraction.resolver import (
    DOWNLOADER,
    TRANSCODER,
    ExecutableResolver,
    create_resolver,
)
from audex.logging import run_context

if TYPE_CHECKING:
    from asyncio import StreamReader

    from audex.config.models import AudexConfig

logger = logging.getLogger(__name__)

# Time the downloader gets to exit on its own after the transcoder is done,
# and time either tool's stderr may stay open after the tool exited
DOWNLOADER_GRACE_SECONDS = 5.0

# Stderr lines kept per process for error detail
STDERR_TAIL_LINES = 20

_MAX_PARTIAL_LINE = 4096
_LINE_SPLIT = re.compile(rb"[\r\n]")


class ExtractionPipeline:
    """Runs extractions. One instance serves any number of concurrent runs.

    Runs share nothing except this object's read-only settings.
    """

    def __init__(
        self,
        resolver: ExecutableResolver,
        *,
        deadline_seconds: float = DEFAULT_DEADLINE_SECONDS,
        temp_directory: Path | None = None,
        downloader_grace: float = DOWNLOADER_GRACE_SECONDS,
    ) -> None:
        """Initialize the pipeline.

        Args:
            resolver: Strategy used to locate yt-dlp and ffmpeg per run.
            deadline_seconds: Wall-clock limit for one run.
            temp_directory: Artifact directory. None uses the system default.
            downloader_grace: Seconds the downloader may outlive the
                transcoder, and seconds a tool's stderr may stay open after
                it exited, before the process group is killed.
        """
        self.resolver = resolver
        self.deadline_seconds = deadline_seconds
        self.temp_directory = temp_directory
        self.downloader_grace = downloader_grace

    @classmethod
    def from_config(cls, config: AudexConfig) -> ExtractionPipeline:
        return cls(
            create_resolver(config.tools),
            deadline_seconds=config.extraction.deadline_seconds,
            temp_directory=get_temp_directory(config),
        )

    def prepare(self, request: ExtractionRequest) -> PipelineRun:
        """Allocate the artifact and run state for a request.

        Nothing is spawned and nothing is written to disk.
        """
        directory = self.temp_directory or Path(tempfile.gettempdir())
        artifact = TempArtifact.allocate(directory, request.format)
        return PipelineRun(request=request, artifact=artifact, outcome=OutcomeCell())

    async def run(self, request: ExtractionRequest) -> TempArtifact:
        """Extract audio for a validated request.

        Args:
            request: Validated request.

        Returns:
            The finished, non-empty artifact. The caller owns it and must
            discard() it.

        Raises:
            ExtractionError: On any failure. The artifact is already removed.
            asyncio.CancelledError: If the caller is cancelled. Both processes
                are killed and the artifact is removed first.
        """
        return await self.execute(self.prepare(request))

    async def execute(self, run: PipelineRun) -> TempArtifact:
        """Drive a prepared run to its terminal state. See run()."""
        with run_context(run.id):
            request = run.request
            logger.info(
                "Starting extraction: format=%s start=%s end=%s",
                request.format.value,
                _offset(request.start_seconds),
                _offset(request.end_seconds),
            )
            started = time.monotonic()

            try:
                await self._supervise(run)
            except ExtractionError as e:
                run.outcome.commit(e)
            except BaseException:
                # Cancelled or unexpected: stop everything before propagating
                logger.info("Run aborted, stopping processes")
                run.terminate()
                run.state = RunState.FAILED
                run.artifact.discard()
                raise

            outcome = run.outcome.value
            size = 0
            if not isinstance(outcome, ExtractionError):
                try:
                    size = verify_artifact(run.artifact)
                except ExtractionError as e:
                    outcome = e

            if isinstance(outcome, ExtractionError):
                run.state = (
                    RunState.TIMED_OUT
                    if isinstance(outcome, ExtractionTimeoutError)
                    else RunState.FAILED
                )
                run.artifact.discard()
                logger.warning(
                    "Extraction failed (%s) after %.1fs: %s",
                    outcome.code,
                    time.monotonic() - started,
                    outcome.detail or outcome.message,
                )
                raise outcome

            run.state = RunState.SUCCEEDED
            logger.info(
                "Extraction finished: %d bytes in %.1fs",
                size,
                time.monotonic() - started,
            )
            return run.artifact

    def _resolve(self, tool: str) -> str:
        executable = self.resolver.resolve(tool)
        if executable is None:
            raise ToolNotFoundError(tool)
        return executable

    async def _supervise(self, run: PipelineRun) -> None:
        downloader_cmd = build_downloader_command(
            self._resolve(DOWNLOADER), run.request
        )
        transcoder_cmd = build_transcoder_command(
            self._resolve(TRANSCODER), run.request, run.artifact.path
        )

        drains: list[asyncio.Task[None]] = []
        try:
            await self._spawn(run, downloader_cmd, transcoder_cmd)
            assert run.downloader is not None and run.transcoder is not None
            assert run.downloader.stderr is not None
            assert run.transcoder.stderr is not None

            downloader_drain = asyncio.create_task(
                self._drain(run, "downloader", run.downloader.stderr, logging.DEBUG)
            )
            transcoder_drain = asyncio.create_task(
                self._drain(run, "transcoder", run.transcoder.stderr, logging.WARNING)
            )
            drains = [downloader_drain, transcoder_drain]

            guard = DeadlineGuard(
                self.deadline_seconds, functools.partial(self._expire, run)
            )
            guard.start()
            run.deadline = guard.deadline
            run.state = RunState.RUNNING
            try:
                run.transcoder_exit = await run.transcoder.wait()
            finally:
                guard.cancel()

            await self._finish_drain(run, "transcoder", transcoder_drain)
            if run.transcoder_exit == 0:
                run.outcome.commit(run.artifact)
            else:
                run.outcome.commit(
                    TranscodeFailedError(
                        run.transcoder_exit,
                        detail="\n".join(run.stderr_tail.get("transcoder", [])),
                    )
                )

            await self._finish_downloader(run)
            await self._finish_drain(run, "downloader", downloader_drain)
        finally:
            for task in drains:
                if not task.done():
                    task.cancel()

    async def _spawn(
        self,
        run: PipelineRun,
        downloader_cmd: list[str],
        transcoder_cmd: list[str],
    ) -> None:
        read_fd, write_fd = os.pipe()
        try:
            try:
                run.downloader = await asyncio.create_subprocess_exec(
                    *downloader_cmd,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=write_fd,
                    stderr=asyncio.subprocess.PIPE,
                    start_new_session=True,
                )
            except OSError as e:
                raise ProcessError("downloader", detail=str(e)) from e
            logger.debug("Spawned downloader pid=%d", run.downloader.pid)

            try:
                run.transcoder = await asyncio.create_subprocess_exec(
                    *transcoder_cmd,
                    stdin=read_fd,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                    start_new_session=True,
                )
            except OSError as e:
                run.terminate()
                run.downloader_exit = await run.downloader.wait()
                raise ProcessError("transcoder", detail=str(e)) from e
            logger.debug("Spawned transcoder pid=%d", run.transcoder.pid)
        finally:
            os.close(read_fd)
            os.close(write_fd)

    def _expire(self, run: PipelineRun) -> None:
        if run.outcome.commit(ExtractionTimeoutError(self.deadline_seconds)):
            run.terminate()

    async def _finish_downloader(self, run: PipelineRun) -> None:
        process = run.downloader
        assert process is not None
        try:
            run.downloader_exit = await asyncio.wait_for(
                process.wait(), self.downloader_grace
            )
        except TimeoutError:
            logger.warning(
                "Downloader still running %gs after transcoder exit, killing",
                self.downloader_grace,
            )
            kill_process_group(process)
            run.downloader_exit = await process.wait()

        if run.downloader_exit != 0:
            logger.info("Downloader exited with code %d", run.downloader_exit)

    async def _finish_drain(
        self, run: PipelineRun, name: str, drain: asyncio.Task[None]
    ) -> None:
        """Wait for an exited tool's stderr to close.

        Children the tool left behind can hold the pipe open indefinitely.
        Once the grace period passes its process group is killed instead.
        """
        done, _ = await asyncio.wait([drain], timeout=self.downloader_grace)
        if done:
            return
        process = run.downloader if name == "downloader" else run.transcoder
        assert process is not None
        logger.warning(
            "%s exited but its stderr is still open after %gs, "
            "killing its process group",
            name.capitalize(),
            self.downloader_grace,
        )
        kill_process_group(process)
        await asyncio.wait([drain], timeout=self.downloader_grace)

    async def _drain(
        self,
        run: PipelineRun,
        name: str,
        stream: StreamReader,
        level: int,
    ) -> None:
        tail = run.stderr_tail.setdefault(name, [])

        def record(raw: bytes) -> None:
            line = raw.decode(errors="replace").strip()
            if not line:
                return
            logger.log(level, "%s: %s", name, line)
            tail.append(line)
            del tail[:-STDERR_TAIL_LINES]

        pending = b""
        while chunk := await stream.read(4096):
            *lines, pending = _LINE_SPLIT.split(pending + chunk)
            for raw in lines:
                record(raw)
            if len(pending) > _MAX_PARTIAL_LINE:
                record(pending)
                pending = b""
        record(pending)


def _offset(seconds: int | None) -> str:
    return format_timespec(seconds) if seconds is not None else "-"
