"""Tests for ExtractionPipeline using shell scripts in place of yt-dlp/ffmpeg.

The stand-in transcoder finds its output path as the last argument, the same
position ffmpeg receives it in.
"""

from __future__ import annotations

import asyncio
import signal
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from audex.extraction.errors import (
    EmptyOutputError,
    ExtractionTimeoutError,
    ProcessError,
    ToolNotFoundError,
    TranscodeFailedError,
)
from audex.extraction.models import (
    AudioFormat,
    ExtractionRequest,
    RunState,
)
from audex.extraction.pipeline import ExtractionPipeline
from audex.extraction.resolver import (
    DOWNLOADER,
    TRANSCODER,
    FixedNameResolver,
    SearchPathResolver,
)

pytestmark = pytest.mark.posix

LAST_ARG = "for last; do :; done"
COPY_STDIN = f'{LAST_ARG}; exec cat > "$last"'


@pytest.fixture
def tools(make_script):
    """Write both stand-ins and return a pipeline factory."""

    def _tools(
        downloader: str = "printf 'audio-bytes'",
        transcoder: str = COPY_STDIN,
        deadline: float = 10.0,
        artifact_dir: Path | None = None,
    ) -> ExtractionPipeline:
        resolver = SearchPathResolver(
            {
                DOWNLOADER: make_script("yt-dlp", downloader),
                TRANSCODER: make_script("ffmpeg", transcoder),
            }
        )
        return ExtractionPipeline(
            resolver,
            deadline_seconds=deadline,
            temp_directory=artifact_dir,
            downloader_grace=1.0,
        )

    return _tools


class TestSuccessfulRuns:
    """Runs where the transcoder exits 0 with output."""

    @pytest.mark.asyncio
    async def test_success(self, tools, artifact_dir: Path, mp3_request) -> None:
        """Downloader bytes flow through the pipe into the artifact."""
        pipeline = tools(artifact_dir=artifact_dir)
        run = pipeline.prepare(mp3_request)

        artifact = await pipeline.execute(run)

        assert artifact.path.read_bytes() == b"audio-bytes"
        assert artifact.path.parent == artifact_dir
        assert run.state is RunState.SUCCEEDED
        assert run.transcoder_exit == 0
        assert run.downloader_exit == 0
        assert run.deadline is not None
        artifact.discard()

    @pytest.mark.asyncio
    async def test_trim_offsets_reach_transcoder(
        self, tools, artifact_dir: Path
    ) -> None:
        """Trim offsets and the WAV codec appear on the transcoder command line."""
        pipeline = tools(
            transcoder=f'{LAST_ARG}; cat > /dev/null; echo "$@" > "$last"',
            artifact_dir=artifact_dir,
        )
        request = ExtractionRequest(
            source_url="https://youtu.be/dQw4w9WgXcQ",
            format=AudioFormat.WAV,
            start_seconds=30,
            end_seconds=60,
        )

        artifact = await pipeline.run(request)

        args = artifact.path.read_text()
        assert "-i pipe:0 -ss 30 -to 60" in args
        assert "pcm_s16le" in args
        assert artifact.path.suffix == ".wav"
        artifact.discard()

    @pytest.mark.asyncio
    async def test_downloader_failure_is_tolerated(
        self, tools, artifact_dir: Path, mp3_request
    ) -> None:
        """A non-zero downloader exit does not fail a good transcode."""
        pipeline = tools(
            downloader="printf 'partial'; exit 1", artifact_dir=artifact_dir
        )
        run = pipeline.prepare(mp3_request)

        artifact = await pipeline.execute(run)

        assert artifact.path.read_bytes() == b"partial"
        assert run.downloader_exit == 1
        artifact.discard()

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_isolated(
        self, tools, artifact_dir: Path
    ) -> None:
        """Parallel runs each get their own artifact and full output."""
        pipeline = tools(artifact_dir=artifact_dir)
        requests = [
            ExtractionRequest(source_url="https://youtu.be/dQw4w9WgXcQ")
            for _ in range(5)
        ]

        artifacts = await asyncio.gather(*(pipeline.run(r) for r in requests))

        assert len({a.path for a in artifacts}) == 5
        for artifact in artifacts:
            assert artifact.path.read_bytes() == b"audio-bytes"
            artifact.discard()


class TestTranscoderFailures:
    """Runs that end in a transcoder or output error."""

    @pytest.mark.asyncio
    async def test_transcoder_failure(
        self, tools, artifact_dir: Path, mp3_request
    ) -> None:
        """A non-zero transcoder exit fails the run and removes partial output."""
        pipeline = tools(
            transcoder=f'{LAST_ARG}; printf junk > "$last"; echo boom >&2; exit 3',
            artifact_dir=artifact_dir,
        )
        run = pipeline.prepare(mp3_request)

        with pytest.raises(TranscodeFailedError) as exc_info:
            await pipeline.execute(run)

        assert exc_info.value.exit_code == 3
        assert "boom" in exc_info.value.detail
        assert exc_info.value.message == "Audio extraction failed"
        assert run.state is RunState.FAILED
        assert list(artifact_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_stderr_split_on_carriage_returns(
        self, tools, artifact_dir: Path, mp3_request
    ) -> None:
        """Progress lines ending in carriage returns are kept as separate lines."""
        pipeline = tools(
            transcoder="cat > /dev/null; printf 'one\\rtwo\\nthree' >&2; exit 1",
            artifact_dir=artifact_dir,
        )
        run = pipeline.prepare(mp3_request)

        with pytest.raises(TranscodeFailedError):
            await pipeline.execute(run)

        assert run.stderr_tail["transcoder"] == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_empty_output(self, tools, artifact_dir: Path, mp3_request) -> None:
        """A zero-byte artifact counts as failure even after exit 0."""
        pipeline = tools(
            transcoder=f'{LAST_ARG}; cat > /dev/null; : > "$last"',
            artifact_dir=artifact_dir,
        )
        run = pipeline.prepare(mp3_request)

        with pytest.raises(EmptyOutputError):
            await pipeline.execute(run)

        assert run.state is RunState.FAILED
        assert list(artifact_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_output(
        self, tools, artifact_dir: Path, mp3_request
    ) -> None:
        """An artifact the transcoder never created counts as empty."""
        pipeline = tools(transcoder="cat > /dev/null", artifact_dir=artifact_dir)

        with pytest.raises(EmptyOutputError):
            await pipeline.run(mp3_request)


class TestDeadline:
    """Runs cut short by the wall-clock deadline."""

    @pytest.mark.asyncio
    async def test_timeout_kills_both(
        self, tools, artifact_dir: Path, mp3_request
    ) -> None:
        """Hung tools are SIGKILLed at the deadline and the artifact removed."""
        pipeline = tools(
            downloader="exec sleep 30",
            transcoder=f'{LAST_ARG}; printf partial > "$last"; exec sleep 30',
            deadline=0.5,
            artifact_dir=artifact_dir,
        )
        run = pipeline.prepare(mp3_request)
        started = time.monotonic()

        with pytest.raises(ExtractionTimeoutError) as exc_info:
            await pipeline.execute(run)

        assert time.monotonic() - started < 10
        assert exc_info.value.status == 408
        assert run.state is RunState.TIMED_OUT
        assert run.transcoder_exit == -signal.SIGKILL
        assert run.downloader_exit == -signal.SIGKILL
        assert list(artifact_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_timeout_reaches_forked_children(
        self, tools, artifact_dir: Path, mp3_request
    ) -> None:
        """Children holding a tool's stderr die with it at the deadline."""
        pipeline = tools(
            downloader="sleep 30 & wait",
            transcoder=f'{LAST_ARG}; printf partial > "$last"; sleep 30 & wait',
            deadline=0.5,
            artifact_dir=artifact_dir,
        )
        run = pipeline.prepare(mp3_request)
        started = time.monotonic()

        with pytest.raises(ExtractionTimeoutError):
            await pipeline.execute(run)

        assert time.monotonic() - started < 10
        assert run.state is RunState.TIMED_OUT
        assert run.transcoder_exit == -signal.SIGKILL
        assert list(artifact_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_deadline_race_has_one_outcome(
        self, tools, artifact_dir: Path, mp3_request
    ) -> None:
        """A deadline landing next to a successful exit yields one coherent result."""
        pipeline = tools(deadline=0.02, artifact_dir=artifact_dir)

        for _ in range(10):
            run = pipeline.prepare(mp3_request)
            try:
                artifact = await pipeline.execute(run)
            except ExtractionTimeoutError:
                assert run.state is RunState.TIMED_OUT
                assert not run.artifact.path.exists()
            else:
                assert run.state is RunState.SUCCEEDED
                assert artifact.path.read_bytes() == b"audio-bytes"
                artifact.discard()


class TestLingeringProcesses:
    """Tools or their children that outlive the transcoder."""

    @pytest.mark.asyncio
    async def test_lingering_downloader_is_killed(
        self, tools, artifact_dir: Path, mp3_request
    ) -> None:
        """A downloader still running after the grace period is SIGKILLed."""
        pipeline = tools(
            downloader="printf 'audio'; exec sleep 30",
            transcoder=f'{LAST_ARG}; head -c 5 > "$last"',
            artifact_dir=artifact_dir,
        )
        run = pipeline.prepare(mp3_request)

        artifact = await pipeline.execute(run)

        assert artifact.path.read_bytes() == b"audio"
        assert run.downloader_exit == -signal.SIGKILL
        artifact.discard()

    @pytest.mark.asyncio
    async def test_transcoder_child_holding_stderr(
        self, tools, artifact_dir: Path, mp3_request
    ) -> None:
        """A transcoder that exits 0 but leaves a child on its stderr still finishes."""
        pipeline = tools(
            transcoder=f'{LAST_ARG}; cat > "$last"; sleep 30 > /dev/null & exit 0',
            deadline=1.0,
            artifact_dir=artifact_dir,
        )
        run = pipeline.prepare(mp3_request)
        started = time.monotonic()

        artifact = await pipeline.execute(run)

        assert time.monotonic() - started < 10
        assert run.state is RunState.SUCCEEDED
        assert artifact.path.read_bytes() == b"audio-bytes"
        artifact.discard()

    @pytest.mark.asyncio
    async def test_downloader_child_holding_stderr(
        self, tools, artifact_dir: Path, mp3_request
    ) -> None:
        """A downloader child left on its stderr does not stall the run."""
        pipeline = tools(
            downloader="printf 'audio-bytes'; sleep 30 > /dev/null & exit 0",
            artifact_dir=artifact_dir,
        )
        run = pipeline.prepare(mp3_request)
        started = time.monotonic()

        artifact = await pipeline.execute(run)

        assert time.monotonic() - started < 10
        assert run.downloader_exit == 0
        assert artifact.path.read_bytes() == b"audio-bytes"
        artifact.discard()


class TestSpawnFailures:
    """Runs whose tools cannot be found or started."""

    @pytest.mark.asyncio
    async def test_tool_not_found(
        self,
        tmp_path: Path,
        artifact_dir: Path,
        mp3_request,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A downloader missing from PATH is reported before anything spawns."""
        empty = tmp_path / "empty"
        empty.mkdir()
        monkeypatch.setenv("PATH", str(empty))
        pipeline = ExtractionPipeline(SearchPathResolver(), temp_directory=artifact_dir)
        run = pipeline.prepare(mp3_request)

        with pytest.raises(ToolNotFoundError) as exc_info:
            await pipeline.execute(run)

        assert exc_info.value.tool == "yt-dlp"
        assert run.downloader is None
        assert run.transcoder is None

    @pytest.mark.asyncio
    async def test_downloader_spawn_failure(
        self, tmp_path: Path, artifact_dir: Path, mp3_request
    ) -> None:
        """An unstartable downloader is a ProcessError naming the downloader."""
        resolver = FixedNameResolver({DOWNLOADER: tmp_path / "missing-yt-dlp"})
        pipeline = ExtractionPipeline(resolver, temp_directory=artifact_dir)

        with pytest.raises(ProcessError) as exc_info:
            await pipeline.run(mp3_request)

        assert exc_info.value.which == "downloader"

    @pytest.mark.asyncio
    async def test_transcoder_spawn_failure_kills_downloader(
        self, make_script, tmp_path: Path, artifact_dir: Path, mp3_request
    ) -> None:
        """An unstartable transcoder takes the running downloader down with it."""
        resolver = FixedNameResolver(
            {
                DOWNLOADER: make_script("yt-dlp", "exec sleep 30"),
                TRANSCODER: tmp_path / "missing-ffmpeg",
            }
        )
        pipeline = ExtractionPipeline(resolver, temp_directory=artifact_dir)
        run = pipeline.prepare(mp3_request)

        with pytest.raises(ProcessError) as exc_info:
            await pipeline.execute(run)

        assert exc_info.value.which == "transcoder"
        assert run.downloader_exit == -signal.SIGKILL


class TestCancellation:
    """Runs whose supervising task is cancelled."""

    @pytest.mark.asyncio
    async def test_cancellation_stops_processes(
        self, tools, artifact_dir: Path, mp3_request
    ) -> None:
        """Cancelling execute() kills both tools and removes the artifact."""
        pipeline = tools(
            downloader="exec sleep 30",
            transcoder=f'{LAST_ARG}; printf partial > "$last"; exec sleep 30',
            deadline=60,
            artifact_dir=artifact_dir,
        )
        run = pipeline.prepare(mp3_request)
        task = asyncio.create_task(pipeline.execute(run))

        for _ in range(100):
            if run.state is RunState.RUNNING and run.artifact.path.exists():
                break
            await asyncio.sleep(0.05)
        assert run.state is RunState.RUNNING

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert run.downloader is not None and run.transcoder is not None
        assert await asyncio.wait_for(run.transcoder.wait(), 5) == -signal.SIGKILL
        assert await asyncio.wait_for(run.downloader.wait(), 5) == -signal.SIGKILL
        assert run.state is RunState.FAILED
        assert list(artifact_dir.iterdir()) == []


class TestExpire:
    """Tests for the deadline callback in isolation."""

    def _run(self, tmp_path: Path, mp3_request):
        pipeline = ExtractionPipeline(FixedNameResolver(), temp_directory=tmp_path)
        run = pipeline.prepare(mp3_request)
        run.downloader = MagicMock(pid=100, returncode=None)
        run.transcoder = MagicMock(pid=200, returncode=None)
        return pipeline, run

    def test_expiry_wins_and_kills(self, tmp_path: Path, mp3_request) -> None:
        """An expiry that commits first kills both process groups."""
        pipeline, run = self._run(tmp_path, mp3_request)

        with patch("audex.extraction.models.os.killpg") as killpg:
            pipeline._expire(run)

        assert isinstance(run.outcome.value, ExtractionTimeoutError)
        assert sorted(c.args[0] for c in killpg.call_args_list) == [100, 200]

    def test_late_expiry_does_nothing(self, tmp_path: Path, mp3_request) -> None:
        """An expiry after the outcome was decided signals nothing."""
        pipeline, run = self._run(tmp_path, mp3_request)
        run.outcome.commit(run.artifact)

        with patch("audex.extraction.models.os.killpg") as killpg:
            pipeline._expire(run)

        assert run.outcome.value is run.artifact
        killpg.assert_not_called()


class TestPrepare:
    """Tests for ExtractionPipeline.prepare()."""

    def test_prepare_allocates_without_writing(
        self, tmp_path: Path, mp3_request
    ) -> None:
        """Preparing a run picks the artifact path but touches no files."""
        pipeline = ExtractionPipeline(FixedNameResolver(), temp_directory=tmp_path)

        run = pipeline.prepare(mp3_request)

        assert run.state is RunState.PENDING
        assert run.artifact.path.parent == tmp_path
        assert list(tmp_path.iterdir()) == []
