"""Tests for the extraction error taxonomy."""

import pytest

from audex.extraction.errors import (
    EmptyOutputError,
    ExtractionTimeoutError,
    FilesystemError,
    InvalidTimeFormatError,
    InvalidTimeRangeError,
    InvalidUrlError,
    ProcessError,
    StreamError,
    ToolNotFoundError,
    TranscodeFailedError,
)
from audex.extraction.models import FailureSource


@pytest.mark.parametrize(
    ("error", "status", "code", "source"),
    [
        (InvalidUrlError(), 400, "INVALID_URL", FailureSource.VALIDATION),
        (InvalidTimeFormatError("startTime"), 400, "INVALID_TIME_FORMAT", FailureSource.VALIDATION),
        (InvalidTimeRangeError(5, 1), 400, "INVALID_TIME_RANGE", FailureSource.VALIDATION),
        (ToolNotFoundError("ffmpeg"), 500, "TOOL_NOT_FOUND", FailureSource.RESOLVER),
        (ProcessError("downloader"), 500, "PROCESS_ERROR", FailureSource.DOWNLOADER),
        (ProcessError("transcoder"), 500, "PROCESS_ERROR", FailureSource.TRANSCODER),
        (TranscodeFailedError(1), 500, "TRANSCODE_FAILED", FailureSource.TRANSCODER),
        (EmptyOutputError(), 500, "EMPTY_OUTPUT", FailureSource.FILESYSTEM),
        (ExtractionTimeoutError(300), 408, "TIMEOUT", FailureSource.DEADLINE),
        (StreamError(), 500, "STREAM_ERROR", FailureSource.FILESYSTEM),
        (FilesystemError(), 500, "FILESYSTEM_ERROR", FailureSource.FILESYSTEM),
    ],
)
def test_classification(error, status: int, code: str, source: FailureSource) -> None:
    """Each error carries its HTTP status, code and failure source."""
    assert error.status == status
    assert error.code == code
    assert error.source is source
    assert error.is_client_error == (status == 400)


def test_detail_not_in_message() -> None:
    """Internal detail stays out of the client-facing message."""
    error = TranscodeFailedError(1, detail="/home/user/secret: No such file")

    assert error.message == "Audio extraction failed"
    assert "/home/user" not in str(error)
    assert error.detail == "/home/user/secret: No such file"


def test_tool_not_found_names_tool() -> None:
    """The missing tool is named in the message."""
    assert "ffmpeg" in ToolNotFoundError("ffmpeg").message


def test_timeout_message() -> None:
    """Timeouts use the fixed client message and record the deadline."""
    error = ExtractionTimeoutError(300)
    assert error.message == "Request timeout - file too large or slow connection"
    assert error.detail == "deadline of 300s expired"
