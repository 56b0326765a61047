"""Exceptions raised by the extraction pipeline.

Every failure carries the stage that produced it, a caller-safe message, an
HTTP status and a machine-readable code. ``detail`` holds diagnostic text
(exit codes, tool stderr) meant for logs only; it is never sent to callers
because it may contain host paths.
"""

from __future__ import annotations

from audex.extraction.models import FailureSource

# --- Error code constants ---

INVALID_URL = "INVALID_URL"
INVALID_TIME_FORMAT = "INVALID_TIME_FORMAT"
INVALID_TIME_RANGE = "INVALID_TIME_RANGE"
TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
PROCESS_ERROR = "PROCESS_ERROR"
TRANSCODE_FAILED = "TRANSCODE_FAILED"
EMPTY_OUTPUT = "EMPTY_OUTPUT"
TIMEOUT = "TIMEOUT"
STREAM_ERROR = "STREAM_ERROR"
FILESYSTEM_ERROR = "FILESYSTEM_ERROR"


class ExtractionError(Exception):
    """Base exception for extraction failures."""

    status: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        source: FailureSource,
        detail: str | None = None,
    ) -> None:
        """Initialize extraction error.

        Args:
            message: Caller-safe description.
            source: Stage that produced the failure.
            detail: Diagnostic text for logs.
        """
        self.message = message
        self.source = source
        self.detail = detail
        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        """True if the caller's input caused the failure."""
        return self.source is FailureSource.VALIDATION


class ValidationError(ExtractionError):
    """Base for request validation failures."""

    status = 400

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message, FailureSource.VALIDATION, detail)


class InvalidUrlError(ValidationError):
    """Raised when the source URL is missing or not a recognised video URL."""

    code = INVALID_URL

    def __init__(self, message: str = "Invalid YouTube URL format") -> None:
        super().__init__(message)


class InvalidTimeFormatError(ValidationError):
    """Raised when startTime or endTime is not mm:ss / hh:mm:ss."""

    code = INVALID_TIME_FORMAT

    def __init__(self, field: str) -> None:
        self.field = field
        label = "start" if field == "startTime" else "end"
        super().__init__(f"Invalid {label} time format. Use mm:ss or hh:mm:ss")


class InvalidTimeRangeError(ValidationError):
    """Raised when the start offset is not before the end offset."""

    code = INVALID_TIME_RANGE

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end
        super().__init__(
            "Start time must be before end time", detail=f"start={start} end={end}"
        )


class ToolNotFoundError(ExtractionError):
    """Raised when a required executable cannot be located."""

    code = TOOL_NOT_FOUND

    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(
            f"Audio extraction unavailable: {tool} is not installed",
            FailureSource.RESOLVER,
        )


class ProcessError(ExtractionError):
    """Raised when a tool process cannot be started or fails at runtime."""

    code = PROCESS_ERROR

    def __init__(self, which: str, detail: str | None = None) -> None:
        self.which = which
        source = (
            FailureSource.DOWNLOADER
            if which == "downloader"
            else FailureSource.TRANSCODER
        )
        super().__init__(f"Audio extraction failed: {which} error", source, detail)


class TranscodeFailedError(ExtractionError):
    """Raised when the transcoder exits with a non-zero code."""

    code = TRANSCODE_FAILED

    def __init__(self, exit_code: int, detail: str | None = None) -> None:
        self.exit_code = exit_code
        super().__init__("Audio extraction failed", FailureSource.TRANSCODER, detail)


class EmptyOutputError(ExtractionError):
    """Raised when the transcoder reported success but wrote nothing."""

    code = EMPTY_OUTPUT

    def __init__(self) -> None:
        super().__init__("Output file is empty", FailureSource.FILESYSTEM)


class ExtractionTimeoutError(ExtractionError):
    """Raised when a run exceeds its deadline."""

    status = 408
    code = TIMEOUT

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(
            "Request timeout - file too large or slow connection",
            FailureSource.DEADLINE,
            detail=f"deadline of {timeout:g}s expired",
        )


class StreamError(ExtractionError):
    """Raised when the finished artifact cannot be opened for streaming."""

    code = STREAM_ERROR

    def __init__(self, detail: str | None = None) -> None:
        super().__init__("File streaming failed", FailureSource.FILESYSTEM, detail)


class FilesystemError(ExtractionError):
    """Raised when the artifact cannot be inspected after transcoding."""

    code = FILESYSTEM_ERROR

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(
            "Failed to process output file", FailureSource.FILESYSTEM, detail
        )
