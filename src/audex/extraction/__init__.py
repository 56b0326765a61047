"""Audio extraction: validation, tool resolution and the process pipeline."""

from audex.extraction.artifact import (
    CHUNK_SIZE,
    iter_chunks,
    open_artifact,
    verify_artifact,
)
from audex.extraction.deadline import DEFAULT_DEADLINE_SECONDS, DeadlineGuard
from audex.extraction.errors import (
    EmptyOutputError,
    ExtractionError,
    ExtractionTimeoutError,
    FilesystemError,
    InvalidTimeFormatError,
    InvalidTimeRangeError,
    InvalidUrlError,
    ProcessError,
    StreamError,
    ToolNotFoundError,
    TranscodeFailedError,
    ValidationError,
)
from audex.extraction.models import (
    AudioFormat,
    ExtractionRequest,
    FailureSource,
    PipelineRun,
    RunState,
    TempArtifact,
)
from audex.extraction.outcome import OutcomeCell
from audex.extraction.pipeline import DOWNLOADER_GRACE_SECONDS, ExtractionPipeline
from audex.extraction.resolver import (
    DOWNLOADER,
    TRANSCODER,
    ExecutableResolver,
    FixedNameResolver,
    SearchPathResolver,
    create_resolver,
)
from audex.extraction.validation import is_supported_url, validate_request

__all__ = [
    # Models
    "AudioFormat",
    "ExtractionRequest",
    "FailureSource",
    "PipelineRun",
    "RunState",
    "TempArtifact",
    "OutcomeCell",
    # Errors
    "ExtractionError",
    "ValidationError",
    "InvalidUrlError",
    "InvalidTimeFormatError",
    "InvalidTimeRangeError",
    "ToolNotFoundError",
    "ProcessError",
    "TranscodeFailedError",
    "EmptyOutputError",
    "ExtractionTimeoutError",
    "StreamError",
    "FilesystemError",
    # Validation
    "is_supported_url",
    "validate_request",
    # Resolution
    "DOWNLOADER",
    "TRANSCODER",
    "ExecutableResolver",
    "FixedNameResolver",
    "SearchPathResolver",
    "create_resolver",
    # Pipeline
    "DEFAULT_DEADLINE_SECONDS",
    "DOWNLOADER_GRACE_SECONDS",
    "DeadlineGuard",
    "ExtractionPipeline",
    # Artifacts
    "CHUNK_SIZE",
    "iter_chunks",
    "open_artifact",
    "verify_artifact",
]
