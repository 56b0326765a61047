"""Process exit codes shared by every audex command.

Codes are grouped by decade: 1-9 general, 10-19 bad input or configuration,
30-39 missing tools, 40-49 failed extractions.
"""

from __future__ import annotations

from enum import IntEnum

from audex.extraction.errors import (
    ExtractionError,
    ExtractionTimeoutError,
    ToolNotFoundError,
    ValidationError,
)


class ExitCode(IntEnum):
    SUCCESS = 0

    GENERAL_ERROR = 1
    INTERRUPTED = 2

    INVALID_REQUEST = 10
    CONFIG_ERROR = 11

    TOOL_NOT_AVAILABLE = 30

    OPERATION_FAILED = 40
    TIMEOUT = 41
    OUTPUT_ERROR = 42


_BY_ERROR: tuple[tuple[type[ExtractionError], ExitCode], ...] = (
    (ValidationError, ExitCode.INVALID_REQUEST),
    (ToolNotFoundError, ExitCode.TOOL_NOT_AVAILABLE),
    (ExtractionTimeoutError, ExitCode.TIMEOUT),
)


def exit_code_for(error: ExtractionError) -> ExitCode:
    """Exit code for a failed extraction. Unlisted failures are OPERATION_FAILED."""
    for error_type, code in _BY_ERROR:
        if isinstance(error, error_type):
            return code
    return ExitCode.OPERATION_FAILED
