"""Shared helpers with no dependency on the rest of audex."""

from audex.core.subprocess_utils import CommandResult, run_command
from audex.core.timespec import TimeSpecError, format_timespec, parse_timespec

__all__ = [
    "CommandResult",
    "TimeSpecError",
    "format_timespec",
    "parse_timespec",
    "run_command",
]
