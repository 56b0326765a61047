"""External tool diagnostics."""

from audex.tools.detection import (
    DETECTION_TIMEOUT,
    VERSION_CHECKS,
    detect_all_tools,
    detect_tool,
    parse_version_string,
)
from audex.tools.models import ToolInfo, ToolStatus, VersionCheck

__all__ = [
    "DETECTION_TIMEOUT",
    "VERSION_CHECKS",
    "ToolInfo",
    "ToolStatus",
    "VersionCheck",
    "detect_all_tools",
    "detect_tool",
    "parse_version_string",
]
