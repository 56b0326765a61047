"""Diagnostic results for the external tools."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class ToolStatus(Enum):
    AVAILABLE = "available"
    MISSING = "missing"  # not resolvable, or resolvable but not executable
    ERROR = "error"  # started, but the version check failed


@dataclass(frozen=True)
class VersionCheck:
    """Command-line flag that prints a tool's version, and where to find it."""

    flag: str
    pattern: re.Pattern[str]

    def extract(self, output: str) -> str | None:
        match = self.pattern.search(output)
        return match.group(1) if match else None


@dataclass
class ToolInfo:
    """What `audex doctor` found out about one tool."""

    name: str
    path: str | None = None
    version: str | None = None
    version_tuple: tuple[int, ...] | None = None
    status: ToolStatus = ToolStatus.MISSING
    status_message: str | None = None
    detected_at: datetime | None = None

    def is_available(self) -> bool:
        return self.status is ToolStatus.AVAILABLE

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready view. version_tuple is internal and left out."""
        return {
            "name": self.name,
            "path": self.path,
            "version": self.version,
            "status": self.status.value,
            "status_message": self.status_message,
            "detected_at": self.detected_at and self.detected_at.isoformat(),
        }
