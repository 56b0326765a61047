"""Typed configuration sections.

Each section validates itself on construction and raises ValueError for
values the service could not run with. Defaults here are the only defaults;
the builder never supplies its own.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field
from pathlib import Path

VALID_RESOLVERS = frozenset({"search", "fixed"})
VALID_LOG_LEVELS = frozenset({"debug", "info", "warning", "error"})
VALID_LOG_FORMATS = frozenset({"text", "json"})


def _require_choice(name: str, value: str, allowed: Collection[str]) -> None:
    if value not in allowed:
        raise ValueError(f"{name} must be one of {sorted(allowed)}, got {value!r}")


@dataclass
class ToolPathsConfig:
    """How yt-dlp and ffmpeg are located.

    The "search" resolver uses an explicit path when given and otherwise
    looks the tool up on PATH at the start of every run. The "fixed"
    resolver ignores PATH lookups and execs the path or bare name as-is.
    """

    resolver: str = "search"
    yt_dlp: Path | None = None
    ffmpeg: Path | None = None

    def __post_init__(self) -> None:
        _require_choice("resolver", self.resolver, VALID_RESOLVERS)


@dataclass
class ExtractionConfig:
    deadline_seconds: float = 300.0
    """Wall-clock limit for one run, spawn to transcoder exit."""

    temp_directory: Path | None = None
    """Where artifacts are written. None means the platform temp dir."""

    def __post_init__(self) -> None:
        if not self.deadline_seconds > 0:
            raise ValueError(
                f"deadline_seconds must be positive, got {self.deadline_seconds}"
            )


@dataclass
class ServerConfig:
    bind: str = "127.0.0.1"
    port: int = 3000
    shutdown_timeout: float = 30.0

    api_key: str | None = None
    """Required X-API-Key value. Without one the API rejects every request
    unless allow_unauthenticated is set."""

    allow_unauthenticated: bool = False
    """Serve /api/ without a key. Ignored when api_key is set."""

    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError(f"port must be 1-65535, got {self.port}")
        if self.shutdown_timeout < 0:
            raise ValueError(
                f"shutdown_timeout must not be negative, got {self.shutdown_timeout}"
            )


@dataclass(frozen=True)
class RateLimitConfig:
    """Per-IP budgets for /api/. POSTs draw on the smaller mutate budget."""

    enabled: bool = True
    get_max_requests: int = 120
    mutate_max_requests: int = 10
    window_seconds: int = 60

    def __post_init__(self) -> None:
        if min(self.get_max_requests, self.mutate_max_requests) < 1:
            raise ValueError("rate limit request budgets must be at least 1")
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be at least 1")


@dataclass
class LoggingConfig:
    level: str = "info"
    file: Path | None = None
    format: str = "text"
    include_stderr: bool = True
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5

    def __post_init__(self) -> None:
        _require_choice("level", self.level.casefold(), VALID_LOG_LEVELS)
        _require_choice("format", self.format.casefold(), VALID_LOG_FORMATS)


@dataclass
class AudexConfig:
    tools: ToolPathsConfig = field(default_factory=ToolPathsConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
