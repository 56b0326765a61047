"""Layered construction of AudexConfig.

Each source (config file, environment, command line) is captured as a flat
ConfigSource. ConfigBuilder stacks them, later sources winning, and hands
the surviving values to the section models. Defaults live only in the
models, so an unset key here simply means "use the model default".
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from audex.config.env import EnvReader
from audex.config.models import (
    AudexConfig,
    ExtractionConfig,
    LoggingConfig,
    RateLimitConfig,
    ServerConfig,
    ToolPathsConfig,
)

_SECTIONS: dict[str, type] = {
    "tools": ToolPathsConfig,
    "extraction": ExtractionConfig,
    "server": ServerConfig,
    "rate_limit": RateLimitConfig,
    "logging": LoggingConfig,
}

# ConfigSource field -> (TOML table / AudexConfig section, key within it)
_TARGETS: dict[str, tuple[str, str]] = {
    "tool_resolver": ("tools", "resolver"),
    "yt_dlp_path": ("tools", "yt_dlp"),
    "ffmpeg_path": ("tools", "ffmpeg"),
    "deadline_seconds": ("extraction", "deadline_seconds"),
    "temp_directory": ("extraction", "temp_directory"),
    "server_bind": ("server", "bind"),
    "server_port": ("server", "port"),
    "server_shutdown_timeout": ("server", "shutdown_timeout"),
    "server_api_key": ("server", "api_key"),
    "server_allow_unauthenticated": ("server", "allow_unauthenticated"),
    "server_cors_origins": ("server", "cors_origins"),
    "rate_limit_enabled": ("rate_limit", "enabled"),
    "rate_limit_get_max_requests": ("rate_limit", "get_max_requests"),
    "rate_limit_mutate_max_requests": ("rate_limit", "mutate_max_requests"),
    "rate_limit_window_seconds": ("rate_limit", "window_seconds"),
    "logging_level": ("logging", "level"),
    "logging_file": ("logging", "file"),
    "logging_format": ("logging", "format"),
    "logging_include_stderr": ("logging", "include_stderr"),
    "logging_max_bytes": ("logging", "max_bytes"),
    "logging_backup_count": ("logging", "backup_count"),
}

_PATH_FIELDS = frozenset(
    {"yt_dlp_path", "ffmpeg_path", "temp_directory", "logging_file"}
)


@dataclass
class ConfigSource:
    """Values supplied by one source. None means the source is silent."""

    tool_resolver: str | None = None
    yt_dlp_path: Path | None = None
    ffmpeg_path: Path | None = None

    deadline_seconds: float | None = None
    temp_directory: Path | None = None

    server_bind: str | None = None
    server_port: int | None = None
    server_shutdown_timeout: float | None = None
    server_api_key: str | None = None
    server_allow_unauthenticated: bool | None = None
    server_cors_origins: list[str] | None = None

    rate_limit_enabled: bool | None = None
    rate_limit_get_max_requests: int | None = None
    rate_limit_mutate_max_requests: int | None = None
    rate_limit_window_seconds: int | None = None

    logging_level: str | None = None
    logging_file: Path | None = None
    logging_format: str | None = None
    logging_include_stderr: bool | None = None
    logging_max_bytes: int | None = None
    logging_backup_count: int | None = None


class ConfigBuilder:
    """Stacks ConfigSources and builds the final AudexConfig.

    Example:
        builder = ConfigBuilder()
        builder.apply(source_from_file(parsed_toml), "file")
        builder.apply(source_from_env(EnvReader()), "env")
        builder.apply(cli_source, "cli")
        config = builder.build()
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._origins: dict[str, str] = {}

    def apply(self, source: ConfigSource, source_name: str = "unknown") -> None:
        """Layer source over what is already applied, skipping its None values."""
        for key, value in asdict(source).items():
            if value is None:
                continue
            self._values[key] = value
            self._origins[key] = source_name

    def origin_of(self, key: str) -> str:
        """Name of the source that set key, or "default"."""
        return self._origins.get(key, "default")

    def build(self) -> AudexConfig:
        """Instantiate every section. Model validation errors raise ValueError."""
        section_kwargs: dict[str, dict[str, Any]] = {name: {} for name in _SECTIONS}
        for key, value in self._values.items():
            section, attr = _TARGETS[key]
            section_kwargs[section][attr] = value
        return AudexConfig(
            **{
                name: model(**section_kwargs[name])
                for name, model in _SECTIONS.items()
            }
        )


def source_from_file(file_config: dict[str, Any]) -> ConfigSource:
    """Read a parsed TOML document whose tables mirror AudexConfig sections.

    Paths are user-expanded. A single string for server.cors_origins is
    accepted as a one-item list.
    """
    values: dict[str, Any] = {}
    for key, (table, name) in _TARGETS.items():
        value = file_config.get(table, {}).get(name)
        if value is None:
            continue
        if key in _PATH_FIELDS:
            value = Path(value).expanduser() if value else None
        elif key == "server_cors_origins" and isinstance(value, str):
            value = [value]
        values[key] = value
    return ConfigSource(**values)


def source_from_env(reader: EnvReader) -> ConfigSource:
    """Read AUDEX_* variables.

    ``PORT`` stands in for an unset ``AUDEX_SERVER_PORT`` so the daemon runs
    unchanged on platforms that inject it. Tool paths need not exist yet; the
    resolver checks them on every run.
    """
    port = reader.get_int("AUDEX_SERVER_PORT")
    return ConfigSource(
        tool_resolver=reader.get_str("AUDEX_TOOL_RESOLVER"),
        yt_dlp_path=reader.get_path("AUDEX_YT_DLP_PATH", must_exist=False),
        ffmpeg_path=reader.get_path("AUDEX_FFMPEG_PATH", must_exist=False),
        deadline_seconds=reader.get_float("AUDEX_DEADLINE_SECONDS"),
        temp_directory=reader.get_path("AUDEX_TEMP_DIR"),
        server_bind=reader.get_str("AUDEX_SERVER_BIND"),
        server_port=port if port is not None else reader.get_int("PORT"),
        server_shutdown_timeout=reader.get_float("AUDEX_SERVER_SHUTDOWN_TIMEOUT"),
        server_api_key=reader.get_str("AUDEX_API_KEY"),
        server_allow_unauthenticated=reader.get_bool(
            "AUDEX_ALLOW_UNAUTHENTICATED"
        ),
        server_cors_origins=reader.get_list("AUDEX_CORS_ORIGINS"),
        rate_limit_enabled=reader.get_bool("AUDEX_RATE_LIMIT_ENABLED"),
        rate_limit_get_max_requests=reader.get_int("AUDEX_RATE_LIMIT_GET_MAX"),
        rate_limit_mutate_max_requests=reader.get_int("AUDEX_RATE_LIMIT_MUTATE_MAX"),
        rate_limit_window_seconds=reader.get_int("AUDEX_RATE_LIMIT_WINDOW"),
        logging_level=reader.get_str("AUDEX_LOG_LEVEL"),
        logging_file=reader.get_path("AUDEX_LOG_FILE", must_exist=False),
        logging_format=reader.get_str("AUDEX_LOG_FORMAT"),
    )
