"""Where configuration comes from, and in what order.

Highest precedence first: command-line flags passed to get_config(), AUDEX_*
environment variables, the TOML file, then the model defaults. The file is
``~/.audex/config.toml`` unless AUDEX_CONFIG_PATH names another one.

Recognised variables: AUDEX_API_KEY, AUDEX_ALLOW_UNAUTHENTICATED,
AUDEX_SERVER_BIND, AUDEX_SERVER_PORT (PORT as a fallback),
AUDEX_SERVER_SHUTDOWN_TIMEOUT, AUDEX_CORS_ORIGINS,
AUDEX_DEADLINE_SECONDS, AUDEX_TEMP_DIR, AUDEX_TOOL_RESOLVER,
AUDEX_YT_DLP_PATH, AUDEX_FFMPEG_PATH, AUDEX_RATE_LIMIT_*, AUDEX_LOG_LEVEL,
AUDEX_LOG_FORMAT and AUDEX_LOG_FILE.
"""

from __future__ import annotations

import functools
import logging
import os
import tempfile
import tomllib
from pathlib import Path
from typing import Any

from audex.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from audex.config.env import EnvReader
from audex.config.models import AudexConfig

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "AUDEX_CONFIG_PATH"
DEFAULT_CONFIG_PATH = Path.home() / ".audex" / "config.toml"


class ConfigFileError(Exception):
    """The config file exists but is not readable TOML."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot parse config file {path}: {reason}")
        self.path = path
        self.reason = reason


def get_default_config_path() -> Path:
    override = os.environ.get(CONFIG_PATH_ENV)
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH


@functools.lru_cache(maxsize=8)
def _read_toml(path: Path, mtime_ns: int, strict: bool) -> dict[str, Any]:
    # mtime_ns is part of the cache key so an edited file is re-read
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError:
        return {}
    except (tomllib.TOMLDecodeError, OSError) as e:
        if strict:
            raise ConfigFileError(path, str(e)) from e
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}


def load_config_file(
    path: Path | None = None, *, strict: bool = False
) -> dict[str, Any]:
    """Parse the config file, re-reading it only when its mtime changes.

    A missing file yields an empty dict. An unparseable one raises
    ConfigFileError when strict, else logs a warning and yields an empty
    dict. The returned dict is shared between callers and must not be
    modified.
    """
    path = path or get_default_config_path()
    try:
        mtime_ns = path.stat().st_mtime_ns
    except FileNotFoundError:
        mtime_ns = 0
    return _read_toml(path, mtime_ns, strict)


def clear_config_cache() -> None:
    _read_toml.cache_clear()


def get_config(
    config_path: Path | None = None,
    *,
    bind: str | None = None,
    port: int | None = None,
    deadline_seconds: float | None = None,
    log_level: str | None = None,
    log_format: str | None = None,
    log_file: Path | None = None,
    allow_unauthenticated: bool | None = None,
    env_reader: EnvReader | None = None,
    strict: bool = False,
) -> AudexConfig:
    """Merge defaults, the config file, the environment and CLI flags.

    Keyword flags left as None defer to lower layers. ``env_reader`` replaces
    os.environ, mainly for tests. With ``strict`` an unparseable file raises
    ConfigFileError instead of being skipped. Values that fail model
    validation raise ValueError.
    """
    flags = ConfigSource(
        server_bind=bind,
        server_port=port,
        server_allow_unauthenticated=allow_unauthenticated,
        deadline_seconds=deadline_seconds,
        logging_level=log_level,
        logging_format=log_format,
        logging_file=log_file,
    )

    builder = ConfigBuilder()
    for name, source in (
        ("file", source_from_file(load_config_file(config_path, strict=strict))),
        ("env", source_from_env(env_reader or EnvReader())),
        ("cli", flags),
    ):
        builder.apply(source, name)
    return builder.build()


def get_temp_directory(config: AudexConfig) -> Path:
    """Get the directory where artifacts are written.

    Falls back to the platform temp directory when the configured one is
    unset or not a directory.
    """
    configured = config.extraction.temp_directory
    if configured is not None:
        if configured.is_dir():
            return configured
        logger.warning(
            "Configured temp directory '%s' is not a directory, "
            "falling back to system temp",
            configured,
        )
    return Path(tempfile.gettempdir())
