"""Apply command-line logging flags on top of the configured LoggingConfig."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from audex.config.models import LoggingConfig


def build_logging_config(
    base: LoggingConfig,
    *,
    level: str | None = None,
    file: Path | None = None,
    format: str | None = None,
    include_stderr: bool | None = None,
) -> LoggingConfig:
    """Return a copy of base with each non-None flag applied.

    The copy is validated again, so a bad flag raises ValueError.
    """
    flags = {
        "level": level,
        "file": file,
        "format": format,
        "include_stderr": include_stderr,
    }
    return replace(base, **{name: v for name, v in flags.items() if v is not None})


def configure_cli_logging(
    *,
    config_path: Path | None = None,
    level: str | None = None,
    file: Path | None = None,
    format: str | None = None,
) -> LoggingConfig:
    """Set up logging for a CLI invocation and return what was applied."""
    from audex.config.loader import get_config
    from audex.logging import configure_logging

    effective = build_logging_config(
        get_config(config_path=config_path).logging,
        level=level,
        file=file,
        format=format,
    )
    configure_logging(effective)
    return effective
