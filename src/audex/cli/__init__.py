"""audex command line: `audex extract`, `audex serve` and `audex doctor`."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from audex import __version__
from audex.cli.doctor import doctor_command
from audex.cli.exit_codes import ExitCode
from audex.cli.extract import extract_command
from audex.cli.serve import serve_command


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, prog_name="audex")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log level (default: from config, else info).",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write logs to this rotating file.",
)
@click.option("--log-json", is_flag=True, help="Emit one JSON object per log line.")
def main(log_level: str | None, log_file: Path | None, log_json: bool) -> None:
    """Extract audio slices from online videos with yt-dlp and ffmpeg."""
    from audex.config.logging_factory import configure_cli_logging

    try:
        configure_cli_logging(
            level=log_level,
            file=log_file,
            format="json" if log_json else None,
        )
    except ValueError as e:
        click.echo(f"Error: invalid logging configuration: {e}", err=True)
        sys.exit(ExitCode.CONFIG_ERROR)


main.add_command(doctor_command)
main.add_command(extract_command)
main.add_command(serve_command)
