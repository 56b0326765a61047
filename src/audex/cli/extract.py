"""CLI extract command: run one extraction locally.

Runs the same pipeline the HTTP endpoint uses and moves the finished
artifact to an output file instead of streaming it.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
from pathlib import Path

import click

from audex.cli.exit_codes import ExitCode, exit_code_for
from audex.config import get_config
from audex.extraction.errors import ExtractionError, ValidationError
from audex.extraction.pipeline import ExtractionPipeline
from audex.extraction.validation import validate_request

logger = logging.getLogger(__name__)


@click.command("extract")
@click.argument("url")
@click.option(
    "--format",
    "-f",
    "audio_format",
    type=click.Choice(["mp3", "wav"]),
    default="mp3",
    show_default=True,
    help="Output encoding.",
)
@click.option("--start", default=None, help="Slice start, mm:ss or hh:mm:ss.")
@click.option("--end", default=None, help="Slice end, mm:ss or hh:mm:ss.")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file (default: extracted_audio.<format>).",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Deadline in seconds (default: extraction.deadline_seconds).",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (default: ~/.audex/config.toml).",
)
def extract_command(
    url: str,
    audio_format: str,
    start: str | None,
    end: str | None,
    output: Path | None,
    timeout: float | None,
    config_path: Path | None,
) -> None:
    """Extract audio from a video URL into a local file.

    \b
    Examples:
        audex extract https://youtu.be/dQw4w9WgXcQ
        audex extract https://youtu.be/dQw4w9WgXcQ --start 1:00 --end 1:30
        audex extract https://youtu.be/dQw4w9WgXcQ -f wav -o clip.wav
    """
    try:
        config = get_config(config_path=config_path, deadline_seconds=timeout)
    except ValueError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(ExitCode.CONFIG_ERROR)

    try:
        request = validate_request(
            {
                "videoUrl": url,
                "format": audio_format,
                "startTime": start,
                "endTime": end,
            }
        )
    except ValidationError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(exit_code_for(e))

    pipeline = ExtractionPipeline.from_config(config)
    try:
        artifact = asyncio.run(pipeline.run(request))
    except ExtractionError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(exit_code_for(e))
    except KeyboardInterrupt:
        click.echo("Interrupted", err=True)
        sys.exit(ExitCode.INTERRUPTED)

    destination = output or Path(request.suggested_filename)
    try:
        size = artifact.path.stat().st_size
        shutil.move(artifact.path, destination)
    except OSError as e:
        artifact.discard()
        click.echo(f"Error: could not write {destination}: {e}", err=True)
        sys.exit(ExitCode.OUTPUT_ERROR)

    logger.info("Saved %d bytes to %s", size, destination)
    click.echo(f"Wrote {size} bytes to {destination}")
