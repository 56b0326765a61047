"""`audex doctor`: check that yt-dlp and ffmpeg can be run."""

from __future__ import annotations

import json
import sys

import click

from audex.cli.exit_codes import ExitCode
from audex.config import get_config
from audex.extraction.resolver import create_resolver
from audex.tools import ToolInfo, detect_all_tools

INSTALL_HINTS = {
    "yt-dlp": "Install yt-dlp: https://github.com/yt-dlp/yt-dlp#installation",
    "ffmpeg": "Install ffmpeg: https://ffmpeg.org/download.html",
}


def _describe(info: ToolInfo) -> str:
    mark = "✓" if info.is_available() else "✗"
    detail = info.version or info.status_message or "not found"
    where = f" ({info.path})" if info.path else ""
    return f"  {mark} {info.name}: {detail}{where}"


@click.command("doctor")
@click.option("--json", "json_output", is_flag=True, help="Print a JSON report.")
def doctor_command(json_output: bool) -> None:
    """Check that yt-dlp and ffmpeg are installed and runnable.

    Tools are located with the configured resolver, the same way every
    extraction run locates them. Exits 30 when any tool is unusable.
    """
    config = get_config()
    tools = detect_all_tools(create_resolver(config.tools))
    healthy = all(info.is_available() for info in tools.values())

    if json_output:
        report = {
            "resolver": config.tools.resolver,
            "ok": healthy,
            "tools": {name: info.to_dict() for name, info in tools.items()},
        }
        click.echo(json.dumps(report, indent=2))
    else:
        click.echo(f"Tool check (resolver: {config.tools.resolver})")
        for name, info in tools.items():
            click.echo(_describe(info))
            if not info.is_available():
                click.echo(f"    {INSTALL_HINTS[name]}")
        click.echo(
            "All tools available."
            if healthy
            else "Some tools are unavailable; extraction will fail."
        )

    if not healthy:
        sys.exit(ExitCode.TOOL_NOT_AVAILABLE)
