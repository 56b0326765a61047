"""`audex serve`: the HTTP service as a long-lived process.

Meant to run under systemd or a container runtime. Logs always go to stderr
in addition to any configured file.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import sys
from pathlib import Path

import click

from audex.cli.exit_codes import ExitCode
from audex.config import get_config, get_temp_directory
from audex.config.models import AudexConfig

logger = logging.getLogger(__name__)

_BIND_ERRORS = {
    errno.EADDRINUSE: "Port {port} is already in use",
    errno.EADDRNOTAVAIL: "Cannot bind to address {bind}",
}


async def run_server(config: AudexConfig) -> int:
    """Serve until SIGTERM or SIGINT latches shutdown.

    Returns:
        ExitCode.SUCCESS after a clean stop, GENERAL_ERROR if the listener
        could not be opened.
    """
    from aiohttp import web

    from audex.server.app import create_app
    from audex.server.signals import (
        install_shutdown_handlers,
        uninstall_shutdown_handlers,
    )

    server = config.server
    app = create_app(config)
    lifecycle = app["lifecycle"]

    loop = asyncio.get_running_loop()
    installed = install_shutdown_handlers(loop, lifecycle)

    # aiohttp waits this long for in-flight extractions during cleanup
    runner = web.AppRunner(app, shutdown_timeout=server.shutdown_timeout)
    await runner.setup()
    try:
        await web.TCPSite(runner, server.bind, server.port).start()
    except OSError as e:
        template = _BIND_ERRORS.get(e.errno, "Cannot start listener: {error}")
        logger.error(template.format(port=server.port, bind=server.bind, error=e))
        uninstall_shutdown_handlers(loop, installed)
        await runner.cleanup()
        return ExitCode.GENERAL_ERROR

    url = f"http://{server.bind}:{server.port}"
    logger.info("audex listening on %s (pid %d)", url, os.getpid())
    logger.info("Extraction endpoint: POST %s/api/extract-audio", url)

    try:
        await lifecycle.wait_for_shutdown()
    finally:
        uninstall_shutdown_handlers(loop, installed)
        await runner.cleanup()
        logger.info("audex stopped after %.0fs", lifecycle.uptime_seconds)

    return ExitCode.SUCCESS


@click.command("serve")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Configuration file (default: ~/.audex/config.toml).",
)
@click.option("--bind", default=None, help="Listen address (default: 127.0.0.1).")
@click.option(
    "--port", "-p", type=int, default=None, help="Listen port (default: 3000)."
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log level (default: info).",
)
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default=None,
    help="Log line format (default: text).",
)
@click.option(
    "--allow-unauthenticated",
    is_flag=True,
    default=False,
    help="Serve /api/ without an API key (otherwise requests are refused).",
)
def serve_command(
    config_path: Path | None,
    bind: str | None,
    port: int | None,
    log_level: str | None,
    log_format: str | None,
    allow_unauthenticated: bool,
) -> None:
    """Run the extraction HTTP service.

    Flags override AUDEX_* environment variables, which override the config
    file. PORT is honoured for platforms that inject it.

    \b
    Examples:
        audex serve
        audex serve --bind 0.0.0.0 --port 8080
        audex serve --log-format json
        audex serve --allow-unauthenticated
    """
    from audex.logging import configure_logging
    from audex.server.cleanup import cleanup_orphaned_artifacts

    try:
        config = get_config(
            config_path=config_path,
            bind=bind,
            port=port,
            log_level=log_level,
            log_format=log_format,
            allow_unauthenticated=allow_unauthenticated or None,
        )
    except ValueError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(ExitCode.CONFIG_ERROR)

    config.logging.include_stderr = True
    configure_logging(config.logging)

    removed = cleanup_orphaned_artifacts(get_temp_directory(config))
    if removed:
        logger.info("Removed %d artifact(s) left by an earlier process", removed)

    if config.server.port < 1024:
        logger.warning("Port %d is privileged and may require root", config.server.port)

    logger.info(
        "Deadline %.0fs per extraction, %s tool resolution",
        config.extraction.deadline_seconds,
        config.tools.resolver,
    )

    try:
        sys.exit(asyncio.run(run_server(config)))
    except KeyboardInterrupt:
        logger.info("Interrupted before the server started")
        sys.exit(ExitCode.INTERRUPTED)
