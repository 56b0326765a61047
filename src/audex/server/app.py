"""aiohttp application assembly and the health endpoint."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from aiohttp import web
from pydantic import BaseModel

from audex import __version__
from audex.config.models import AudexConfig
from audex.extraction.pipeline import ExtractionPipeline
from audex.extraction.resolver import DOWNLOADER, TRANSCODER
from audex.server.api import setup_api_routes
from audex.server.auth import create_auth_middleware, is_auth_enabled
from audex.server.lifecycle import DaemonLifecycle
from audex.server.middleware import error_middleware, setup_cors
from audex.server.rate_limit import RateLimiter, rate_limit_middleware

logger = logging.getLogger(__name__)


class HealthStatus(BaseModel):
    """Body of GET /health.

    ``status`` stays "ok" while the process serves requests, even when a
    tool is missing; ``tools`` tells whether each one resolves right now.
    """

    status: str = "ok"
    time: str
    version: str = __version__
    uptime_seconds: float
    tools: dict[str, bool]
    shutting_down: bool


def create_app(
    config: AudexConfig | None = None,
    pipeline: ExtractionPipeline | None = None,
) -> web.Application:
    """Build the service application.

    Middleware order, outermost first: CORS preflight, JSON error mapping,
    API key check (left out only in explicit open mode), rate limiting.

    Args:
        config: Service configuration. Defaults when omitted.
        pipeline: Pipeline serving extraction requests. Built from config
            when omitted; tests pass one with stand-in tools.
    """
    config = config or AudexConfig()
    server = config.server

    middlewares = [error_middleware]
    if is_auth_enabled(server.api_key):
        middlewares.append(create_auth_middleware(server.api_key))
        logger.info("Requests to /api/ require an X-API-Key header")
    elif server.allow_unauthenticated:
        logger.warning(
            "Authentication is disabled (allow_unauthenticated). "
            "Anyone who can reach the server can run extractions."
        )
    else:
        middlewares.append(create_auth_middleware(None))
        logger.error(
            "No API key configured, so every /api/ request will be rejected. "
            "Set AUDEX_API_KEY, or AUDEX_ALLOW_UNAUTHENTICATED=1 to serve "
            "without one."
        )
    middlewares.append(rate_limit_middleware)

    app = web.Application(middlewares=middlewares)
    setup_cors(app, server.cors_origins)

    app["config"] = config
    app["pipeline"] = pipeline or ExtractionPipeline.from_config(config)
    app["rate_limiter"] = RateLimiter(config.rate_limit)
    app["lifecycle"] = DaemonLifecycle(shutdown_timeout=server.shutdown_timeout)

    for path in ("/health", "/api/health"):
        app.router.add_get(path, health_handler)
    setup_api_routes(app)
    return app


async def health_handler(request: web.Request) -> web.Response:
    """GET /health and GET /api/health: liveness plus tool resolution."""
    resolver = request.app["pipeline"].resolver
    lifecycle: DaemonLifecycle = request.app["lifecycle"]

    status = HealthStatus(
        time=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=round(lifecycle.uptime_seconds, 1),
        tools={
            tool: resolver.resolve(tool) is not None
            for tool in (DOWNLOADER, TRANSCODER)
        },
        shutting_down=lifecycle.is_shutting_down,
    )
    return web.json_response(status.model_dump())
