"""HTTP API routes.

Each route is served under ``/api`` and again under ``/api/v1`` for clients
that pin a version.
"""

from aiohttp import web

from audex.server.api.extract import get_extract_routes

__all__ = ["API_PREFIXES", "setup_api_routes"]

API_PREFIXES = ("/api", "/api/v1")


def setup_api_routes(app: web.Application) -> None:
    routes = get_extract_routes()
    for prefix in API_PREFIXES:
        for method, suffix, handler in routes:
            app.router.add_route(method, prefix + suffix, handler)
