"""Cross-cutting HTTP middleware: error mapping and CORS."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from aiohttp import web

from audex.server.api.errors import INTERNAL_ERROR, NOT_FOUND, api_error

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]
Middleware = Callable[[web.Request, Handler], Awaitable[web.StreamResponse]]

CORS_ALLOW_METHODS = "GET, POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, X-API-Key"


@web.middleware
async def error_middleware(
    request: web.Request, handler: Handler
) -> web.StreamResponse:
    """Render unknown routes and unexpected exceptions as JSON errors."""
    try:
        return await handler(request)
    except web.HTTPNotFound:
        return api_error("Not found", code=NOT_FOUND, status=404)
    except web.HTTPException:
        raise
    except Exception:
        logger.exception("Unhandled error serving %s %s", request.method, request.path)
        return api_error("Internal server error", code=INTERNAL_ERROR, status=500)


def setup_cors(app: web.Application, allowed_origins: list[str]) -> None:
    """Enable CORS for every response of the application.

    - Preflight OPTIONS requests are answered directly with 204
    - Access-Control-Allow-Origin is added to every other response just
      before its headers are sent, which also covers streamed bodies

    Args:
        app: aiohttp Application to configure.
        allowed_origins: Allowed origins. ``"*"`` allows any origin.
    """
    allow_any = "*" in allowed_origins
    origins = frozenset(allowed_origins)

    def _cors_headers(request: web.Request) -> dict[str, str]:
        if allow_any:
            return {"Access-Control-Allow-Origin": "*"}
        origin = request.headers.get("Origin")
        if origin is not None and origin in origins:
            return {"Access-Control-Allow-Origin": origin, "Vary": "Origin"}
        return {}

    @web.middleware
    async def cors_preflight_middleware(
        request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        """Answer CORS preflight requests."""
        if (
            request.method == "OPTIONS"
            and "Access-Control-Request-Method" in request.headers
        ):
            return web.Response(
                status=204,
                headers={
                    "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
                    "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
                },
            )
        return await handler(request)

    async def _add_cors_headers(
        request: web.Request, response: web.StreamResponse
    ) -> None:
        response.headers.update(_cors_headers(request))

    app.middlewares.insert(0, cors_preflight_middleware)
    app.on_response_prepare.append(_add_cors_headers)
