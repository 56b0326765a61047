"""API key authentication middleware.

Requests to the API must carry the shared key in the ``X-API-Key`` header.
Health checks and CORS preflight requests are exempt. With no key configured
the API stays closed unless the server is explicitly started in open mode
(``server.allow_unauthenticated``).

Security note: This is minimal authentication suitable for a service behind
a TLS-terminating reverse proxy. The key travels in clear text otherwise.
"""

from __future__ import annotations

import logging
import secrets

from aiohttp import web

from audex.server.api.errors import UNAUTHORIZED, api_error
from audex.server.middleware import Handler, Middleware

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"

# Load balancer health checks must not need credentials
EXEMPT_PATHS: frozenset[str] = frozenset({"/health", "/api/health"})


def validate_api_key(provided: str, expected: str) -> bool:
    """Compare keys in constant time.

    Args:
        provided: The key sent by the client.
        expected: The configured key.

    Returns:
        True if the keys match, False otherwise.
    """
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def is_auth_enabled(api_key: str | None) -> bool:
    """Return True if a non-blank API key is configured."""
    return api_key is not None and api_key.strip() != ""


def create_auth_middleware(api_key: str | None) -> Middleware:
    """Create auth middleware for the given key.

    Args:
        api_key: The shared secret to validate against. None or blank means
            no key can match, so every non-exempt request is rejected.

    Returns:
        aiohttp middleware function. Missing or wrong keys get 401.
    """
    expected = api_key if is_auth_enabled(api_key) else None

    @web.middleware
    async def auth_middleware(
        request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        """Authenticate requests using the X-API-Key header."""
        if request.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await handler(request)

        provided = request.headers.get(API_KEY_HEADER)
        if (
            expected is None
            or not provided
            or not validate_api_key(provided, expected)
        ):
            logger.warning(
                "Rejected unauthenticated %s %s from %s",
                request.method,
                request.path,
                request.remote,
            )
            return api_error("Unauthorized", code=UNAUTHORIZED, status=401)

        return await handler(request)

    return auth_middleware
