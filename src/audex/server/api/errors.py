"""JSON error responses for the HTTP API.

Every non-2xx response from /api/ has the body ``{"error", "code"}`` with an
optional ``details`` member. Extraction failures carry their own codes (see
audex.extraction.errors); the codes below cover the HTTP layer itself.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from aiohttp import web
from pydantic import BaseModel

from audex.extraction.errors import ExtractionError

INVALID_JSON = "INVALID_JSON"
NOT_FOUND = "NOT_FOUND"
UNAUTHORIZED = "UNAUTHORIZED"
RATE_LIMITED = "RATE_LIMITED"
INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorBody(BaseModel):
    error: str
    code: str
    details: Any = None


def api_error(
    message: str,
    *,
    code: str,
    status: int = 400,
    details: Any = None,
    headers: Mapping[str, str] | None = None,
) -> web.Response:
    """Build an error response. ``details`` is omitted from the body when None."""
    body = ErrorBody(error=message, code=code, details=details)
    return web.json_response(
        body.model_dump(exclude_none=True), status=status, headers=headers
    )


def extraction_error(error: ExtractionError) -> web.Response:
    """Response for a failed extraction.

    Only the caller-safe message goes out; ``error.detail`` may hold local
    paths or tool output and stays in the logs.
    """
    return api_error(error.message, code=error.code, status=error.status)
