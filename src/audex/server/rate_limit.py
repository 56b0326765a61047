"""Per-client request budgets for the API.

Each client IP gets two sliding-window budgets: a small one for extraction
requests (every POST spawns two processes) and a larger one for reads.
State lives in process memory only.
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import NamedTuple

from aiohttp import web

from audex.config.models import RateLimitConfig
from audex.server.api.errors import RATE_LIMITED, api_error
from audex.server.middleware import Handler

logger = logging.getLogger(__name__)

READ = "read"
EXTRACT = "extract"


class Decision(NamedTuple):
    """Result of a budget check."""

    allowed: bool
    retry_after: float


@dataclass
class ClientWindow:
    """Monotonic timestamps of one client's admitted requests, oldest first."""

    hits: deque[float] = field(default_factory=deque)

    def admit(self, now: float, limit: int, window: int) -> bool:
        """Expire old hits, then admit and record this one if under limit."""
        horizon = now - window
        while self.hits and self.hits[0] < horizon:
            self.hits.popleft()
        if len(self.hits) >= limit:
            return False
        self.hits.append(now)
        return True

    def retry_after(self, now: float, window: int) -> float:
        """Seconds until the oldest hit leaves the window."""
        if not self.hits:
            return 0.0
        return max(0.0, self.hits[0] + window - now)


class RateLimiter:
    """Sliding-window limiter keyed by (budget, client IP)."""

    EXEMPT_PATHS: frozenset[str] = frozenset({"/health", "/api/health"})
    PRUNE_INTERVAL = 300.0

    def __init__(self, config: RateLimitConfig) -> None:
        self._config = config
        self._windows: dict[tuple[str, str], ClientWindow] = {}
        self._last_prune = time.monotonic()

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    def check(self, client_ip: str, method: str, path: str) -> Decision:
        """Charge one request against the client's budget.

        POST requests use the extraction budget, everything else the read
        budget. Health paths and a disabled limiter always pass.
        """
        if not self._config.enabled or path in self.EXEMPT_PATHS:
            return Decision(True, 0.0)

        now = time.monotonic()
        if now - self._last_prune >= self.PRUNE_INTERVAL:
            self._prune(now)

        if method == "POST":
            budget, limit = EXTRACT, self._config.mutate_max_requests
        else:
            budget, limit = READ, self._config.get_max_requests

        window = self._windows.setdefault((budget, client_ip), ClientWindow())
        if window.admit(now, limit, self._config.window_seconds):
            return Decision(True, 0.0)
        return Decision(False, window.retry_after(now, self._config.window_seconds))

    def _prune(self, now: float) -> None:
        """Forget clients whose newest hit is older than the window."""
        self._last_prune = now
        span = self._config.window_seconds
        idle = [
            key
            for key, window in self._windows.items()
            if not window.hits or now - window.hits[-1] >= span
        ]
        for key in idle:
            del self._windows[key]
        if idle:
            logger.debug("Pruned %d idle rate limit windows", len(idle))


@web.middleware
async def rate_limit_middleware(
    request: web.Request, handler: Handler
) -> web.StreamResponse:
    """Reject /api/* requests over budget with 429 and Retry-After.

    A failing limiter lets the request through.
    """
    limiter: RateLimiter | None = request.app.get("rate_limiter")
    if limiter is None or not request.path.startswith("/api/"):
        return await handler(request)

    client_ip = request.remote or "unknown"
    try:
        decision = limiter.check(client_ip, request.method, request.path)
    except Exception:
        logger.exception("Rate limiter failed for %s, allowing request", client_ip)
        return await handler(request)

    if decision.allowed:
        return await handler(request)

    wait = max(1, math.ceil(decision.retry_after))
    logger.warning(
        "Rate limited %s %s from %s for %ds",
        request.method,
        request.path,
        client_ip,
        wait,
    )
    return api_error(
        "Rate limit exceeded. Please wait before retrying.",
        code=RATE_LIMITED,
        status=429,
        headers={"Retry-After": str(wait)},
    )
