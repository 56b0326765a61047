"""Unit tests for application assembly and the health endpoint."""

from __future__ import annotations

import logging

import pytest
from aiohttp import web
from aiohttp.test_utils import AioHTTPTestCase

from audex import __version__
from audex.config.models import AudexConfig, ServerConfig
from audex.extraction.pipeline import ExtractionPipeline
from audex.extraction.resolver import FixedNameResolver
from audex.server.app import create_app
from audex.server.lifecycle import DaemonLifecycle
from audex.server.rate_limit import RateLimiter


class _NoTools:
    def resolve(self, tool: str) -> None:
        return None


class TestCreateApp:
    """Tests for create_app()."""

    def test_app_state(self) -> None:
        """The config, pipeline, limiter and lifecycle are stored on the app."""
        pipeline = ExtractionPipeline(FixedNameResolver())
        config = AudexConfig()

        app = create_app(config, pipeline)

        assert app["config"] is config
        assert app["pipeline"] is pipeline
        assert isinstance(app["rate_limiter"], RateLimiter)
        assert isinstance(app["lifecycle"], DaemonLifecycle)

    def test_pipeline_built_from_config(self) -> None:
        """Omitting the pipeline builds one from the config."""
        app = create_app(AudexConfig())
        assert isinstance(app["pipeline"], ExtractionPipeline)
        assert app["pipeline"].deadline_seconds == 300.0

    def test_routes_registered(self) -> None:
        """Extraction is served under both API prefixes beside health."""
        app = create_app(pipeline=ExtractionPipeline(FixedNameResolver()))
        paths = {
            (route.method, route.resource.canonical)
            for route in app.router.routes()
        }
        assert ("POST", "/api/extract-audio") in paths
        assert ("POST", "/api/v1/extract-audio") in paths
        assert ("GET", "/health") in paths
        assert ("GET", "/api/health") in paths

    def test_closed_without_api_key(self, caplog: pytest.LogCaptureFixture) -> None:
        """With no key and no opt-in the app logs that the API is closed."""
        caplog.set_level(logging.WARNING)
        create_app(pipeline=ExtractionPipeline(FixedNameResolver()))
        assert "every /api/ request will be rejected" in caplog.text
        assert "Authentication is disabled" not in caplog.text

    def test_open_mode_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        """Explicit open mode is allowed but logged as a warning."""
        caplog.set_level(logging.WARNING)
        config = AudexConfig(server=ServerConfig(allow_unauthenticated=True))
        create_app(config, ExtractionPipeline(FixedNameResolver()))
        assert "Authentication is disabled" in caplog.text

    def test_no_warning_with_api_key(self, caplog: pytest.LogCaptureFixture) -> None:
        """A configured key silences both the warning and the error."""
        caplog.set_level(logging.WARNING)
        config = AudexConfig(
            server=ServerConfig(api_key="k", allow_unauthenticated=True)
        )
        create_app(config, ExtractionPipeline(FixedNameResolver()))
        assert "Authentication is disabled" not in caplog.text
        assert "will be rejected" not in caplog.text


class TestHealthWithTools(AioHTTPTestCase):
    """Health endpoint when both tools resolve."""

    async def get_application(self) -> web.Application:
        return create_app(pipeline=ExtractionPipeline(FixedNameResolver()))

    async def test_health(self) -> None:
        """Health reports status, version, uptime and tool availability."""
        async with self.client.get("/health") as response:
            assert response.status == 200
            body = await response.json()
        assert body["status"] == "ok"
        assert body["version"] == __version__
        assert body["tools"] == {"yt-dlp": True, "ffmpeg": True}
        assert body["shutting_down"] is False
        assert body["uptime_seconds"] >= 0
        assert body["time"]

    async def test_api_health_alias(self) -> None:
        """Health is also reachable under /api/."""
        async with self.client.get("/api/health") as response:
            assert response.status == 200

    async def test_reports_shutdown(self) -> None:
        """A draining server says so in the health body."""
        self.app["lifecycle"].initiate_shutdown()
        async with self.client.get("/health") as response:
            assert (await response.json())["shutting_down"] is True


class TestHealthWithoutTools(AioHTTPTestCase):
    """Missing tools do not change the status."""

    async def get_application(self) -> web.Application:
        return create_app(pipeline=ExtractionPipeline(_NoTools()))

    async def test_health(self) -> None:
        """Unresolvable tools are reported without failing the check."""
        async with self.client.get("/health") as response:
            assert response.status == 200
            body = await response.json()
        assert body["status"] == "ok"
        assert body["tools"] == {"yt-dlp": False, "ffmpeg": False}
