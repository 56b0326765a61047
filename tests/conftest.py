"""Shared test fixtures for audex."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from audex.config.loader import clear_config_cache
from audex.extraction.models import AudioFormat, ExtractionRequest

VALID_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    """Skip tests that need a POSIX shell on other platforms."""
    if os.name == "posix":
        return
    skip = pytest.mark.skip(reason="requires a POSIX shell")
    for item in items:
        if "posix" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def _isolate_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep the user's config file and AUDEX_* variables out of every test."""
    for var in list(os.environ):
        if var.startswith("AUDEX_") or var == "PORT":
            monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("AUDEX_CONFIG_PATH", str(tmp_path / "no-config.toml"))
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def valid_url() -> str:
    return VALID_URL


@pytest.fixture
def mp3_request() -> ExtractionRequest:
    """A validated request without trim offsets."""
    return ExtractionRequest(source_url=VALID_URL, format=AudioFormat.MP3)


@pytest.fixture
def artifact_dir(tmp_path: Path) -> Path:
    """Directory that receives pipeline artifacts."""
    directory = tmp_path / "artifacts"
    directory.mkdir()
    return directory


@pytest.fixture
def make_script(tmp_path: Path) -> Callable[[str, str], Path]:
    """Factory for executable /bin/sh scripts standing in for yt-dlp/ffmpeg.

    Example:
        downloader = make_script("yt-dlp", "printf 'audio'")
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _make(name: str, body: str) -> Path:
        path = bin_dir / name
        path.write_text(f"#!/bin/sh\n{body}\n")
        path.chmod(0o755)
        return path

    return _make
