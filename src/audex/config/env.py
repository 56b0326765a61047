"""Typed reads of AUDEX_* environment variables."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRUTHY = frozenset({"1", "true", "yes", "on"})


class EnvReader:
    """Reads and converts environment variables.

    Takes any mapping in place of ``os.environ`` so the builder can be fed a
    fixed environment in tests. A value that fails to convert is logged and
    treated as unset; a bad variable never stops the service from starting.
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env: Mapping[str, str] = os.environ if env is None else env

    def _convert(
        self, var: str, convert: Callable[[str], T], default: T | None
    ) -> T | None:
        raw = self._env.get(var)
        if raw is None:
            return default
        try:
            return convert(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r: expected %s", var, raw, convert.__name__)
            return default

    def get_str(self, var: str, default: str | None = None) -> str | None:
        return self._env.get(var, default)

    def get_int(self, var: str, default: int | None = None) -> int | None:
        return self._convert(var, int, default)

    def get_float(self, var: str, default: float | None = None) -> float | None:
        return self._convert(var, float, default)

    def get_bool(self, var: str, default: bool | None = None) -> bool | None:
        """1/true/yes/on in any case are true. Any other set value is false."""
        raw = self._env.get(var)
        return default if raw is None else raw.strip().lower() in _TRUTHY

    def get_path(
        self, var: str, must_exist: bool = True, default: Path | None = None
    ) -> Path | None:
        """Expanded path. With must_exist, a missing target counts as unset."""
        raw = self._env.get(var)
        if raw is None:
            return default
        path = Path(raw).expanduser()
        if must_exist and not path.exists():
            logger.warning("Ignoring %s: %s does not exist", var, path)
            return default
        return path

    def get_list(
        self, var: str, separator: str = ",", default: list[str] | None = None
    ) -> list[str] | None:
        raw = self._env.get(var)
        if raw is None:
            return default
        return [part.strip() for part in raw.split(separator) if part.strip()]
