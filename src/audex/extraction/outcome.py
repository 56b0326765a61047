"""One-shot outcome cell shared by everything that can end a run."""

from __future__ import annotations

import logging
import threading
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OutcomeCell(Generic[T]):
    """Holds the first committed outcome of a run.

    The transcoder exit, a spawn failure and the deadline timer all race to
    commit. Exactly one commit succeeds; the rest are dropped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: T | None = None
        self._is_set = False

    def commit(self, value: T) -> bool:
        """Try to record value as the outcome.

        Args:
            value: Outcome to record (a result or an exception instance).

        Returns:
            True if this call won, False if an outcome was already recorded.
        """
        with self._lock:
            if self._is_set:
                logger.debug("Dropping late outcome %r", value)
                return False
            self._value = value
            self._is_set = True
            return True

    @property
    def is_set(self) -> bool:
        with self._lock:
            return self._is_set

    @property
    def value(self) -> T | None:
        """Committed outcome, or None if nothing has been committed."""
        with self._lock:
            return self._value
