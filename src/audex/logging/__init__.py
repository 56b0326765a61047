"""Structured logging module for audex.

Provides configurable logging with JSON format support and file rotation,
plus per-run context so concurrent extractions can be told apart.
"""

from audex.logging.config import configure_logging
from audex.logging.context import RunContextFilter, get_run_id, run_context
from audex.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "RunContextFilter",
    "configure_logging",
    "get_run_id",
    "run_context",
]
