"""Validation of inbound extraction payloads.

Checks run in a fixed order and stop at the first failure: URL, format,
start time, end time, range. Nothing here allocates resources.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from audex.core.timespec import TimeSpecError, parse_timespec
from audex.extraction.errors import (
    InvalidTimeFormatError,
    InvalidTimeRangeError,
    InvalidUrlError,
)
from audex.extraction.models import AudioFormat, ExtractionRequest

logger = logging.getLogger(__name__)

# Watch URL or short link, followed by the 11-character video id.
VIDEO_URL_PATTERN = re.compile(
    r"^https?://(www\.)?(youtube\.com/watch\?v=|youtu\.be/)[a-zA-Z0-9_-]{11}"
)


class SourceFields(BaseModel):
    """URL and format fields of the extract endpoint's JSON body.

    ``videoUrl`` must be a string when present. ``sourceUrl`` is only a
    fallback, so a non-string there counts as absent. An unrecognised or
    non-string ``format`` falls back to mp3 later on.
    """

    model_config = ConfigDict(
        extra="ignore", frozen=True, populate_by_name=True, strict=True
    )

    video_url: str | None = Field(default=None, alias="videoUrl")
    source_url: str | None = Field(default=None, alias="sourceUrl")
    format: str | None = None

    @field_validator("source_url", "format", mode="before")
    @classmethod
    def _drop_non_strings(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @property
    def url(self) -> str | None:
        return self.video_url if self.video_url is not None else self.source_url


class TrimFields(BaseModel):
    """Optional ``startTime``/``endTime`` strings of the JSON body."""

    model_config = ConfigDict(
        extra="ignore", frozen=True, populate_by_name=True, strict=True
    )

    start_time: str | None = Field(default=None, alias="startTime")
    end_time: str | None = Field(default=None, alias="endTime")


def is_supported_url(url: object) -> bool:
    """Return True if url looks like a watch URL or short link."""
    return isinstance(url, str) and VIDEO_URL_PATTERN.match(url) is not None


def _load_source(payload: dict[str, Any]) -> SourceFields:
    try:
        return SourceFields.model_validate(payload)
    except ValidationError:
        raise InvalidUrlError("Missing or invalid videoUrl parameter") from None


def _load_trim(payload: dict[str, Any]) -> TrimFields:
    try:
        return TrimFields.model_validate(payload)
    except ValidationError as e:
        # Errors come back in field order, so the start time is reported first
        field = e.errors()[0]["loc"][0]
        wire = "endTime" if field in ("endTime", "end_time") else "startTime"
        raise InvalidTimeFormatError(wire) from None


def _parse_offset(value: str | None, field: str) -> int | None:
    try:
        return parse_timespec(value)
    except TimeSpecError:
        raise InvalidTimeFormatError(field) from None


def validate_request(payload: Any) -> ExtractionRequest:
    """Validate a raw payload into an ExtractionRequest.

    Args:
        payload: Decoded JSON body (normally a dict).

    Returns:
        Validated, immutable ExtractionRequest.

    Raises:
        InvalidUrlError: Missing, non-string or unrecognised URL
            (also raised for a payload that is not an object).
        InvalidTimeFormatError: startTime or endTime is malformed.
        InvalidTimeRangeError: start is not before end.
    """
    if not isinstance(payload, dict):
        raise InvalidUrlError("Missing or invalid videoUrl parameter")

    source = _load_source(payload)
    url = source.url
    if not url:
        raise InvalidUrlError("Missing or invalid videoUrl parameter")
    if not is_supported_url(url):
        raise InvalidUrlError()

    audio_format = AudioFormat.coerce(source.format)
    if source.format is not None and audio_format.value != source.format:
        logger.debug("Unsupported format %r, using mp3", source.format)

    trim = _load_trim(payload)
    start = _parse_offset(trim.start_time, "startTime")
    end = _parse_offset(trim.end_time, "endTime")

    if start is not None and end is not None and start >= end:
        raise InvalidTimeRangeError(start, end)

    return ExtractionRequest(
        source_url=url,
        format=audio_format,
        start_seconds=start,
        end_seconds=end,
    )
