"""Audio extraction endpoint.

POST /api/extract-audio takes a JSON body, runs the pipeline and streams the
finished artifact back. The artifact is removed when the response is done,
whatever happened while sending it.
"""

from __future__ import annotations

import logging

from aiohttp import web

from audex.extraction.artifact import iter_chunks, open_artifact
from audex.extraction.errors import ExtractionError, StreamError, ValidationError
from audex.extraction.models import TempArtifact
from audex.extraction.pipeline import ExtractionPipeline
from audex.extraction.validation import validate_request
from audex.logging import run_context
from audex.server.api.errors import INVALID_JSON, api_error, extraction_error

logger = logging.getLogger(__name__)


async def api_extract_audio_handler(request: web.Request) -> web.StreamResponse:
    """Handle POST /api/extract-audio requests.

    Args:
        request: aiohttp Request with a JSON body
            ``{videoUrl, format?, startTime?, endTime?}``.

    Returns:
        Streamed audio on success, JSON error response otherwise.
    """
    try:
        payload = await request.json()
    except ValueError:
        return api_error("Invalid JSON body", code=INVALID_JSON)

    try:
        extraction_request = validate_request(payload)
    except ValidationError as e:
        logger.info("Rejected extraction request (%s): %s", e.code, e.message)
        return extraction_error(e)

    pipeline: ExtractionPipeline = request.app["pipeline"]
    try:
        artifact = await pipeline.run(extraction_request)
    except ExtractionError as e:
        return extraction_error(e)

    with run_context(artifact.id):
        try:
            return await stream_artifact(request, artifact)
        finally:
            artifact.discard()


async def stream_artifact(
    request: web.Request, artifact: TempArtifact
) -> web.StreamResponse:
    """Send the artifact as the response body in fixed-size chunks.

    Failures before headers are sent become a JSON 500. Failures after that
    are logged and the connection is closed, so the client sees a truncated
    body rather than waiting for bytes that never come.
    """
    try:
        fh, size = open_artifact(artifact)
    except StreamError as e:
        logger.error("Cannot stream artifact: %s", e.detail)
        return extraction_error(e)

    with fh:
        response = web.StreamResponse(
            status=200,
            headers={
                "Content-Type": artifact.format.content_type,
                "Content-Disposition": (
                    f'attachment; filename="extracted_audio.{artifact.format.extension}"'
                ),
            },
        )
        response.content_length = size
        await response.prepare(request)

        sent = 0
        try:
            async for chunk in iter_chunks(fh):
                await response.write(chunk)
                sent += len(chunk)
            await response.write_eof()
        except OSError as e:
            logger.warning(
                "Streaming aborted after %d of %d bytes: %s", sent, size, e
            )
            # Content-Length is already on the wire; dropping the connection
            # is the only way to tell the client the body is incomplete
            if request.transport is not None:
                request.transport.close()
            return response

    logger.info("Streamed %d bytes", sent)
    return response


def get_extract_routes() -> list[tuple[str, str, object]]:
    """Return extraction route definitions as (method, path_suffix, handler)."""
    return [
        ("POST", "/extract-audio", api_extract_audio_handler),
    ]
