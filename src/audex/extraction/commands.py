"""Command-line construction for the downloader and transcoder."""

from __future__ import annotations

from pathlib import Path

from audex.extraction.models import AudioFormat, ExtractionRequest

# Fixed encoder settings per target format
_CODEC_ARGS: dict[AudioFormat, list[str]] = {
    AudioFormat.MP3: ["-acodec", "libmp3lame", "-ab", "320k", "-f", "mp3"],
    # Mono 16-bit PCM at 44.1 kHz
    AudioFormat.WAV: [
        "-acodec",
        "pcm_s16le",
        "-ar",
        "44100",
        "-ac",
        "1",
        "-f",
        "wav",
    ],
}


def build_downloader_command(executable: str, request: ExtractionRequest) -> list[str]:
    """Build the yt-dlp command that writes the best audio stream to stdout.

    Args:
        executable: Resolved yt-dlp path or name.
        request: Validated request.

    Returns:
        Argument list suitable for exec.
    """
    return [
        executable,
        "-f",
        "bestaudio",
        "-o",
        "-",
        "--no-warnings",
        "--no-playlist",
        request.source_url,
    ]


def build_transcoder_command(
    executable: str, request: ExtractionRequest, output_path: Path
) -> list[str]:
    """Build the ffmpeg command that reads stdin and writes the artifact.

    Only the trim boundaries present in the request are emitted.

    Args:
        executable: Resolved ffmpeg path or name.
        request: Validated request.
        output_path: Artifact path to write.

    Returns:
        Argument list suitable for exec.
    """
    cmd = [executable, "-hide_banner", "-loglevel", "error", "-i", "pipe:0"]

    if request.start_seconds is not None:
        cmd.extend(["-ss", str(request.start_seconds)])
    if request.end_seconds is not None:
        cmd.extend(["-to", str(request.end_seconds)])

    cmd.extend(_CODEC_ARGS[request.format])
    cmd.extend(["-y", str(output_path)])
    return cmd
