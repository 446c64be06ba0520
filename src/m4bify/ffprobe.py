"""FFprobe subprocess wrappers for audio file inspection."""

import json
import subprocess
from decimal import Decimal, InvalidOperation
from pathlib import Path

from loguru import logger

log = logger.bind(stage="ffprobe")

FFPROBE = "ffprobe"


def _run_ffprobe(args: list[str], ffprobe_bin: str = FFPROBE) -> subprocess.CompletedProcess:
    """Run ffprobe with common flags."""
    return subprocess.run(
        [ffprobe_bin, "-v", "error"] + args,
        capture_output=True,
        text=True,
    )


def get_duration(file: Path, ffprobe_bin: str = FFPROBE) -> Decimal:
    """Get duration in seconds.

    Parsed as Decimal from ffprobe's text output so durations sum exactly.
    """
    result = _run_ffprobe([
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(file),
    ], ffprobe_bin)
    output = result.stdout.strip()
    if not output:
        raise ValueError(f"ffprobe returned empty duration for {file}")
    try:
        return Decimal(output)
    except InvalidOperation as e:
        raise ValueError(f"ffprobe returned invalid duration {output!r} for {file}") from e


def get_stream_codec(file: Path, stream: str = "a:0", ffprobe_bin: str = FFPROBE) -> str | None:
    """Get the codec name of one stream ("a:0", "v:0", ...), or None if absent."""
    result = _run_ffprobe([
        "-select_streams", stream,
        "-show_entries", "stream=codec_name",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(file),
    ], ffprobe_bin)
    if result.returncode != 0:
        log.warning(f"ffprobe failed reading stream {stream} of {file.name}: {result.stderr.strip()}")
        return None
    lines = result.stdout.strip().splitlines()
    return lines[0].strip() if lines and lines[0].strip() else None


def get_audio_params(file: Path, ffprobe_bin: str = FFPROBE) -> tuple[str, int, int]:
    """Get (codec_name, sample_rate, channels) of the first audio stream."""
    result = _run_ffprobe([
        "-select_streams", "a:0",
        "-show_entries", "stream=codec_name,sample_rate,channels",
        "-of", "json",
        str(file),
    ], ffprobe_bin)
    if result.returncode != 0:
        raise ValueError(f"ffprobe failed on {file}: {result.stderr.strip()}")
    try:
        streams = json.loads(result.stdout).get("streams", [])
    except json.JSONDecodeError as e:
        raise ValueError(f"ffprobe returned invalid JSON for {file}") from e
    if not streams:
        raise ValueError(f"No audio stream in {file}")
    stream = streams[0]
    return (
        stream.get("codec_name", ""),
        int(stream.get("sample_rate", 0)),
        int(stream.get("channels", 0)),
    )


def get_tags(file: Path, ffprobe_bin: str = FFPROBE) -> dict:
    """Get format-level metadata tags from an audio file.

    Returns dict with lowercase keys. Common keys: artist, album_artist,
    title, album, genre, date, comment.
    """
    result = _run_ffprobe(
        ["-show_entries", "format_tags", "-of", "json", str(file)],
        ffprobe_bin,
    )
    if result.returncode != 0:
        return {}
    try:
        data = json.loads(result.stdout)
        raw = data.get("format", {}).get("tags", {})
        # Normalize keys to lowercase
        return {k.lower(): v for k, v in raw.items()}
    except (json.JSONDecodeError, KeyError, AttributeError):
        return {}


def get_title(file: Path, ffprobe_bin: str = FFPROBE) -> str | None:
    """Get the embedded title tag, or None when missing or blank."""
    title = get_tags(file, ffprobe_bin).get("title", "")
    title = title.strip() if isinstance(title, str) else ""
    return title or None


def count_chapters(file: Path, ffprobe_bin: str = FFPROBE) -> int:
    """Count embedded chapters in an audio file."""
    result = _run_ffprobe(["-show_chapters", "-of", "json", str(file)], ffprobe_bin)
    if result.returncode != 0:
        return 0
    try:
        data = json.loads(result.stdout)
        return len(data.get("chapters", []))
    except (json.JSONDecodeError, KeyError):
        return 0
