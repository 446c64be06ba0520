"""FFmpeg subprocess wrappers: encode, concat, and in-place remux edits.

Every edit of an existing container writes to a temp file next to it and
atomically replaces the original, so a failed call never leaves a truncated
file behind. Failures raise ExternalToolError.
"""

from __future__ import annotations

import subprocess
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

from loguru import logger

from .errors import ExternalToolError

log = logger.bind(stage="ffmpeg")

FFMPEG = "ffmpeg"

# Image codecs an MP4 container can carry as attached_pic without re-encoding
_COPYABLE_IMAGE_SUFFIXES = frozenset({".jpg", ".jpeg", ".png"})


def _run_ffmpeg(args: list[str], ffmpeg_bin: str = FFMPEG) -> subprocess.CompletedProcess:
    """Run ffmpeg non-interactively, raising ExternalToolError on failure."""
    cmd = [ffmpeg_bin, "-hide_banner", "-nostdin", "-y"] + args
    log.debug(f"ffmpeg command: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise ExternalToolError(tool=ffmpeg_bin, exit_code=127, stderr=str(e)) from e
    if result.returncode != 0:
        raise ExternalToolError(
            tool=ffmpeg_bin,
            exit_code=result.returncode,
            stderr=result.stderr[-500:],
        )
    return result


def _remux_in_place(
    filepath: Path,
    args: list[str],
    ffmpeg_bin: str = FFMPEG,
) -> None:
    """Run `ffmpeg <args> <tmp>` and atomically replace filepath with tmp."""
    temp_file = filepath.with_name(filepath.name + ".tmp")
    # Force ipod/m4b format -- ffmpeg can't guess from the .tmp extension
    try:
        _run_ffmpeg(args + ["-f", "ipod", str(temp_file)], ffmpeg_bin)
        temp_file.replace(filepath)
    finally:
        temp_file.unlink(missing_ok=True)


def encode(
    input_file: Path,
    output_file: Path,
    codec_args: list[str],
    sample_rate: int | None = None,
    channels: int | None = None,
    ffmpeg_bin: str = FFMPEG,
) -> None:
    """Transcode one source file to an audio-only segment.

    Video (embedded art), subtitle and data streams are dropped. sample_rate
    and channels resample/remix when given; None keeps the source's own.
    """
    args = [
        "-i", str(input_file),
        "-map", "0:a:0",
        "-vn", "-sn", "-dn",
        *codec_args,
    ]
    if sample_rate is not None:
        args.extend(["-ar", str(sample_rate)])
    if channels is not None:
        args.extend(["-ac", str(channels)])
    args.append(str(output_file))
    _run_ffmpeg(args, ffmpeg_bin)


def escape_concat_path(path: Path) -> str:
    """Quote a path for the ffmpeg concat demuxer."""
    escaped = str(path).replace("'", "'\\''")
    return f"file '{escaped}'"


def write_concat_list(paths: list[Path], list_file: Path) -> None:
    list_file.write_text("\n".join(escape_concat_path(p) for p in paths) + "\n")


def concat(list_file: Path, output_file: Path, ffmpeg_bin: str = FFMPEG) -> None:
    """Merge the segments listed in list_file by stream copy (no re-encode)."""
    _run_ffmpeg(
        [
            "-f", "concat",
            "-safe", "0",
            "-i", str(list_file),
            "-map", "0:a",
            "-c", "copy",
            "-movflags", "+faststart",
            str(output_file),
        ],
        ffmpeg_bin,
    )


def _escape_ffmetadata(value: str) -> str:
    """Escape the characters FFMETADATA1 treats specially."""
    for ch in ("\\", "=", ";", "#"):
        value = value.replace(ch, "\\" + ch)
    return value.replace("\n", "\\\n")


def _to_ms(seconds: Decimal) -> int:
    return int((seconds * 1000).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def render_ffmetadata(
    chapters: list[tuple[Decimal, str]],
    total_duration: Decimal,
) -> str:
    """Render (start, name) pairs as an FFMETADATA1 chapter file.

    Each chapter ends where the next begins; the last ends at total_duration.
    """
    lines = [";FFMETADATA1", ""]
    ends = [start for start, _ in chapters[1:]] + [total_duration]
    for (start, name), end in zip(chapters, ends):
        start_ms = _to_ms(start)
        end_ms = max(_to_ms(end), start_ms)
        lines.extend(
            [
                "[CHAPTER]",
                "TIMEBASE=1/1000",
                f"START={start_ms}",
                f"END={end_ms}",
                f"title={_escape_ffmetadata(name)}",
                "",
            ]
        )
    return "\n".join(lines)


def write_chapters(filepath: Path, metadata_file: Path, ffmpeg_bin: str = FFMPEG) -> None:
    """Replace the chapter list of filepath with the one in metadata_file."""
    _remux_in_place(
        filepath,
        [
            "-i", str(filepath),
            "-i", str(metadata_file),
            "-map", "0:a",
            "-map", "0:v?",
            "-map_metadata", "0",
            "-map_chapters", "1",
            "-c", "copy",
        ],
        ffmpeg_bin,
    )


def extract_cover(input_file: Path, output_file: Path, ffmpeg_bin: str = FFMPEG) -> None:
    """Copy the first embedded picture of input_file out as a still image."""
    _run_ffmpeg(
        [
            "-i", str(input_file),
            "-an",
            "-map", "0:v:0",
            "-c:v", "copy",
            "-frames:v", "1",
            str(output_file),
        ],
        ffmpeg_bin,
    )


def attach_cover(filepath: Path, image: Path, ffmpeg_bin: str = FFMPEG) -> None:
    """Embed image as the attached picture, preserving audio and chapters.

    JPEG/PNG are copied as-is; other formats are re-encoded to MJPEG.
    """
    image_codec = "copy" if image.suffix.lower() in _COPYABLE_IMAGE_SUFFIXES else "mjpeg"
    _remux_in_place(
        filepath,
        [
            "-i", str(filepath),
            "-i", str(image),
            "-map", "0:a",
            "-map", "1:v:0",
            "-map_chapters", "0",
            "-c:a", "copy",
            "-c:v", image_codec,
            "-disposition:v:0", "attached_pic",
        ],
        ffmpeg_bin,
    )


def write_tags(filepath: Path, tags: dict[str, str], ffmpeg_bin: str = FFMPEG) -> None:
    """Write metadata tags without re-encoding, preserving chapters and art."""
    args = [
        "-i", str(filepath),
        "-map", "0:a",
        "-map", "0:v?",
        "-map_chapters", "0",
        "-c", "copy",
    ]
    for key, value in tags.items():
        args.extend(["-metadata", f"{key}={value}"])
    _remux_in_place(filepath, args, ffmpeg_bin)
