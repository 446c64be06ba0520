"""Quality setting parsing and encoder argument lookup.

The quality chosen for a run applies to every segment, so all segments
share one codec configuration and can be concatenated by stream copy.
"""

from __future__ import annotations

import functools
import re
import subprocess

from loguru import logger

from .models import Quality, QualityKind

log = logger.bind(stage="quality")

LIBFDK_ENCODER = "libfdk_aac"
NATIVE_ENCODER = "aac"
LOSSLESS_ENCODER = "alac"

# libfdk_aac VBR profiles: 1 (~32-64k) .. 5 (~128-256k); 4 = very high
DEFAULT_LIBFDK_VBR_PROFILE = 4
# native aac -q:a profiles: 0 (highest) .. 9 (lowest); 1 = very high
DEFAULT_AAC_VBR_PROFILE = 1

_BITRATE_RE = re.compile(r"^\d+(\.\d+)?[kKmM]?$")


def parse_quality(value: str) -> Quality:
    """Parse a user quality value: "vbr", "lossless", or a bitrate like "96k".

    Raises ValueError for anything else.
    """
    text = value.strip()
    lowered = text.lower()
    if lowered in ("", "vbr"):
        return Quality(QualityKind.VARIABLE)
    if lowered in ("lossless", "alac"):
        return Quality(QualityKind.LOSSLESS)
    if _BITRATE_RE.match(text):
        return Quality(QualityKind.FIXED, bitrate=lowered)
    raise ValueError(
        f"Invalid bitrate {value!r}: expected 'vbr', 'lossless', or a value like '96k'"
    )


@functools.cache
def detect_encoder(ffmpeg_bin: str = "ffmpeg") -> str:
    """Check if libfdk_aac is available, fall back to the native aac encoder."""
    try:
        result = subprocess.run(
            [ffmpeg_bin, "-hide_banner", "-encoders"],
            capture_output=True,
            text=True,
        )
    except OSError as e:
        log.warning(f"Could not query ffmpeg encoders: {e}")
        return NATIVE_ENCODER
    if LIBFDK_ENCODER in result.stdout:
        log.info("Using libfdk_aac encoder")
        return LIBFDK_ENCODER
    log.info("Using native aac encoder")
    return NATIVE_ENCODER


def encoder_args(
    quality: Quality,
    encoder: str,
    aac_vbr_profile: int = DEFAULT_AAC_VBR_PROFILE,
    libfdk_vbr_profile: int = DEFAULT_LIBFDK_VBR_PROFILE,
) -> list[str]:
    """Map a quality setting to ffmpeg codec arguments.

    Pure function: same inputs, same arguments.
        FIXED    -> -c:a <encoder> -b:a <bitrate>
        VARIABLE -> -c:a libfdk_aac -vbr <profile> | -c:a aac -q:a <profile>
        LOSSLESS -> -c:a alac
    """
    if quality.kind == QualityKind.LOSSLESS:
        return ["-c:a", LOSSLESS_ENCODER]

    if quality.kind == QualityKind.FIXED:
        if not quality.bitrate:
            raise ValueError("Fixed-bitrate quality requires a bitrate")
        return ["-c:a", encoder, "-b:a", quality.bitrate]

    if encoder == LIBFDK_ENCODER:
        return ["-c:a", encoder, "-vbr", str(libfdk_vbr_profile)]
    return ["-c:a", encoder, "-q:a", str(aac_vbr_profile)]
