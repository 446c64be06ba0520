"""Concat stage -- merge encoded segments into the build artifact.

Segments are joined by the ffmpeg concat demuxer with stream copy, in
exactly the order of the timeline's manifest. A stream copy only works when
every segment has the same codec parameters, so those are checked first.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from ..errors import ConcatError, ExternalToolError

if TYPE_CHECKING:
    from pathlib import Path

    from ..models import BuildContext
    from ..toolkit import AudioToolkit

log = logger.bind(stage="concat")

ARTIFACT_NAME = "final.m4a"


def check_codec_params(toolkit: AudioToolkit, segments: list[Path]) -> tuple[str, int, int]:
    """Verify all segments share (codec, sample_rate, channels).

    Returns the shared parameters. Raises ConcatError on a mismatch.
    """
    expected: tuple[str, int, int] | None = None
    for segment in segments:
        try:
            params = toolkit.probe_audio_params(segment)
        except ExternalToolError as e:
            raise ConcatError(f"Could not probe segment {segment.name}: {e}") from e
        if expected is None:
            expected = params
        elif params != expected:
            raise ConcatError(
                f"Segment {segment.name} has codec parameters {params}, "
                f"expected {expected}"
            )
    if expected is None:
        raise ConcatError("No segments to concatenate")
    return expected


def run(ctx: BuildContext) -> None:
    """Stream-copy the manifest's segments into ctx.scratch_dir/final.m4a."""
    if ctx.timeline is None or not ctx.timeline.manifest:
        raise ConcatError("No segments to concatenate")

    manifest = list(ctx.timeline.manifest)
    codec, sample_rate, channels = check_codec_params(ctx.toolkit, manifest)
    log.debug(f"Segment parameters: {codec} {sample_rate}Hz {channels}ch")

    artifact = ctx.scratch_dir / ARTIFACT_NAME
    log.info(f"Combining {len(manifest)} segments...")
    try:
        ctx.toolkit.concat(manifest, artifact)
    except ExternalToolError as e:
        log.error(f"Concatenation failed: {e.stderr[-500:]}")
        raise ConcatError(f"Failed to concatenate segments: {e}") from e

    if not artifact.is_file() or artifact.stat().st_size == 0:
        raise ConcatError(f"Concatenation produced no output: {artifact}")

    ctx.artifact = artifact
    size_mb = artifact.stat().st_size // (1024 * 1024)
    log.info(f"Combined all segments ({size_mb} MB)")
