"""Encode stage -- transcode each planned asset into a scratch segment.

Assets are encoded one at a time in plan traversal order. The first failure
aborts the run: later stages assume every planned segment exists.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from ..errors import EncodeError, ExternalToolError
from ..models import EncodedSegment

if TYPE_CHECKING:
    from ..models import BuildContext

log = logger.bind(stage="encode")


def run(ctx: BuildContext) -> None:
    """Encode every asset of ctx.plan at ctx.quality into ctx.scratch_dir."""
    if ctx.plan is None:
        raise EncodeError("No chapter plan to encode")

    segments: list[EncodedSegment] = []
    total = len(ctx.plan.assets)
    position = 0

    for chapter_index, chapter in enumerate(ctx.plan.chapters, start=1):
        for n, asset in enumerate(chapter.assets, start=1):
            position += 1
            output = ctx.scratch_dir / f"audio_{chapter_index:04d}_{n:04d}.m4a"
            log.info(f"Encoding [{position}/{total}] '{asset.path.name}' [{ctx.quality}]")
            try:
                duration = ctx.toolkit.encode(asset.path, output, ctx.quality)
            except ExternalToolError as e:
                log.error(f"Failed to encode {asset.path}: {e.stderr[-500:]}")
                raise EncodeError(f"Failed to encode {asset.path.name}: {e}") from e
            if not output.is_file():
                raise EncodeError(f"Encoder produced no output for {asset.path.name}")
            segments.append(
                EncodedSegment(
                    asset=asset,
                    path=output,
                    duration=duration,
                    chapter_index=chapter_index,
                )
            )
            log.debug(f"Encoded {asset.path.name} -> {output.name} ({duration}s)")

    ctx.segments = segments
    log.info(f"Encoded {len(segments)} segments")
