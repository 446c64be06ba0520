"""Chapters stage -- embed the timeline's chapter markers into the artifact.

Chapters are a required feature: any failure here aborts the run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from ..errors import ChapterTagError, ExternalToolError

if TYPE_CHECKING:
    from ..models import BuildContext

log = logger.bind(stage="chapters")


def run(ctx: BuildContext) -> None:
    """Write ctx.timeline's entries into ctx.artifact and verify the count."""
    if ctx.artifact is None or ctx.timeline is None:
        raise ChapterTagError("No artifact or timeline to tag")

    entries = list(ctx.timeline.entries)
    log.info(f"Adding {len(entries)} chapters...")
    try:
        ctx.toolkit.embed_chapters(ctx.artifact, entries)
    except (ExternalToolError, OSError) as e:
        log.error(f"Error adding chapters: {e}")
        raise ChapterTagError(f"Failed to add chapters: {e}") from e

    actual = ctx.toolkit.count_chapters(ctx.artifact)
    if actual != len(entries):
        raise ChapterTagError(
            f"Chapter count mismatch: expected {len(entries)}, got {actual}"
        )
    log.info("Chapters successfully added")
