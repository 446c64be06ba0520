"""Timeline stage -- chapter offsets, names, and the concat order manifest."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from ..errors import StageError
from ..models import AudioAsset, ChapterMode, Stage
from ..timeline import build_timeline, format_duration

if TYPE_CHECKING:
    from ..models import BuildContext

log = logger.bind(stage="timeline")


def run(ctx: BuildContext) -> None:
    """Build the Timeline from ctx.plan and the encoded segments."""
    if ctx.plan is None:
        raise StageError("Timeline requires a chapter plan", stage=Stage.TIMELINE)

    def title_for(asset: AudioAsset) -> str | None:
        return ctx.toolkit.probe_title(asset.path)

    try:
        ctx.timeline = build_timeline(
            ctx.plan,
            ctx.segments,
            title_for=title_for if ctx.plan.mode == ChapterMode.FILE else (lambda asset: None),
        )
    except ValueError as e:
        raise StageError(str(e), stage=Stage.TIMELINE) from e

    for entry in ctx.timeline.entries:
        log.info(f"Chapter {entry.index}: '{entry.name}' @ {entry.timestamp}")
    log.info(
        f"{len(ctx.timeline.entries)} chapters, "
        f"{format_duration(ctx.timeline.total_duration)}"
    )
