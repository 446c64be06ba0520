"""Timeline builder -- cumulative chapter offsets and chapter names.

Offsets are exact Decimal seconds: each chapter starts at the sum of the
durations of every chapter before it, the first at zero.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from decimal import ROUND_HALF_UP, Decimal

from .models import (
    AudioAsset,
    ChapterEntry,
    ChapterPlan,
    EncodedSegment,
    PlannedChapter,
    Timeline,
)
from .sanitize import chapter_name_from_file


def format_timestamp(seconds: Decimal | float | int) -> str:
    """Format seconds as HH:MM:SS.mmm.

    Hours are not wrapped at 24: 90000 seconds -> "25:00:00.000".
    """
    total_ms = int(
        (Decimal(str(seconds)) * 1000).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    )
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, ms = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{ms:03d}"


def format_duration(seconds: Decimal | float | int) -> str:
    """Summary form of a length, e.g. "26 hours 03 minutes"."""
    total = int(Decimal(str(seconds)))
    return f"{total // 3600:02d} hours {total % 3600 // 60:02d} minutes"


def chapter_name(
    chapter: PlannedChapter,
    index: int,
    title_for: Callable[[AudioAsset], str | None],
) -> str:
    """Display name of a chapter.

    Directory chapters use the subdirectory name verbatim. File chapters use
    the asset's embedded title tag, else the cleaned filename.
    """
    if chapter.name is not None:
        return chapter.name
    name = ""
    if chapter.assets:
        asset = chapter.assets[0]
        name = title_for(asset) or chapter_name_from_file(asset.path)
    return name or f"Chapter {index}"


def build_timeline(
    plan: ChapterPlan,
    segments: Sequence[EncodedSegment],
    title_for: Callable[[AudioAsset], str | None] = lambda asset: None,
) -> Timeline:
    """Accumulate segment durations into chapter entries and the order manifest.

    The manifest follows plan traversal order. Raises ValueError when a
    planned asset has no encoded segment.
    """
    by_asset = {segment.asset: segment for segment in segments}

    entries: list[ChapterEntry] = []
    manifest = []
    durations: list[Decimal] = []
    counter = Decimal(0)

    for index, chapter in enumerate(plan.chapters, start=1):
        chapter_total = Decimal(0)
        for asset in chapter.assets:
            segment = by_asset.get(asset)
            if segment is None:
                raise ValueError(f"No encoded segment for {asset.path}")
            manifest.append(segment.path)
            chapter_total += Decimal(str(segment.duration))

        name = chapter_name(chapter, index, title_for)
        entries.append(ChapterEntry(index=index, name=name, start=counter))
        durations.append(chapter_total)
        counter += chapter_total

    return Timeline(
        entries=tuple(entries),
        manifest=tuple(manifest),
        durations=tuple(durations),
    )
