"""Discover stage -- find source audio and partition it into chapters."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from ..errors import EmptyInputError
from ..models import (
    AUDIO_EXTENSIONS,
    AudioAsset,
    ChapterMode,
    ChapterPlan,
    PlannedChapter,
    path_sort_key,
)

if TYPE_CHECKING:
    from ..models import BuildContext

log = logger.bind(stage="discover")


def find_audio_files(root: Path) -> list[AudioAsset]:
    """All audio files under root, recursively, in byte-wise path order.

    The order does not depend on what order the filesystem returns entries in.
    """
    files = [
        f
        for f in root.rglob("*")
        if f.is_file() and f.suffix.lower() in AUDIO_EXTENSIONS
    ]
    files.sort(key=path_sort_key)
    return [AudioAsset(f) for f in files]


def find_chapter_dirs(root: Path) -> list[Path]:
    """Immediate, non-hidden subdirectories of root ordered by name."""
    dirs = [d for d in root.iterdir() if d.is_dir() and not d.name.startswith(".")]
    dirs.sort(key=lambda d: path_sort_key(Path(d.name)))
    return dirs


def build_plan(source_dir: Path, mode: ChapterMode) -> ChapterPlan:
    """Build the chapter plan for a source directory.

    File mode: one chapter per audio file found anywhere under source_dir.
    Directory mode: one chapter per immediate subdirectory; audio files
    directly in source_dir belong to no chapter and are left out.
    """
    if mode == ChapterMode.FILE:
        assets = find_audio_files(source_dir)
        if not assets:
            raise EmptyInputError(f"No audio files found in {source_dir}")
        chapters = tuple(PlannedChapter(source=a.path, assets=(a,)) for a in assets)
        return ChapterPlan(mode=mode, chapters=chapters)

    chapter_dirs = find_chapter_dirs(source_dir)
    if not chapter_dirs:
        raise EmptyInputError(f"No chapter directories found in {source_dir}")

    chapters = tuple(
        PlannedChapter(source=d, assets=tuple(find_audio_files(d)), name=d.name)
        for d in chapter_dirs
    )
    for chapter in chapters:
        if not chapter.assets:
            log.warning(f"Chapter directory has no audio files: {chapter.source.name}")

    loose = [
        f for f in source_dir.iterdir()
        if f.is_file() and f.suffix.lower() in AUDIO_EXTENSIONS
    ]
    if loose:
        log.info(f"Ignoring {len(loose)} audio file(s) outside chapter directories")

    plan = ChapterPlan(mode=mode, chapters=chapters)
    if not plan.assets:
        raise EmptyInputError(f"No audio files found in chapter directories of {source_dir}")
    return plan


def run(ctx: BuildContext) -> None:
    """Discover source audio and store the ChapterPlan on the context."""
    if not ctx.source_dir.is_dir():
        raise EmptyInputError(f"Source path is not a directory: {ctx.source_dir}")

    plan = build_plan(ctx.source_dir, ctx.chapter_mode)
    ctx.plan = plan
    log.info(
        f"Found {len(plan.assets)} audio files in {len(plan.chapters)} chapters "
        f"({plan.mode} mode)"
    )
