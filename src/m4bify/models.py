"""Core enums, constants, and data types for the m4bify pipeline.

Enums:
    ChapterMode  -- How source audio is partitioned into chapters (file, directory).
    QualityKind  -- Encoding quality family (fixed bitrate, variable, lossless).
    Stage        -- Individual pipeline stage (discover through publish).

Dataclasses describe the per-run data model: discovered assets, the chapter
plan, encoded segments, the chapter timeline, bibliographic metadata, and
the mutable BuildContext handed from stage to stage.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import PipelineConfig
    from .toolkit import AudioToolkit


class ChapterMode(StrEnum):
    FILE = "file"
    DIRECTORY = "directory"


class QualityKind(StrEnum):
    FIXED = "fixed"
    VARIABLE = "variable"
    LOSSLESS = "lossless"


class Stage(StrEnum):
    DISCOVER = "discover"
    ENCODE = "encode"
    TIMELINE = "timeline"
    CONCAT = "concat"
    CHAPTERS = "chapters"
    COVER = "cover"
    METADATA = "metadata"
    PUBLISH = "publish"


STAGE_ORDER: list[Stage] = [
    Stage.DISCOVER,
    Stage.ENCODE,
    Stage.TIMELINE,
    Stage.CONCAT,
    Stage.CHAPTERS,
    Stage.COVER,
    Stage.METADATA,
    Stage.PUBLISH,
]

AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".mp3",
        ".wav",
        ".flac",
        ".aac",
        ".ogg",
        ".m4a",
        ".wma",
    }
)

IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".jpg",
        ".jpeg",
        ".png",
        ".webp",
        ".bmp",
        ".tiff",
        ".heic",
        ".heif",
    }
)

# Checked in this order; the first extension with a match wins
DESCRIPTION_EXTENSIONS: tuple[str, ...] = (".txt", ".info", ".md")

# Embedded art codec -> extension of the extracted still frame
COVER_CODEC_EXTENSIONS: dict[str, str] = {
    "mjpeg": "jpg",
    "jpeg": "jpg",
    "png": "png",
    "bmp": "bmp",
    "gif": "gif",
    "tiff": "tiff",
    "webp": "webp",
    "heif": "heic",
    "heic": "heic",
}
FALLBACK_COVER_EXTENSION = "img"


def path_sort_key(path: Path) -> bytes:
    """Byte-wise, locale-independent ordering key for a path."""
    return os.fsencode(str(path))


@dataclass(frozen=True)
class AudioAsset:
    """A discovered source audio file."""

    path: Path


@dataclass(frozen=True)
class PlannedChapter:
    """One chapter of the plan: a single file, or a whole subdirectory."""

    source: Path
    assets: tuple[AudioAsset, ...]
    name: str | None = None


@dataclass(frozen=True)
class ChapterPlan:
    mode: ChapterMode
    chapters: tuple[PlannedChapter, ...]

    @property
    def assets(self) -> list[AudioAsset]:
        """All assets in traversal order (chapters in order, files within)."""
        return [asset for chapter in self.chapters for asset in chapter.assets]


@dataclass(frozen=True)
class Quality:
    """Encoding quality for a whole run.

    `bitrate` is only meaningful for QualityKind.FIXED (e.g. "96k").
    """

    kind: QualityKind
    bitrate: str | None = None

    def __str__(self) -> str:
        if self.kind == QualityKind.FIXED:
            return f"cbr {self.bitrate}"
        if self.kind == QualityKind.VARIABLE:
            return "vbr"
        return "lossless"


@dataclass(frozen=True)
class EncodedSegment:
    asset: AudioAsset
    path: Path
    duration: Decimal
    chapter_index: int


@dataclass(frozen=True)
class ChapterEntry:
    index: int
    name: str
    start: Decimal

    @property
    def timestamp(self) -> str:
        from .timeline import format_timestamp

        return format_timestamp(self.start)


@dataclass(frozen=True)
class Timeline:
    entries: tuple[ChapterEntry, ...]
    manifest: tuple[Path, ...]
    durations: tuple[Decimal, ...]

    @property
    def total_duration(self) -> Decimal:
        return sum(self.durations, Decimal(0))


@dataclass(frozen=True)
class BookMetadata:
    """Bibliographic fields parsed from the directory name and description."""

    author: str | None = None
    title: str | None = None
    year: str | None = None
    description: str | None = None

    def tags(self, genre: str) -> dict[str, str]:
        """Build the tag set to embed. Absent fields are omitted."""
        tags: dict[str, str] = {}
        if self.title:
            tags["title"] = self.title
            tags["album"] = self.title
            if self.author:
                tags["artist"] = self.author
                tags["album_artist"] = self.author
            if self.year:
                tags["date"] = self.year
            tags["genre"] = genre
        if self.description:
            tags["description"] = self.description
        return tags


@dataclass
class BuildContext:
    """Per-run state handed from stage to stage.

    Private to one pipeline run; never shared between concurrent runs.
    """

    source_dir: Path
    chapter_mode: ChapterMode
    quality: Quality
    config: PipelineConfig
    toolkit: AudioToolkit
    scratch_dir: Path
    plan: ChapterPlan | None = None
    segments: list[EncodedSegment] = field(default_factory=list)
    timeline: Timeline | None = None
    artifact: Path | None = None
    cover: Path | None = None
    metadata: BookMetadata | None = None
    embedded_tags: dict[str, str] = field(default_factory=dict)
    output_path: Path | None = None

    @property
    def default_output_path(self) -> Path:
        """<parent of source>/<source name>.<audiobook extension>"""
        ext = self.config.audiobook_extension.lstrip(".")
        return self.source_dir.parent / f"{self.source_dir.name}.{ext}"


@dataclass
class BuildResult:
    """Outcome of a successful pipeline run."""

    output_path: Path
    chapters: tuple[ChapterEntry, ...]
    total_duration: Decimal
    size_bytes: int
    cover: Path | None = None
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class BatchResult:
    """Result summary from a batch run."""

    completed: int = 0
    failed: int = 0
    total: int = 0
    succeeded_dirs: list[Path] = field(default_factory=list)
    failed_dirs: list[Path] = field(default_factory=list)
    elapsed: float = 0.0
