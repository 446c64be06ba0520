"""Metadata stage -- tag the artifact with author, title, year and description.

Bibliographic fields come from the source directory's name, matched against
NAME_PATTERNS in priority order (first match wins):

    "Author Name - Book Title (1939)"   author, title, year
    "Author Name _ Book Title [1939]"  author, title, year
    "Book Title (1939)"                title, year
    "Author Name - Book Title"         author, title

A description is read from the first .txt, .info or .md file in the source.
Nothing found is a normal outcome; only a failing embed aborts the run.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from ..errors import ExternalToolError, MetadataEmbedError
from ..models import DESCRIPTION_EXTENSIONS, BookMetadata, path_sort_key

if TYPE_CHECKING:
    from ..models import BuildContext

log = logger.bind(stage="metadata")


@dataclass(frozen=True)
class NamePattern:
    """A directory-name pattern with named groups author/title/year."""

    name: str
    regex: re.Pattern[str]

    def match(self, dir_name: str) -> BookMetadata | None:
        m = self.regex.match(dir_name)
        if m is None:
            return None
        groups = m.groupdict()
        return BookMetadata(
            author=groups.get("author"),
            title=groups.get("title"),
            year=groups.get("year"),
        )


# Separator: hyphen or underscore surrounded by spaces. Author is greedy,
# so the last separator splits author from title.
_SEP = r" [-_] "

NAME_PATTERNS: tuple[NamePattern, ...] = (
    NamePattern(
        "author-title-year",
        re.compile(rf"^(?P<author>.+){_SEP}(?P<title>.+) \((?P<year>\d{{4}})\)$"),
    ),
    NamePattern(
        "author-title-year-brackets",
        re.compile(rf"^(?P<author>.+){_SEP}(?P<title>.+) \[(?P<year>\d{{4}})\]$"),
    ),
    NamePattern(
        "title-year",
        re.compile(r"^(?P<title>.+) \((?P<year>\d{4})\)$"),
    ),
    NamePattern(
        "title-year-brackets",
        re.compile(r"^(?P<title>.+) \[(?P<year>\d{4})\]$"),
    ),
    NamePattern(
        "author-title",
        re.compile(rf"^(?P<author>.+){_SEP}(?P<title>.+)$"),
    ),
)


def parse_directory_name(dir_name: str) -> BookMetadata | None:
    """Return the first NAME_PATTERNS match for dir_name, or None."""
    for pattern in NAME_PATTERNS:
        result = pattern.match(dir_name)
        if result is not None:
            log.debug(f"Directory name matched pattern '{pattern.name}'")
            return result
    return None


def find_description_file(source_dir: Path) -> Path | None:
    """First description file by extension preference, then byte-wise path."""
    candidates = [f for f in source_dir.rglob("*") if f.is_file()]
    for ext in DESCRIPTION_EXTENSIONS:
        matches = [f for f in candidates if f.suffix.lower() == ext]
        if matches:
            return min(matches, key=path_sort_key)
    return None


def read_description(source_dir: Path) -> str | None:
    """Read and trim the description file, or None if there is none or it is blank."""
    path = find_description_file(source_dir)
    if path is None:
        log.info("No description file")
        return None
    text = path.read_text(encoding="utf-8", errors="replace").strip()
    if not text:
        log.info(f"Description file is empty: {path.name}")
        return None
    log.info(f"Using description from '{path.name}'")
    return text


def extract_metadata(source_dir: Path) -> BookMetadata:
    """Combine directory-name fields and the description into BookMetadata."""
    parsed = parse_directory_name(source_dir.name)
    if parsed is None:
        log.info("No matching pattern for directory name")
        parsed = BookMetadata()
    description = read_description(source_dir)
    return BookMetadata(
        author=parsed.author,
        title=parsed.title,
        year=parsed.year,
        description=description,
    )


def run(ctx: BuildContext) -> None:
    """Extract BookMetadata for ctx.source_dir and embed it into ctx.artifact."""
    if ctx.artifact is None:
        raise MetadataEmbedError("No artifact to tag")

    metadata = extract_metadata(ctx.source_dir)
    ctx.metadata = metadata
    tags = metadata.tags(ctx.config.genre)

    if not tags:
        log.warning("Skipped metadata extraction")
        return

    if metadata.title:
        log.info(f"Author: {metadata.author or ''}")
        log.info(f"Title: {metadata.title}")
        log.info(f"Date: {metadata.year or ''}")

    try:
        ctx.toolkit.embed_tags(ctx.artifact, tags)
    except (ExternalToolError, OSError) as e:
        log.error(f"Failed to embed metadata: {e}")
        raise MetadataEmbedError(f"Failed to embed metadata: {e}") from e

    ctx.embedded_tags = tags
    log.info(f"Metadata successfully embedded ({', '.join(tags)})")
