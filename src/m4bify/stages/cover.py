"""Cover stage -- pick artwork by priority and embed it.

Rules are tried in order and the first one returning an image wins:
1. the first image file (byte-wise path order) anywhere under the source
2. embedded art of the first audio file that has any, extracted as a frame
No cover is a normal outcome; a failing embed is not.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from ..errors import CoverEmbedError, ExternalToolError
from ..models import (
    COVER_CODEC_EXTENSIONS,
    FALLBACK_COVER_EXTENSION,
    IMAGE_EXTENSIONS,
    path_sort_key,
)
from .discover import find_audio_files

if TYPE_CHECKING:
    from ..models import BuildContext

log = logger.bind(stage="cover")


def cover_extension(codec: str) -> str:
    """Extension for an extracted frame of the given image codec."""
    return COVER_CODEC_EXTENSIONS.get(codec.lower(), FALLBACK_COVER_EXTENSION)


def find_image_file(ctx: BuildContext) -> Path | None:
    images = [
        f
        for f in ctx.source_dir.rglob("*")
        if f.is_file() and f.suffix.lower() in IMAGE_EXTENSIONS
    ]
    if not images:
        log.info("No cover image file")
        return None
    cover = min(images, key=path_sort_key)
    log.info(f"Using cover image '{cover}'")
    return cover


def extract_embedded_art(ctx: BuildContext) -> Path | None:
    for asset in find_audio_files(ctx.source_dir):
        codec = ctx.toolkit.probe_stream_codec(asset.path, "v:0")
        if not codec:
            continue
        log.info(f"Using embedded art from '{asset.path}' [{codec}]")
        output = ctx.scratch_dir / f"cover.{cover_extension(codec)}"
        try:
            ctx.toolkit.extract_cover(asset.path, output)
        except ExternalToolError as e:
            log.warning(f"Failed to extract embedded cover from {asset.path.name}: {e}")
            continue
        if output.is_file():
            return output
        log.warning(f"No cover written for {asset.path.name}")
    log.info("No supported embedded cover art")
    return None


COVER_RULES: tuple[Callable[[BuildContext], Path | None], ...] = (
    find_image_file,
    extract_embedded_art,
)


def resolve_cover(ctx: BuildContext) -> Path | None:
    """Evaluate COVER_RULES in order and return the first cover found."""
    for rule in COVER_RULES:
        cover = rule(ctx)
        if cover is not None:
            return cover
    return None


def run(ctx: BuildContext) -> None:
    """Resolve a cover and embed it into ctx.artifact (skip if none)."""
    if ctx.artifact is None:
        raise CoverEmbedError("No artifact to add a cover to")

    cover = resolve_cover(ctx)
    if cover is None:
        log.warning("Skipped cover art addition")
        return

    try:
        ctx.toolkit.embed_cover(ctx.artifact, cover)
    except (ExternalToolError, OSError) as e:
        log.error(f"Error during cover art addition: {e}")
        raise CoverEmbedError(f"Failed to embed cover {cover.name}: {e}") from e

    ctx.cover = cover
    log.info("Successfully added cover art")
