"""Pipeline runner -- builds one audiobook from one source directory."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import click
from loguru import logger

from .config import PipelineConfig
from .models import (
    STAGE_ORDER,
    BuildContext,
    BuildResult,
    ChapterMode,
    Quality,
)
from .stages import get_stage_runner
from .timeline import format_duration
from .toolkit import AudioToolkit, FFmpegToolkit
from .workspace import scratch_workspace

log = logger.bind(stage="runner")


class PipelineRunner:
    """Runs every stage of the pipeline, in order, for a source directory.

    Single-threaded: each stage finishes before the next starts. A fatal
    stage error stops the run, the scratch workspace is removed, and the
    error propagates. Nothing touches the output path before publish.
    """

    def __init__(
        self,
        config: PipelineConfig,
        toolkit: AudioToolkit | None = None,
    ) -> None:
        self.config = config
        self.toolkit = toolkit or FFmpegToolkit(config)

    def run(
        self,
        source_dir: Path,
        chapter_mode: ChapterMode | None = None,
        quality: Quality | None = None,
    ) -> BuildResult:
        """Build <parent>/<name>.m4b from source_dir.

        chapter_mode and quality default to the config values.
        Raises a StageError subclass on any fatal failure.
        """
        source = Path(source_dir).resolve()
        mode = chapter_mode or self.config.chapter_mode
        quality = quality or self.config.quality

        log.info(f"Source directory: {source}")
        log.info(f"Mode: {mode}, quality: {quality}")

        with scratch_workspace(self.config.work_dir) as scratch:
            ctx = BuildContext(
                source_dir=source,
                chapter_mode=mode,
                quality=quality,
                config=self.config,
                toolkit=self.toolkit,
                scratch_dir=scratch,
            )
            log.info(f"Output file: {ctx.default_output_path}")

            for stage in STAGE_ORDER:
                stage_runner = get_stage_runner(stage)
                log.debug(f"Running stage: {stage.value}")
                stage_runner(ctx)

        output = ctx.output_path or ctx.default_output_path
        timeline = ctx.timeline
        result = BuildResult(
            output_path=output,
            chapters=timeline.entries if timeline else (),
            total_duration=timeline.total_duration if timeline else Decimal(0),
            size_bytes=output.stat().st_size,
            cover=ctx.cover,
            tags=dict(ctx.embedded_tags),
        )
        log.info(f"Audiobook creation complete: {output}")
        return result


def print_summary(result: BuildResult) -> None:
    """Echo the end-of-run summary."""
    click.echo("-----------------------------------------")
    click.echo(f"Chapters:  {len(result.chapters)}")
    click.echo(f"Length:    {format_duration(result.total_duration)}")
    click.echo(f"Size:      {result.size_bytes // (1024 * 1024)} MB")
    click.echo(f"Cover:     {result.cover.name if result.cover else 'none'}")
    click.echo(f"Audiobook: {result.output_path}")
    click.echo("-----------------------------------------")
