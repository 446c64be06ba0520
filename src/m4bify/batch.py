"""Parallel batch processor: one pipeline run per audiobook directory.

Every immediate subdirectory of a root is treated as one audiobook. A fixed
pool of worker threads takes directories from the queue, runs a
PipelineRunner on each, and writes that book's log to `<directory>.log`.
Runs never share a source directory or a scratch workspace.
"""

from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path

import click
import psutil
from loguru import logger

from .config import PipelineConfig
from .errors import ConfigError, PipelineError
from .models import BatchResult, ChapterMode, Quality
from .runner import PipelineRunner
from .stages.discover import find_chapter_dirs
from .toolkit import AudioToolkit

log = logger.bind(stage="batch")

JOB_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {extra[stage]:<10} | {message}"


def find_book_directories(root: Path) -> list[Path]:
    """Immediate, non-hidden subdirectories of root, in byte-wise name order."""
    return find_chapter_dirs(root)


def default_workers() -> int:
    """Half the logical CPUs, at least one."""
    return max(1, (psutil.cpu_count(logical=True) or 1) // 2)


class BatchOrchestrator:
    """Runs the pipeline for many audiobook directories in parallel.

    Attributes:
        config: Pipeline configuration shared by every run
        workers: Number of worker threads
    """

    def __init__(
        self,
        config: PipelineConfig,
        workers: int | None = None,
        chapter_mode: ChapterMode | None = None,
        quality: Quality | None = None,
        toolkit: AudioToolkit | None = None,
    ) -> None:
        self.config = config
        if workers is None:
            workers = config.workers or default_workers()
        self.workers = self._validate_workers(workers)
        self.chapter_mode = chapter_mode
        self.quality = quality
        self.toolkit = toolkit

    @staticmethod
    def _validate_workers(workers: int) -> int:
        cpu_count = psutil.cpu_count(logical=True) or 1
        if workers < 1 or workers > cpu_count:
            raise ConfigError(
                f"Invalid number of workers '{workers}'. "
                f"Must be an integer between 1 and {cpu_count}."
            )
        return workers

    def run_root(self, root: Path) -> BatchResult:
        """Process every audiobook directory directly under root."""
        book_dirs = find_book_directories(root)
        click.echo(f"Discovered: {len(book_dirs)} audiobook directories in {root}")
        click.echo(f"Workers: {self.workers}")
        return self.run_batch(book_dirs)

    def run_batch(self, book_dirs: list[Path]) -> BatchResult:
        """Process book_dirs with the worker pool and print a summary.

        Args:
            book_dirs: Directories to convert, one audiobook each

        Returns:
            BatchResult with counts and the succeeded/failed directories
        """
        started = time.monotonic()
        if not book_dirs:
            log.warning("No audiobook directories to process")
            return BatchResult()

        log.info(f"Starting batch: {len(book_dirs)} books, workers={self.workers}")

        completed: list[Path] = []
        failed: list[Path] = []

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures: dict[Future, Path] = {
                executor.submit(self._run_single_safe, book_dir): book_dir
                for book_dir in book_dirs
            }
            try:
                for future in as_completed(futures):
                    book_dir = futures[future]
                    if future.result():
                        completed.append(book_dir)
                        click.echo(f"✔ Completed: {book_dir}")
                    else:
                        failed.append(book_dir)
                        click.echo(f"✘ Error: {book_dir}")
            except BaseException:
                # Interrupted: running books unwind, queued books never start
                log.warning("Batch interrupted, cancelling queued books")
                executor.shutdown(wait=True, cancel_futures=True)
                raise

        # Report in queue order, not completion order
        order = {d: i for i, d in enumerate(book_dirs)}
        completed.sort(key=order.__getitem__)
        failed.sort(key=order.__getitem__)

        result = BatchResult(
            completed=len(completed),
            failed=len(failed),
            total=len(book_dirs),
            succeeded_dirs=completed,
            failed_dirs=failed,
            elapsed=time.monotonic() - started,
        )
        self._display_summary(result)
        return result

    def _run_single_safe(self, book_dir: Path) -> bool:
        """Run one book with its own log file. Returns True on success."""
        log_file = book_dir.with_name(f"{book_dir.name}.log")
        job_id = str(book_dir)
        sink_id = logger.add(
            str(log_file),
            format=JOB_LOG_FORMAT,
            level="DEBUG",
            mode="w",
            filter=lambda record: record["extra"].get("job") == job_id,
        )
        click.echo(f"Processing: {book_dir}")
        try:
            with logger.contextualize(job=job_id):
                try:
                    runner = PipelineRunner(self.config, toolkit=self.toolkit)
                    runner.run(book_dir, chapter_mode=self.chapter_mode, quality=self.quality)
                    return True
                except PipelineError as e:
                    log.error(f"Failed to build {book_dir.name}: {e}")
                    return False
                except Exception as e:
                    log.exception(f"Unexpected error building {book_dir.name}: {e}")
                    return False
        finally:
            logger.remove(sink_id)

    def _display_summary(self, result: BatchResult) -> None:
        """Display final batch summary."""
        click.echo("-----------------------------------------")
        click.echo("Processing finished. Summary:")
        click.echo("-----------------------------------------")
        click.echo(f"Elapsed: {format_elapsed(result.elapsed)}")
        click.echo(f"Successfully converted: {result.completed}")
        for book_dir in result.succeeded_dirs:
            click.echo(f"  ✔ {book_dir}")
        if result.failed:
            click.echo(f"Failed to convert: {result.failed}")
            for book_dir in result.failed_dirs:
                click.echo(f"  ✘ {book_dir}")


def format_elapsed(seconds: float) -> str:
    """"01 hours, 02 minutes, 03 seconds" or "02 minutes, 03 seconds"."""
    total = int(seconds)
    if total >= 3600:
        return (
            f"{total // 3600:02d} hours, {total % 3600 // 60:02d} minutes, "
            f"{total % 60:02d} seconds"
        )
    return f"{total // 60:02d} minutes, {total % 60:02d} seconds"
