"""CLI entry points: `m4bify` for one audiobook, `m4bulk` for a directory of them."""

import signal
import sys
from pathlib import Path

import click
from loguru import logger

from .batch import BatchOrchestrator
from .config import PipelineConfig
from .errors import PipelineError
from .models import ChapterMode, Quality
from .quality import parse_quality
from .runner import PipelineRunner, print_summary

log = logger.bind(stage="cli")

SIGTERM_EXIT_CODE = 128 + signal.SIGTERM


def _find_config_file() -> Path | None:
    """Look for .env next to the package or in cwd."""
    pkg_dir = Path(__file__).resolve().parent
    for candidate in [
        pkg_dir.parent.parent / ".env",  # dev: src/../.env
        Path.cwd() / ".env",
    ]:
        if candidate.is_file():
            return candidate
    return None


def _parse_bitrate(ctx, param, value: str | None) -> Quality | None:
    if value is None:
        return None
    try:
        return parse_quality(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _handle_sigterm(signum, frame) -> None:
    # SystemExit unwinds through the scratch workspace cleanup
    sys.exit(SIGTERM_EXIT_CODE)


def _load_config(config_file: str | None, verbose: bool) -> PipelineConfig:
    """Build PipelineConfig from the .env file, env vars and CLI flags."""
    env_file = Path(config_file) if config_file else _find_config_file()

    config = PipelineConfig(_env_file=env_file, verbose=verbose)  # type: ignore[call-arg]
    config.setup_logging()
    if env_file:
        log.debug(f"Loaded env from {env_file}")
    else:
        log.debug("No .env found")
    return config


def _common_options(func):
    """Options shared by m4bify and m4bulk."""
    func = click.option(
        "-c",
        "--config",
        "config_file",
        type=click.Path(exists=True, dir_okay=False),
        default=None,
        help="Path to .env file.",
    )(func)
    func = click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")(func)
    func = click.option(
        "-b",
        "--bitrate",
        default=None,
        callback=_parse_bitrate,
        help="Fixed bitrate (e.g. 96k), 'vbr', or 'lossless'. Defaults to config.",
    )(func)
    func = click.option(
        "--chapters-from-dirs",
        is_flag=True,
        help="One chapter per subdirectory instead of one per file.",
    )(func)
    return func


@click.command()
@click.argument(
    "source_dir", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@_common_options
def main(
    source_dir: Path,
    chapters_from_dirs: bool,
    bitrate: Quality | None,
    verbose: bool,
    config_file: str | None,
) -> None:
    """Build a chaptered, tagged M4B audiobook from SOURCE_DIR."""
    signal.signal(signal.SIGTERM, _handle_sigterm)
    config = _load_config(config_file, verbose)

    runner = PipelineRunner(config=config)
    try:
        result = runner.run(
            source_dir,
            chapter_mode=ChapterMode.DIRECTORY if chapters_from_dirs else None,
            quality=bitrate,
        )
    except PipelineError as e:
        log.error(str(e))
        sys.exit(e.exit_code)

    print_summary(result)


@click.command()
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option(
    "-w",
    "--workers",
    type=int,
    default=None,
    help="Parallel workers (1..CPU count). Default: half the CPUs.",
)
@_common_options
def bulk(
    root: Path,
    workers: int | None,
    chapters_from_dirs: bool,
    bitrate: Quality | None,
    verbose: bool,
    config_file: str | None,
) -> None:
    """Build one M4B audiobook per subdirectory of ROOT, in parallel."""
    signal.signal(signal.SIGTERM, _handle_sigterm)
    config = _load_config(config_file, verbose)

    try:
        orchestrator = BatchOrchestrator(
            config,
            workers=workers,
            chapter_mode=ChapterMode.DIRECTORY if chapters_from_dirs else None,
            quality=bitrate,
        )
    except PipelineError as e:
        raise click.BadParameter(str(e), param_hint="'--workers'") from e

    result = orchestrator.run_root(root.resolve())
    if result.failed:
        sys.exit(1)
