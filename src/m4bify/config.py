"""Pipeline configuration via pydantic-settings (.env + env vars)."""

import sys
from pathlib import Path

from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError
from .models import ChapterMode, Quality
from .quality import parse_quality


class PipelineConfig(BaseSettings):
    """All pipeline configuration with layered resolution:
    .env file < environment variables < constructor kwargs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -- Directories --
    work_dir: Path | None = None  # None = system temp dir
    log_dir: Path | None = None  # None = no file sink

    # -- Chapters / output --
    chapter_mode: ChapterMode = ChapterMode.FILE
    audiobook_extension: str = "m4b"
    genre: str = "Audiobook"

    # -- Encoding --
    bitrate: str = "vbr"
    encoder: str = ""  # "" = auto-detect libfdk_aac, fall back to aac
    aac_vbr_profile: int = 1
    libfdk_vbr_profile: int = 4
    sample_rate: int = 44100
    channels: int = 2
    normalize_lossless: bool = False  # resample/remix lossless segments too

    # -- External tools --
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"

    # -- Batch --
    workers: int = 0  # 0 = half the logical CPUs

    # -- Behavior --
    verbose: bool = False
    log_level: str = "INFO"

    @property
    def quality(self) -> Quality:
        """Parsed `bitrate` setting."""
        try:
            return parse_quality(self.bitrate)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    def setup_logging(self) -> None:
        """Configure loguru for the pipeline."""
        logger.remove()  # Remove default stderr handler

        log_format = (
            "{time:YYYY-MM-DDTHH:mm:ssZ} | {level:<8} | "
            "{extra[stage]:<10} | {message}"
        )

        def _default_extra(record):
            record["extra"].setdefault("stage", "")
            return True

        logger.add(
            sys.stderr,
            format=log_format,
            level="DEBUG" if self.verbose else self.log_level.upper(),
            filter=_default_extra,
        )

        if self.log_dir is None:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self.log_dir / "m4bify.log"),
            format=log_format,
            level="DEBUG",
            rotation="10 MB",
            retention="30 days",
            filter=_default_extra,
        )
