"""Audio capability interface used by the pipeline stages.

Stages never shell out directly; they call an AudioToolkit. FFmpegToolkit
is the production implementation on top of ffmpeg/ffprobe, and tests swap
in a double returning fixed durations and codecs.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from . import ffmpeg, ffprobe
from .errors import ExternalToolError
from .models import ChapterEntry, Quality, QualityKind
from .quality import detect_encoder, encoder_args

if TYPE_CHECKING:
    from .config import PipelineConfig

log = logger.bind(stage="toolkit")


class AudioToolkit(Protocol):
    def encode(self, input_file: Path, output_file: Path, quality: Quality) -> Decimal: ...

    def probe_duration(self, path: Path) -> Decimal: ...

    def probe_stream_codec(self, path: Path, stream: str) -> str | None: ...

    def probe_title(self, path: Path) -> str | None: ...

    def probe_audio_params(self, path: Path) -> tuple[str, int, int]: ...

    def concat(self, paths: list[Path], output_file: Path) -> None: ...

    def embed_chapters(self, path: Path, chapters: list[ChapterEntry]) -> None: ...

    def count_chapters(self, path: Path) -> int: ...

    def extract_cover(self, path: Path, output_file: Path) -> None: ...

    def embed_cover(self, path: Path, image: Path) -> None: ...

    def embed_tags(self, path: Path, tags: dict[str, str]) -> None: ...


class FFmpegToolkit:
    """AudioToolkit backed by the ffmpeg and ffprobe binaries."""

    def __init__(self, config: PipelineConfig) -> None:
        self.config = config
        self.ffmpeg_bin = config.ffmpeg_bin
        self.ffprobe_bin = config.ffprobe_bin

    @property
    def encoder(self) -> str:
        return self.config.encoder or detect_encoder(self.ffmpeg_bin)

    def encode(self, input_file: Path, output_file: Path, quality: Quality) -> Decimal:
        """Encode one asset and return the probed duration of the segment."""
        args = encoder_args(
            quality,
            self.encoder,
            aac_vbr_profile=self.config.aac_vbr_profile,
            libfdk_vbr_profile=self.config.libfdk_vbr_profile,
        )
        # Lossless keeps the source rate and layout unless normalization is asked for
        normalize = quality.kind != QualityKind.LOSSLESS or self.config.normalize_lossless
        ffmpeg.encode(
            input_file,
            output_file,
            args,
            sample_rate=self.config.sample_rate if normalize else None,
            channels=self.config.channels if normalize else None,
            ffmpeg_bin=self.ffmpeg_bin,
        )
        return self.probe_duration(output_file)

    def probe_duration(self, path: Path) -> Decimal:
        try:
            return ffprobe.get_duration(path, self.ffprobe_bin)
        except (ValueError, OSError) as e:
            raise ExternalToolError(tool=self.ffprobe_bin, exit_code=1, stderr=str(e)) from e

    def probe_stream_codec(self, path: Path, stream: str) -> str | None:
        return ffprobe.get_stream_codec(path, stream, self.ffprobe_bin)

    def probe_title(self, path: Path) -> str | None:
        return ffprobe.get_title(path, self.ffprobe_bin)

    def probe_audio_params(self, path: Path) -> tuple[str, int, int]:
        try:
            return ffprobe.get_audio_params(path, self.ffprobe_bin)
        except (ValueError, OSError) as e:
            raise ExternalToolError(tool=self.ffprobe_bin, exit_code=1, stderr=str(e)) from e

    def concat(self, paths: list[Path], output_file: Path) -> None:
        list_file = output_file.parent / "file_order.txt"
        ffmpeg.write_concat_list(paths, list_file)
        ffmpeg.concat(list_file, output_file, self.ffmpeg_bin)

    def embed_chapters(self, path: Path, chapters: list[ChapterEntry]) -> None:
        total = self.probe_duration(path)
        metadata_file = path.parent / "chapters.ffmeta"
        metadata_file.write_text(
            ffmpeg.render_ffmetadata([(c.start, c.name) for c in chapters], total),
            encoding="utf-8",
        )
        ffmpeg.write_chapters(path, metadata_file, self.ffmpeg_bin)

    def count_chapters(self, path: Path) -> int:
        return ffprobe.count_chapters(path, self.ffprobe_bin)

    def extract_cover(self, path: Path, output_file: Path) -> None:
        ffmpeg.extract_cover(path, output_file, self.ffmpeg_bin)

    def embed_cover(self, path: Path, image: Path) -> None:
        ffmpeg.attach_cover(path, image, self.ffmpeg_bin)

    def embed_tags(self, path: Path, tags: dict[str, str]) -> None:
        ffmpeg.write_tags(path, tags, self.ffmpeg_bin)
