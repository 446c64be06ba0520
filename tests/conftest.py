"""Shared fixtures: a fake AudioToolkit and source-directory builders."""

from decimal import Decimal
from pathlib import Path

import pytest

from m4bify.config import PipelineConfig
from m4bify.errors import ExternalToolError
from m4bify.models import BuildContext, ChapterMode, Quality, QualityKind

# Env vars that pydantic-settings reads -- cleaned so tests see real defaults
_CONFIG_ENV_VARS = [
    "WORK_DIR", "LOG_DIR", "CHAPTER_MODE", "AUDIOBOOK_EXTENSION", "GENRE",
    "BITRATE", "ENCODER", "AAC_VBR_PROFILE", "LIBFDK_VBR_PROFILE",
    "SAMPLE_RATE", "CHANNELS", "NORMALIZE_LOSSLESS", "FFMPEG_BIN", "FFPROBE_BIN", "WORKERS",
    "VERBOSE", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in _CONFIG_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


class FakeToolkit:
    """AudioToolkit double.

    Segments are small text files holding the source filename, so the
    concatenated artifact records the order segments were joined in.
    Durations, titles, embedded art and codec parameters are keyed by
    source (or segment) filename.
    """

    def __init__(self) -> None:
        self.durations: dict[str, Decimal] = {}
        self.default_duration = Decimal("10")
        self.titles: dict[str, str] = {}
        self.embedded_art: dict[str, str] = {}
        self.audio_params: dict[str, tuple[str, int, int]] = {}
        self.fail_encode: set[str] = set()
        self.fail_concat = False
        self.fail_chapters = False
        self.fail_cover = False
        self.fail_tags = False
        self.chapter_count_override: int | None = None

        self.encoded: list[tuple[Path, Path, Quality]] = []
        self.concat_order: list[Path] = []
        self.chapters: list = []
        self.cover: Path | None = None
        self.tags: dict[str, str] = {}
        self._segment_durations: dict[Path, Decimal] = {}

    def encode(self, input_file: Path, output_file: Path, quality: Quality) -> Decimal:
        if input_file.name in self.fail_encode:
            raise ExternalToolError("ffmpeg", 1, f"Invalid data found: {input_file.name}")
        output_file.write_text(f"{input_file.name}\n")
        duration = self.durations.get(input_file.name, self.default_duration)
        self._segment_durations[output_file] = duration
        self.encoded.append((input_file, output_file, quality))
        return duration

    def probe_duration(self, path: Path) -> Decimal:
        return self._segment_durations[path]

    def probe_stream_codec(self, path: Path, stream: str) -> str | None:
        if stream.startswith("v"):
            return self.embedded_art.get(path.name)
        return "aac"

    def probe_title(self, path: Path) -> str | None:
        return self.titles.get(path.name)

    def probe_audio_params(self, path: Path) -> tuple[str, int, int]:
        return self.audio_params.get(path.name, ("aac", 44100, 2))

    def concat(self, paths: list[Path], output_file: Path) -> None:
        if self.fail_concat:
            raise ExternalToolError("ffmpeg", 1, "concat failed")
        self.concat_order = list(paths)
        output_file.write_text("".join(p.read_text() for p in paths))

    def embed_chapters(self, path: Path, chapters: list) -> None:
        if self.fail_chapters:
            raise ExternalToolError("ffmpeg", 1, "chapter write failed")
        self.chapters = list(chapters)

    def count_chapters(self, path: Path) -> int:
        if self.chapter_count_override is not None:
            return self.chapter_count_override
        return len(self.chapters)

    def extract_cover(self, path: Path, output_file: Path) -> None:
        output_file.write_bytes(b"\xff\xd8\xff")

    def embed_cover(self, path: Path, image: Path) -> None:
        if self.fail_cover:
            raise ExternalToolError("ffmpeg", 1, "cover embed failed")
        self.cover = image

    def embed_tags(self, path: Path, tags: dict[str, str]) -> None:
        if self.fail_tags:
            raise ExternalToolError("ffmpeg", 1, "tag write failed")
        self.tags = dict(tags)


def _make_files(root: Path, *names: str) -> list[Path]:
    """Create empty files (and parent dirs) under root."""
    paths = []
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"")
        paths.append(path)
    return paths


@pytest.fixture
def make_files():
    return _make_files


@pytest.fixture
def toolkit():
    return FakeToolkit()


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(_env_file=None, work_dir=tmp_path / "scratch")


@pytest.fixture
def make_ctx(tmp_path, config, toolkit):
    """Factory for a BuildContext over a source directory."""

    def _make(
        source_dir: Path,
        chapter_mode: ChapterMode = ChapterMode.FILE,
        quality: Quality | None = None,
    ) -> BuildContext:
        scratch = tmp_path / "ctx-scratch"
        scratch.mkdir(exist_ok=True)
        return BuildContext(
            source_dir=source_dir,
            chapter_mode=chapter_mode,
            quality=quality or Quality(QualityKind.VARIABLE),
            config=config,
            toolkit=toolkit,
            scratch_dir=scratch,
        )

    return _make
