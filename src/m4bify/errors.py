"""Exception hierarchy for the m4bify pipeline.

Every fatal stage failure is a StageError subclass carrying the stage name
and the process exit code the CLI reports for it.
"""

from .models import Stage


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    exit_code: int = 1


class ConfigError(PipelineError):
    """Invalid or missing configuration."""


class ExternalToolError(PipelineError):
    """An external subprocess (ffmpeg, ffprobe) failed."""

    def __init__(self, tool: str, exit_code: int, stderr: str) -> None:
        super().__init__(f"{tool} exited with code {exit_code}: {stderr}")
        self.tool = tool
        self.exit_code = exit_code
        self.stderr = stderr


class StageError(PipelineError):
    """A pipeline stage failed. Aborts the run."""

    default_stage: Stage | None = None
    default_exit_code: int = 1

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        exit_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage or (self.default_stage.value if self.default_stage else "")
        self.exit_code = exit_code if exit_code is not None else self.default_exit_code


class EmptyInputError(StageError):
    """No audio assets (or no chapter directories) to build from."""

    default_stage = Stage.DISCOVER
    default_exit_code = 2


class EncodeError(StageError):
    default_stage = Stage.ENCODE
    default_exit_code = 3


class ConcatError(StageError):
    default_stage = Stage.CONCAT
    default_exit_code = 4


class ChapterTagError(StageError):
    default_stage = Stage.CHAPTERS
    default_exit_code = 5


class CoverEmbedError(StageError):
    default_stage = Stage.COVER
    default_exit_code = 6


class MetadataEmbedError(StageError):
    default_stage = Stage.METADATA
    default_exit_code = 7


class PublishError(StageError):
    default_stage = Stage.PUBLISH
    default_exit_code = 8
