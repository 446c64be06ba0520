"""Stage registry -- maps Stage enum values to run functions.

Pipeline order: discover -> encode -> timeline -> concat -> chapters -> cover
-> metadata -> publish

Every stage takes the run's BuildContext, reads what earlier stages left on
it, and records its own output there. Fatal failures raise a StageError
subclass; optional enrichment (cover, metadata) logs and returns when there
is nothing to embed.

Stages:
    discover -- Find source audio (extension allow-list, case-insensitive)
                and build the ChapterPlan. File mode: one chapter per file,
                recursive, byte-wise sorted. Directory mode: one chapter per
                immediate subdirectory, each searched recursively. Raises
                EmptyInputError when there is nothing to build.
    encode   -- Transcode every planned asset, in plan order, to an
                audio-only segment in the scratch workspace at the run's
                single quality. Raises EncodeError on the first failure.
    timeline -- Sum segment durations into chapter start offsets, resolve
                chapter names, and fix the concat order manifest.
    concat   -- Check all segments share codec parameters, then stream-copy
                them into the build artifact. Raises ConcatError.
    chapters -- Embed the timeline's chapter markers and verify the count.
                Raises ChapterTagError.
    cover    -- Resolve artwork (external image, else embedded art) and
                embed it. Raises CoverEmbedError only when embedding fails.
    metadata -- Parse author/title/year from the directory name, read an
                optional description file, and embed the tags. Raises
                MetadataEmbedError only when embedding fails.
    publish  -- Atomically move the artifact to <parent>/<name>.m4b.
                Raises PublishError.
"""

from ..models import Stage


def get_stage_runner(stage: Stage):
    """Return the run function for a given stage."""
    if stage == Stage.DISCOVER:
        from .discover import run as discover_run

        return discover_run

    if stage == Stage.ENCODE:
        from .encode import run as encode_run

        return encode_run

    if stage == Stage.TIMELINE:
        from .timeline import run as timeline_run

        return timeline_run

    if stage == Stage.CONCAT:
        from .concat import run as concat_run

        return concat_run

    if stage == Stage.CHAPTERS:
        from .chapters import run as chapters_run

        return chapters_run

    if stage == Stage.COVER:
        from .cover import run as cover_run

        return cover_run

    if stage == Stage.METADATA:
        from .metadata import run as metadata_run

        return metadata_run

    if stage == Stage.PUBLISH:
        from .publish import run as publish_run

        return publish_run

    raise NotImplementedError(f"Stage '{stage.value}' is not implemented")
