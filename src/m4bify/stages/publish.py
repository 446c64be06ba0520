"""Publish stage -- move the finished artifact to its final path.

The destination only ever sees a complete file: the artifact is renamed into
place, or, across filesystems, copied to a hidden partial file next to the
destination and then renamed. Partial files are removed on failure.
"""

from __future__ import annotations

import errno
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from ..errors import PublishError

if TYPE_CHECKING:
    from ..models import BuildContext

log = logger.bind(stage="publish")


def publish(artifact: Path, destination: Path) -> None:
    """Atomically place artifact at destination. Raises PublishError."""
    try:
        os.replace(artifact, destination)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise PublishError(f"Cannot move audiobook to {destination}: {e}") from e
        log.debug(f"Cross-device move to {destination.parent}, copying instead")

    partial = destination.with_name(f".{destination.name}.partial")
    try:
        shutil.copyfile(artifact, partial)
        os.replace(partial, destination)
    except OSError as e:
        raise PublishError(f"Cannot copy audiobook to {destination}: {e}") from e
    finally:
        partial.unlink(missing_ok=True)
    artifact.unlink(missing_ok=True)


def run(ctx: BuildContext) -> None:
    """Publish ctx.artifact to ctx.output_path (default <parent>/<name>.m4b)."""
    if ctx.artifact is None or not ctx.artifact.is_file():
        raise PublishError("No artifact to publish")

    destination = ctx.output_path or ctx.default_output_path
    log.info(f"Moving audiobook to {destination}")
    publish(ctx.artifact, destination)
    ctx.output_path = destination
    ctx.artifact = None
    log.info("Audiobook successfully moved")
