"""Per-run scratch workspace."""

import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

log = logger.bind(stage="workspace")


@contextmanager
def scratch_workspace(parent: Path | None = None) -> Iterator[Path]:
    """Create a private scratch directory and remove it on every exit path.

    parent=None uses the system temp directory.
    """
    if parent is not None:
        parent.mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix="m4bify-", dir=parent))
    log.debug(f"Created scratch dir: {path}")
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        log.debug(f"Removed scratch dir: {path}")
