"""Filename-derived chapter name cleanup."""

import re
from pathlib import Path

from loguru import logger

log = logger.bind(stage="sanitize")

# Characters invalid in filenames on at least one common filesystem
_INVALID_CHARS = re.compile(r'[<>:"/\\|?*]')


def strip_invalid_chars(name: str) -> str:
    """Remove filesystem-invalid characters (no replacement)."""
    return _INVALID_CHARS.sub("", name)


def chapter_name_from_file(path: Path) -> str:
    """Chapter name from a filename: extension and invalid characters dropped."""
    name = strip_invalid_chars(path.stem).strip()
    log.debug(f"chapter_name_from_file({path.name!r}) -> {name!r}")
    return name
