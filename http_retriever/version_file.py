"""Embedded version marker."""

from __future__ import annotations

from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

VERSION_FILE = "version.txt"


def read_version(root: Path) -> str | None:
    """Read the version marker at the root of an extracted library.

    Args:
        root: Root of the extracted tree.

    Returns:
        The trimmed marker content, or None when the library has no marker.
    """
    marker = root / VERSION_FILE
    try:
        return marker.read_text(encoding="utf-8").strip()
    except (FileNotFoundError, NotADirectoryError):
        logger.debug("version_file_not_found", path=str(marker))
        return None
