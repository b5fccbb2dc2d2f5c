"""Archive extraction into a leased directory.

Supports zip and tar archives (plain, gz, bz2, xz). The format is detected
from the archive content, not its name. Content is expanded as-is: an archive
whose files sit under a single top-level directory keeps that directory.
"""

from __future__ import annotations

import asyncio
import tarfile
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from .errors import FilesystemError

if TYPE_CHECKING:
    from .lease import Lease

logger = structlog.get_logger(__name__)


def detect_format(archive_path: Path) -> str | None:
    """Detect the archive format from its content.

    Args:
        archive_path: Path to the archive.

    Returns:
        ``"zip"``, ``"tar"`` or None if the format is not supported.
    """
    if zipfile.is_zipfile(archive_path):
        return "zip"
    if tarfile.is_tarfile(archive_path):
        return "tar"
    return None


def _extract_zip(archive_path: Path, destination: Path) -> None:
    root = destination.resolve()
    with zipfile.ZipFile(archive_path, "r") as zf:
        for member in zf.namelist():
            target = (destination / member).resolve()
            if target != root and root not in target.parents:
                raise FilesystemError(
                    archive_path, f"Archive member escapes destination ({member})"
                )
        zf.extractall(destination)


def _extract_tar(archive_path: Path, destination: Path) -> None:
    with tarfile.open(archive_path, "r:*") as tar:
        tar.extractall(destination, filter="data")


def _expand(archive_path: Path, destination: Path) -> str:
    """Sniff, extract and delete the archive. Runs in a worker thread."""
    archive_format = detect_format(archive_path)
    if archive_format is None:
        raise FilesystemError(archive_path, "Unsupported archive format")

    extract = _extract_zip if archive_format == "zip" else _extract_tar
    try:
        destination.mkdir(parents=True, exist_ok=True)
        extract(archive_path, destination)
    except (tarfile.TarError, zipfile.BadZipFile) as e:
        raise FilesystemError(archive_path, f"Failed to extract archive ({e})") from e
    except OSError as e:
        raise FilesystemError(destination, f"Failed to extract archive ({e})") from e

    try:
        archive_path.unlink()
    except OSError as e:
        raise FilesystemError(archive_path, f"Failed to delete archive ({e})") from e
    return archive_format


class ArchiveExtractor:
    """Expands downloaded archives and removes them afterwards."""

    def __init__(self) -> None:
        self._log = logger.bind(component="archive_extractor")

    async def extract(self, lease: Lease, archive_path: Path) -> Path:
        """Expand an archive into the lease directory, then delete it.

        Args:
            lease: Lease on the destination directory.
            archive_path: Archive written by the fetcher.

        Returns:
            The lease directory.

        Raises:
            FilesystemError: If the archive is unsupported, corrupt or cannot be written out.
        """
        destination = lease.path
        archive_format = await asyncio.to_thread(_expand, archive_path, destination)

        self._log.info(
            "archive_extracted",
            archive=str(archive_path),
            destination=str(destination),
            format=archive_format,
        )
        return destination
