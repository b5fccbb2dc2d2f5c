"""Tests for version marker reading."""

from __future__ import annotations

from pathlib import Path

from http_retriever.version_file import VERSION_FILE, read_version


def test_reads_trimmed_version(tmp_path: Path) -> None:
    """Test the marker is read and trimmed."""
    (tmp_path / VERSION_FILE).write_text("9.9.9\n")
    assert read_version(tmp_path) == "9.9.9"


def test_surrounding_whitespace(tmp_path: Path) -> None:
    """Test leading and trailing whitespace is removed."""
    (tmp_path / VERSION_FILE).write_text("  2.0.0-rc1 \r\n")
    assert read_version(tmp_path) == "2.0.0-rc1"


def test_missing_marker(tmp_path: Path) -> None:
    """Test a library without marker has no version."""
    assert read_version(tmp_path) is None


def test_nested_marker_ignored(tmp_path: Path) -> None:
    """Test only the marker at the root is read."""
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / VERSION_FILE).write_text("1.0")
    assert read_version(tmp_path) is None
