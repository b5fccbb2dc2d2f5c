"""Tests for the command line interface."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from http_retriever.cli import app
from http_retriever.models import (
    ExecutionContext,
    RetrievalOutcome,
    RetrievalState,
    ValidationKind,
    ValidationResult,
)
from http_retriever.retriever import HttpRetriever

runner = CliRunner()

CONFIG_YAML = """
libraries:
  shared:
    httpURL: "https://repo.example.com/shared-${library.shared.version}.zip"
    credentialsId: repo
credentials:
  repo:
    username: deploy
    password: s3cret
"""


class TestMainApp:
    """Tests for the main CLI application."""

    def test_version(self) -> None:
        """Test --version flag."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "http-retriever" in result.output
        assert "version" in result.output

    def test_help(self) -> None:
        """Test --help flag."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "retrieve" in result.output
        assert "validate" in result.output

    def test_no_args_shows_help(self) -> None:
        """Test that no arguments shows help."""
        result = runner.invoke(app, [])
        assert result.exit_code == 2
        assert "Usage" in result.output


class TestRetrieveCommand:
    """Tests for the retrieve command."""

    def test_retrieve_success(self, tmp_path: Path) -> None:
        """Test a successful retrieval with command line overrides."""
        target = tmp_path / "target"
        outcome = RetrievalOutcome(
            state=RetrievalState.RELEASED_SUCCESS,
            source_url="https://h/lib-1.0.zip",
            resolved_version="1.0",
            target=target,
        )
        mocked = AsyncMock(return_value=outcome)

        with patch.object(HttpRetriever, "retrieve", new=mocked):
            result = runner.invoke(
                app,
                [
                    "retrieve",
                    "lib",
                    "1.0",
                    str(target),
                    "--url",
                    "https://h/lib-${library.lib.version}.zip",
                    "--workspace",
                    str(tmp_path / "ws"),
                    "--owner",
                    "nightly",
                    "--config",
                    str(tmp_path / "config.yaml"),
                ],
            )

        assert result.exit_code == 0, result.output
        assert "retrieved" in result.output
        name, version, called_target, context, _ = mocked.await_args.args
        assert (name, version, called_target) == ("lib", "1.0", target)
        assert context == ExecutionContext(owner="nightly", workspace=tmp_path / "ws")

    def test_retrieve_uses_configured_library(self, tmp_path: Path) -> None:
        """Test the library configuration is read from the config file."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text(CONFIG_YAML)
        seen: list[HttpRetriever] = []

        async def fake_retrieve(
            self: HttpRetriever, name: str, version: str, target: Path, *args: object
        ) -> RetrievalOutcome:
            seen.append(self)
            return RetrievalOutcome(state=RetrievalState.RELEASED_SUCCESS, target=target)

        with patch.object(HttpRetriever, "retrieve", new=fake_retrieve):
            result = runner.invoke(
                app,
                ["retrieve", "shared", "2.0", str(tmp_path / "t"), "--config", str(config_path)],
            )

        assert result.exit_code == 0, result.output
        assert seen[0].url == "https://repo.example.com/shared-${library.shared.version}.zip"
        assert seen[0].credentials_id == "repo"
        assert seen[0].preemptive_auth is False

    def test_retrieve_without_url(self, tmp_path: Path) -> None:
        """Test retrieving an unconfigured library does nothing."""
        result = runner.invoke(
            app,
            [
                "retrieve",
                "lib",
                "1.0",
                str(tmp_path / "target"),
                "--workspace",
                str(tmp_path / "ws"),
                "--config",
                str(tmp_path / "config.yaml"),
            ],
        )

        assert result.exit_code == 0
        assert "No URL configured" in result.output
        assert not (tmp_path / "target").exists()

    def test_retrieve_error(self, tmp_path: Path) -> None:
        """Test retrieval errors exit with status 1."""
        result = runner.invoke(
            app,
            [
                "retrieve",
                "lib",
                "1.0",
                str(tmp_path / "target"),
                "--url",
                "ftp://h/lib.zip",
                "--workspace",
                str(tmp_path / "ws"),
                "--config",
                str(tmp_path / "config.yaml"),
            ],
        )

        assert result.exit_code == 1
        assert "Error" in result.output


class TestValidateCommand:
    """Tests for the validate command."""

    def test_validate_ok(self, tmp_path: Path) -> None:
        """Test a valid version exits with status 0."""
        mocked = AsyncMock(
            return_value=ValidationResult(kind=ValidationKind.OK, message="Version 1.0 is valid.")
        )
        with patch.object(HttpRetriever, "validate_version", new=mocked):
            result = runner.invoke(
                app,
                ["validate", "lib", "1.0", "--url", "https://h/x.zip", "-c", str(tmp_path / "c")],
            )

        assert result.exit_code == 0
        assert "Version 1.0 is valid." in result.output
        mocked.assert_awaited_once_with("lib", "1.0")

    def test_validate_warning(self, tmp_path: Path) -> None:
        """Test a warning exits with status 1."""
        result = runner.invoke(
            app, ["validate", "lib", "1.0", "--config", str(tmp_path / "config.yaml")]
        )

        assert result.exit_code == 1
        assert "Warning" in result.output
        assert "No URL configured" in result.output


class TestConfigCommands:
    """Tests for the config sub-commands."""

    def test_init(self, tmp_path: Path) -> None:
        """Test config init creates the file."""
        config_path = tmp_path / "config.yaml"

        result = runner.invoke(app, ["config", "init", "--config", str(config_path)])
        assert result.exit_code == 0
        assert config_path.exists()

        result = runner.invoke(app, ["config", "init", "--config", str(config_path)])
        assert result.exit_code == 0
        assert "already exists" in result.output

    def test_show(self, tmp_path: Path) -> None:
        """Test config show lists libraries and credential ids."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text(CONFIG_YAML)

        result = runner.invoke(app, ["config", "show", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "shared" in result.output
        assert "Credentials: repo" in result.output
        assert "s3cret" not in result.output

