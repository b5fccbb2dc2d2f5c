"""Tests for data models and errors."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from http_retriever.errors import (
    AuthFailure,
    DownloadFailure,
    FilesystemError,
    LeaseTimeoutError,
    RetrieverError,
    TransportError,
)
from http_retriever.models import (
    ExecutionContext,
    RetrievalRequest,
    RetrieverConfig,
    ValidationKind,
    ValidationResult,
)


class TestRetrieverConfig:
    """Tests for RetrieverConfig."""

    def test_defaults(self) -> None:
        """Test a default configuration has no URL and reactive auth."""
        config = RetrieverConfig()
        assert config.http_url is None
        assert config.credentials_id is None
        assert config.preemptive_auth is False

    def test_camel_case_aliases(self) -> None:
        """Test the host's camelCase keys are accepted."""
        config = RetrieverConfig.model_validate(
            {"httpURL": "https://h/x.zip", "credentialsId": "c", "preemptiveAuth": True}
        )
        assert config.http_url == "https://h/x.zip"
        assert config.credentials_id == "c"
        assert config.preemptive_auth is True

    def test_url_alias(self) -> None:
        """Test the short url key is accepted."""
        assert RetrieverConfig.model_validate({"url": "https://h/x.zip"}).http_url


class TestImmutableModels:
    """Tests for frozen models."""

    def test_request_is_frozen(self) -> None:
        """Test a retrieval request cannot be modified."""
        request = RetrievalRequest(resource_name="lib", requested_version="1.0", url_template=None)
        with pytest.raises(ValidationError):
            request.requested_version = "2.0"  # type: ignore[misc]

    def test_context_is_frozen(self) -> None:
        """Test an execution context cannot be modified."""
        context = ExecutionContext(owner="job", workspace=Path("/ws/job"))
        with pytest.raises(ValidationError):
            context.owner = "other"  # type: ignore[misc]


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_ok(self) -> None:
        """Test the ok property follows the kind."""
        assert ValidationResult(kind=ValidationKind.OK, message="fine").ok
        assert not ValidationResult(kind=ValidationKind.WARNING, message="careful").ok


class TestErrors:
    """Tests for the error hierarchy."""

    def test_download_failure_message(self) -> None:
        """Test the message carries URL and status."""
        error = DownloadFailure("https://h/x.zip", 404)
        assert str(error) == "Failed to download https://h/x.zip: HTTP status 404"
        assert error.status == 404

    def test_auth_failure_is_download_failure(self) -> None:
        """Test terminal auth failures share the download failure type."""
        assert AuthFailure is DownloadFailure

    def test_filesystem_error_message(self) -> None:
        """Test the message names the path."""
        error = FilesystemError("/ws/lib", "Could not create the folders")
        assert str(error) == "Could not create the folders: /ws/lib"
        assert error.path == Path("/ws/lib")

    @pytest.mark.parametrize(
        "error",
        [
            TransportError("https://h/x.zip", "connection refused"),
            DownloadFailure("https://h/x.zip", 500),
            FilesystemError("/tmp/x", "boom"),
            LeaseTimeoutError("/ws@libs/lib", "job", 1.0),
        ],
    )
    def test_common_base(self, error: RetrieverError) -> None:
        """Test every failure derives from RetrieverError."""
        assert isinstance(error, RetrieverError)
