"""Data models for the HTTP library retriever.

This module defines Pydantic models for configuration, retrieval requests,
credentials and the results produced by each stage of the pipeline.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path  # noqa: TC003 - needed at runtime by Pydantic

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr


class LogLevel(str, Enum):
    """Log level for retriever diagnostics."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ProbeStatus(str, Enum):
    """Classification of a reachability probe."""

    AVAILABLE = "available"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    UNREACHABLE = "unreachable"


class ValidationKind(str, Enum):
    """Severity of a version validation result."""

    OK = "ok"
    WARNING = "warning"


class RetrievalState(str, Enum):
    """States of a single retrieval."""

    IDLE = "idle"
    URL_RESOLVED = "url_resolved"
    LEASE_HELD = "lease_held"
    FETCHED = "fetched"
    EXTRACTED = "extracted"
    VERSION_RECONCILED = "version_reconciled"
    COPIED = "copied"
    RELEASED_SUCCESS = "released_success"
    RELEASED_FAILED = "released_failed"


class RetrieverConfig(BaseModel):
    """Persisted configuration of one HTTP library retriever.

    Accepts the host's camelCase keys as well as snake_case.
    """

    http_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("http_url", "httpURL", "url"),
        description="URL template of the library archive",
    )
    credentials_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("credentials_id", "credentialsId"),
        description="Reference to the credential used for authenticated downloads",
    )
    preemptive_auth: bool = Field(
        default=False,
        validation_alias=AliasChoices("preemptive_auth", "preemptiveAuth"),
        description="Send Basic credentials on the first request",
    )


class RetrieverSettings(BaseModel):
    """Global settings shared by all retrievers."""

    log_level: LogLevel = Field(
        default=LogLevel.WARNING,
        description="Diagnostic log level used when the CLI gets no --log-level",
    )
    workspace_suffix: str | None = Field(
        default=None,
        description="Suffix appended to the base workspace for the libs directory. "
        "None = HTTP_RETRIEVER_WORKSPACE_SUFFIX or '@'.",
    )
    connect_timeout_seconds: float | None = Field(
        default=None,
        description="Connect timeout for probes and downloads. None = transport default.",
    )
    read_timeout_seconds: float | None = Field(
        default=None,
        description="Socket read timeout for probes and downloads. None = transport default.",
    )
    lease_timeout_seconds: float | None = Field(
        default=None,
        description="Maximum wait for a workspace lease. None = wait indefinitely.",
    )


class Credential(BaseModel):
    """A username/password credential held by a credential store."""

    id: str = Field(..., description="Unique credential identifier")
    username: str
    password: SecretStr
    description: str = ""
    allowed_owners: set[str] | None = Field(
        default=None,
        description="Execution-context owners allowed to use this credential. None = all.",
    )


class ResolvedCredential(BaseModel):
    """Username/secret pair resolved for one execution context."""

    model_config = ConfigDict(frozen=True)

    username: str
    secret: SecretStr


class ExecutionContext(BaseModel):
    """The unit of work a retrieval runs for."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., description="Name of the job or build requesting the library")
    workspace: Path | None = Field(
        default=None,
        description="Base workspace of the owner. None = not a top-level item.",
    )


class RetrievalRequest(BaseModel):
    """Immutable description of one retrieval."""

    model_config = ConfigDict(frozen=True)

    resource_name: str
    requested_version: str
    url_template: str | None
    credentials_id: str | None = None
    preemptive_auth: bool = False


class FetchResult(BaseModel):
    """Archive written to the leased directory by the fetcher."""

    local_archive_path: Path
    http_status: int
    bytes_downloaded: int = 0


class ExtractedBundle(BaseModel):
    """Directory tree produced by extraction."""

    root: Path
    resolved_version: str | None = None


class ProbeResult(BaseModel):
    """Outcome of a reachability probe."""

    status: ProbeStatus
    http_status: int | None = None
    cause: str | None = None


class ValidationResult(BaseModel):
    """User-facing outcome of version validation."""

    kind: ValidationKind
    message: str
    cause: str | None = None

    @property
    def ok(self) -> bool:
        """Return whether the validation passed without warning."""
        return self.kind == ValidationKind.OK


class RetrievalOutcome(BaseModel):
    """Summary of a completed retrieval."""

    state: RetrievalState
    source_url: str | None = None
    resolved_version: str | None = None
    target: Path | None = None


class AppConfig(BaseModel):
    """Complete configuration file content."""

    settings: RetrieverSettings = Field(default_factory=RetrieverSettings)
    libraries: dict[str, RetrieverConfig] = Field(default_factory=dict)
    credentials: dict[str, Credential] = Field(default_factory=dict)
