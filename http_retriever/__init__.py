"""HTTP Library Retriever.

Fetches versioned library archives over HTTP(S), extracts them into an
exclusively leased working directory and copies them into a build's target
directory.

Module Overview:
    cli: Typer command line interface (retrieve, validate, config)
    config: YAML-based configuration management (XDG spec compliant)
    credentials: Credential store interface and lookup
    errors: Exception hierarchy of the retrieval pipeline
    extractor: Zip/tar extraction into the leased directory
    fetcher: Authenticated download and reachability probe (aiohttp)
    interfaces: LibraryRetriever capability interface for hosts
    lease: Keyed workspace leases serializing retrievals of a library
    models: Pydantic data models for configuration and results
    registry: Retriever lookup by symbol, entry-point discovery
    retriever: HttpRetriever, the retrieve/validate pipeline
    url_template: ${library.<name>.version} substitution
    version_file: version.txt marker reading
    workspace: Download directory layout
"""

from importlib.metadata import version as get_package_version

from http_retriever.config import (
    ConfigManager,
    YamlConfigLoader,
    get_config_dir,
    get_default_config_path,
)
from http_retriever.credentials import (
    GLOBAL_CONTEXT,
    CredentialLookup,
    CredentialStore,
    InMemoryCredentialStore,
)
from http_retriever.errors import (
    AuthFailure,
    ConfigurationError,
    DownloadFailure,
    FilesystemError,
    LeaseTimeoutError,
    RetrieverError,
    TransportError,
    WorkspaceError,
)
from http_retriever.extractor import ArchiveExtractor
from http_retriever.fetcher import AuthenticatedFetcher
from http_retriever.interfaces import LibraryRetriever
from http_retriever.lease import Lease, WorkspaceLeaseManager, get_lease_manager
from http_retriever.models import (
    AppConfig,
    Credential,
    ExecutionContext,
    ExtractedBundle,
    FetchResult,
    LogLevel,
    ProbeResult,
    ProbeStatus,
    ResolvedCredential,
    RetrievalOutcome,
    RetrievalRequest,
    RetrievalState,
    RetrieverConfig,
    RetrieverSettings,
    ValidationKind,
    ValidationResult,
)
from http_retriever.registry import RetrieverRegistry, get_registry
from http_retriever.retriever import HttpRetriever
from http_retriever.url_template import resolve_url
from http_retriever.version_file import read_version
from http_retriever.workspace import download_dir

__version__ = get_package_version("http-lib-retriever")

__all__ = [
    "GLOBAL_CONTEXT",
    "AppConfig",
    "ArchiveExtractor",
    "AuthFailure",
    "AuthenticatedFetcher",
    "ConfigManager",
    "ConfigurationError",
    "Credential",
    "CredentialLookup",
    "CredentialStore",
    "DownloadFailure",
    "ExecutionContext",
    "ExtractedBundle",
    "FetchResult",
    "FilesystemError",
    "HttpRetriever",
    "InMemoryCredentialStore",
    "Lease",
    "LeaseTimeoutError",
    "LibraryRetriever",
    "LogLevel",
    "ProbeResult",
    "ProbeStatus",
    "ResolvedCredential",
    "RetrievalOutcome",
    "RetrievalRequest",
    "RetrievalState",
    "RetrieverConfig",
    "RetrieverError",
    "RetrieverRegistry",
    "RetrieverSettings",
    "TransportError",
    "ValidationKind",
    "ValidationResult",
    "WorkspaceError",
    "WorkspaceLeaseManager",
    "YamlConfigLoader",
    "__version__",
    "download_dir",
    "get_config_dir",
    "get_default_config_path",
    "get_lease_manager",
    "get_registry",
    "read_version",
    "resolve_url",
]
