"""HTTP library retriever.

Retrieves a library archive over HTTP(S) and materializes it in the caller's
target directory:

    resolve URL -> lease download dir -> fetch -> extract -> read version.txt
    -> copy to target -> release lease

The lease is released on every exit path. Nothing else is rolled back when a
step fails.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar, TextIO
from urllib.parse import urlsplit

import structlog

from .credentials import GLOBAL_CONTEXT, CredentialLookup, CredentialStore
from .errors import ConfigurationError, FilesystemError
from .extractor import ArchiveExtractor
from .fetcher import AuthenticatedFetcher, archive_name
from .interfaces import LibraryRetriever
from .lease import WorkspaceLeaseManager, get_lease_manager
from .models import (
    ExtractedBundle,
    ProbeStatus,
    RetrievalOutcome,
    RetrievalRequest,
    RetrievalState,
    RetrieverConfig,
    RetrieverSettings,
    ValidationKind,
    ValidationResult,
)
from .url_template import resolve_url
from .version_file import read_version
from .workspace import download_dir

if TYPE_CHECKING:
    from .lease import Lease
    from .models import ExecutionContext

logger = structlog.get_logger(__name__)

SUPPORTED_SCHEMES = ("http", "https")


def _check_url(url: str) -> None:
    parts = urlsplit(url)
    if parts.scheme.lower() not in SUPPORTED_SCHEMES or not parts.netloc:
        raise ConfigurationError(f"Unsupported library URL (HTTP or HTTPS expected): {url}")


def _clear_directory(path: Path) -> None:
    if not path.exists():
        return
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def _copy_tree(source: Path, target: Path) -> None:
    shutil.copytree(source, target, symlinks=True, dirs_exist_ok=True)


class HttpRetriever(LibraryRetriever):
    """Retrieves libraries from an HTTP(S) URL template.

    Example:
        >>> retriever = HttpRetriever(
        ...     RetrieverConfig(http_url="https://repo/my-lib-${library.my-lib.version}.zip"),
        ... )
        >>> await retriever.retrieve("my-lib", "1.2.3", target, context, sys.stdout)
    """

    symbol: ClassVar[str] = "http"
    display_name: ClassVar[str] = "HTTP"

    def __init__(
        self,
        config: RetrieverConfig,
        credential_store: CredentialStore | None = None,
        settings: RetrieverSettings | None = None,
        lease_manager: WorkspaceLeaseManager | None = None,
        fetcher: AuthenticatedFetcher | None = None,
        extractor: ArchiveExtractor | None = None,
    ) -> None:
        """Initialize the retriever.

        Args:
            config: URL template, credential reference and auth policy.
            credential_store: Host credential store. None = anonymous downloads.
            settings: Global settings (timeouts, workspace suffix).
            lease_manager: Lease table. Defaults to the process-wide manager.
            fetcher: HTTP fetcher, built from settings if omitted.
            extractor: Archive extractor.
        """
        self._config = config
        self._settings = settings or RetrieverSettings()
        self._credentials = CredentialLookup(credential_store)
        self._leases = lease_manager or get_lease_manager()
        self._fetcher = fetcher or AuthenticatedFetcher.from_settings(self._settings)
        self._extractor = extractor or ArchiveExtractor()
        self._log = logger.bind(component="http_retriever")

    @property
    def url(self) -> str | None:
        """Return the URL template of the library archive."""
        return self._config.http_url

    @property
    def credentials_id(self) -> str | None:
        """Return the credential reference used for authenticated downloads."""
        return self._config.credentials_id

    @property
    def preemptive_auth(self) -> bool:
        """Return whether Basic credentials are sent on the first request."""
        return self._config.preemptive_auth

    def request_for(self, name: str, version: str) -> RetrievalRequest:
        """Build the immutable request for one retrieval."""
        return RetrievalRequest(
            resource_name=name,
            requested_version=version,
            url_template=self.url,
            credentials_id=self.credentials_id,
            preemptive_auth=self.preemptive_auth,
        )

    def is_secure(self, url: str) -> bool:
        """Return whether the URL uses TLS."""
        return urlsplit(url).scheme.lower() == "https"

    async def retrieve(
        self,
        name: str,
        version: str,
        target: Path,
        context: ExecutionContext,
        log_sink: TextIO,
        changelog: bool = True,  # noqa: ARG002 - part of the host interface
    ) -> RetrievalOutcome:
        """Retrieve a library version into ``target``.

        Args:
            name: Library name.
            version: Requested version.
            target: Directory receiving the library content.
            context: Execution context of the requesting unit of work.
            log_sink: Build log receiving user-facing lines.
            changelog: Not used.

        Returns:
            Outcome of the retrieval. A retriever without URL is a no-op.

        Raises:
            ConfigurationError: If the URL is empty or not HTTP(S).
            WorkspaceError: If the context has no workspace.
            DownloadFailure: If the server does not answer 200.
            TransportError: On network failures.
            FilesystemError: If the archive cannot be written, extracted or copied.
        """
        request = self.request_for(name, version)
        log = self._log.bind(library=name, version=version, owner=context.owner)

        if request.url_template is None:
            log.info("retrieval_not_requested")
            return RetrievalOutcome(state=RetrievalState.RELEASED_SUCCESS)
        if not request.url_template:
            raise ConfigurationError("The URL of the shared library is empty.")

        state = RetrievalState.IDLE
        try:
            source_url = resolve_url(request.url_template, name, version)
            _check_url(source_url)
            state = RetrievalState.URL_RESOLVED
            log = log.bind(url=source_url)
            log.debug("retrieval_state", state=state.value)

            directory = download_dir(context, name, self._settings.workspace_suffix)
            async with self._leases.lease(
                directory, context.owner, timeout=self._settings.lease_timeout_seconds
            ) as lease:
                state = RetrievalState.LEASE_HELD
                log.debug("retrieval_state", state=state.value, directory=str(directory))

                bundle = await self._materialize(request, source_url, lease, context, log)
                resolved_version = bundle.resolved_version
                state = RetrievalState.VERSION_RECONCILED

                self._report(log_sink, name, version, resolved_version, source_url)

                try:
                    await asyncio.to_thread(_copy_tree, lease.path, target)
                except (OSError, shutil.Error) as e:
                    raise FilesystemError(target, f"Could not copy library ({e})") from e
                state = RetrievalState.COPIED
                log.debug("retrieval_state", state=state.value, target=str(target))

        except asyncio.CancelledError:
            log.warning("retrieval_cancelled", state=state.value)
            raise
        except Exception as e:
            log.error(
                "retrieval_failed",
                state=state.value,
                final_state=RetrievalState.RELEASED_FAILED.value,
                error=str(e),
            )
            raise

        log.info("library_retrieved", resolved_version=resolved_version, target=str(target))
        return RetrievalOutcome(
            state=RetrievalState.RELEASED_SUCCESS,
            source_url=source_url,
            resolved_version=resolved_version,
            target=target,
        )

    async def _materialize(
        self,
        request: RetrievalRequest,
        source_url: str,
        lease: Lease,
        context: ExecutionContext,
        log: structlog.stdlib.BoundLogger,
    ) -> ExtractedBundle:
        """Fetch and extract the archive into the leased directory.

        Returns:
            The extracted tree and the version read from its marker, if any.
        """
        try:
            await asyncio.to_thread(_clear_directory, lease.path)
        except OSError as e:
            raise FilesystemError(lease.path, f"Could not clean download directory ({e})") from e

        credential = self._credentials.resolve(request.credentials_id, context)
        filename = archive_name(source_url, f"{request.resource_name}.zip")
        result = await self._fetcher.fetch(
            source_url,
            lease,
            filename,
            credential=credential,
            preemptive_auth=request.preemptive_auth,
        )
        log.debug("retrieval_state", state=RetrievalState.FETCHED.value)

        root = await self._extractor.extract(lease, result.local_archive_path)
        log.debug("retrieval_state", state=RetrievalState.EXTRACTED.value)

        resolved_version = await asyncio.to_thread(read_version, root)
        return ExtractedBundle(root=root, resolved_version=resolved_version)

    @staticmethod
    def _report(
        log_sink: TextIO,
        name: str,
        version: str,
        resolved_version: str | None,
        source_url: str,
    ) -> None:
        lines = []
        if resolved_version is not None and resolved_version != version:
            lines.append(f"Resolving version {resolved_version} of library {name}...")
        lines.append(f"From HTTP URL: {source_url}")
        for line in lines:
            print(line, file=log_sink)

    async def validate_version(self, name: str, version: str) -> ValidationResult:
        """Check whether a library version is available for download.

        Args:
            name: Library name.
            version: Version to check.

        Returns:
            OK when the archive answers 200 over HTTPS, a warning otherwise.
        """
        log = self._log.bind(library=name, version=version)
        if not self.url:
            return ValidationResult(
                kind=ValidationKind.WARNING,
                message="Cannot validate default version.",
                cause="No URL configured",
            )

        url = resolve_url(self.url, name, version)
        try:
            _check_url(url)
        except ConfigurationError as e:
            return ValidationResult(
                kind=ValidationKind.WARNING,
                message="Cannot validate default version.",
                cause=str(e),
            )

        credential = self._credentials.resolve(self.credentials_id, GLOBAL_CONTEXT, track=False)
        probe = await self._fetcher.probe(url, credential, self.preemptive_auth)
        log.info("version_validated", url=url, probe=probe.status.value)

        if probe.status == ProbeStatus.AVAILABLE:
            if self.is_secure(url):
                return ValidationResult(
                    kind=ValidationKind.OK, message=f"Version {version} is valid."
                )
            return ValidationResult(
                kind=ValidationKind.WARNING,
                message=f"Version {version} is valid, but the URL is not secure. "
                "Consider using HTTPS.",
            )
        if probe.status == ProbeStatus.UNAUTHORIZED:
            return ValidationResult(
                kind=ValidationKind.WARNING,
                message="You are not authorized to access to this URL...",
            )
        if probe.status == ProbeStatus.NOT_FOUND:
            return ValidationResult(
                kind=ValidationKind.WARNING,
                message="This URL does not exist...",
            )
        return ValidationResult(
            kind=ValidationKind.WARNING,
            message="Cannot validate default version.",
            cause=probe.cause,
        )
