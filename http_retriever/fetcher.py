"""Authenticated HTTP access to library archives.

Two authentication strategies are supported:

- Reactive (default): the first request is anonymous. If the server answers
  with a Basic challenge, the request is repeated once with credentials.
- Preemptive: the ``Authorization: Basic`` header is sent on the first
  request. Required for servers that answer 404 instead of 401 for protected
  resources (e.g. Artifactory with "Hide Existence of Unauthorized Resources").

The same strategy drives both the download (GET) and the reachability
probe (HEAD).
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlsplit

import aiohttp
import structlog

from .errors import DownloadFailure, FilesystemError, TransportError
from .models import FetchResult, ProbeResult, ProbeStatus

if TYPE_CHECKING:
    from .lease import Lease
    from .models import ResolvedCredential, RetrieverSettings

logger = structlog.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 65536  # 64 KB chunks
USER_AGENT = "http-lib-retriever/1.0"

# Same values as the aiohttp session default
DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=300, sock_connect=30)


def archive_name(url: str, fallback: str) -> str:
    """Return the file name of the archive addressed by ``url``.

    Args:
        url: Resolved library URL.
        fallback: Name used when the URL path has no last segment.

    Returns:
        The last path segment of the URL, or ``fallback``.
    """
    name = PurePosixPath(unquote(urlsplit(url).path)).name
    return name or fallback


def _basic_auth(credential: ResolvedCredential) -> aiohttp.BasicAuth:
    return aiohttp.BasicAuth(credential.username, credential.secret.get_secret_value())


def _is_basic_challenge(response: aiohttp.ClientResponse) -> bool:
    if response.status == 401:
        return True
    challenge = response.headers.get("WWW-Authenticate", "")
    return challenge.lower().startswith("basic")


class AuthenticatedFetcher:
    """Downloads archives and probes URLs with Basic authentication.

    Example:
        >>> fetcher = AuthenticatedFetcher(connect_timeout=10)
        >>> result = await fetcher.fetch(url, lease, "lib.zip", credential, preemptive_auth=False)
    """

    def __init__(
        self,
        connect_timeout: float | None = None,
        read_timeout: float | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize the fetcher.

        Args:
            connect_timeout: Connect timeout in seconds. None = transport default.
            read_timeout: Socket read timeout in seconds. None = transport default.
            chunk_size: Size of the chunks streamed to disk.
        """
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout
        self._chunk_size = chunk_size
        self._log = logger.bind(component="fetcher")

    @classmethod
    def from_settings(cls, settings: RetrieverSettings) -> AuthenticatedFetcher:
        """Create a fetcher from global settings.

        Args:
            settings: Global retriever settings.

        Returns:
            Configured AuthenticatedFetcher instance.
        """
        return cls(
            connect_timeout=settings.connect_timeout_seconds,
            read_timeout=settings.read_timeout_seconds,
        )

    def _timeout(self) -> aiohttp.ClientTimeout:
        if self._connect_timeout is None and self._read_timeout is None:
            return DEFAULT_TIMEOUT
        return aiohttp.ClientTimeout(
            total=None,
            connect=self._connect_timeout,
            sock_read=self._read_timeout,
        )

    async def _send(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        credential: ResolvedCredential | None,
        preemptive_auth: bool,
    ) -> aiohttp.ClientResponse:
        """Send a request, answering a Basic challenge at most once.

        The caller owns the returned response and must release it.
        """
        log = self._log.bind(method=method, url=url)
        auth = _basic_auth(credential) if preemptive_auth and credential else None
        response = await session.request(method, url, auth=auth)

        if response.status == 200 or auth is not None or credential is None:
            return response
        if not _is_basic_challenge(response):
            log.debug("no_auth_challenge", status=response.status)
            return response

        log.debug("auth_challenge_received", status=response.status)
        response.release()
        return await session.request(method, url, auth=_basic_auth(credential))

    async def fetch(
        self,
        url: str,
        lease: Lease,
        filename: str,
        credential: ResolvedCredential | None = None,
        preemptive_auth: bool = False,
    ) -> FetchResult:
        """Download ``url`` into ``<lease dir>/<filename>``.

        Args:
            url: Resolved library URL.
            lease: Lease on the download directory.
            filename: Name of the archive file to write.
            credential: Optional Basic credential.
            preemptive_auth: Attach the credential to the first request.

        Returns:
            FetchResult describing the written archive.

        Raises:
            DownloadFailure: On a terminal non-200 status.
            TransportError: On network failures.
            FilesystemError: If the archive cannot be written.
        """
        log = self._log.bind(url=url, preemptive_auth=preemptive_auth)
        archive_path = lease.path / filename
        headers = {"User-Agent": USER_AGENT}

        try:
            async with aiohttp.ClientSession(timeout=self._timeout(), headers=headers) as session:
                response = await self._send(session, "GET", url, credential, preemptive_auth)
                async with response:
                    if response.status != 200:
                        log.warning("download_failed", status=response.status)
                        raise DownloadFailure(url, response.status)

                    bytes_downloaded = await self._write_body(response, archive_path)

        except aiohttp.ClientError as e:
            log.warning("download_transport_error", error=str(e))
            raise TransportError(url, str(e) or type(e).__name__) from e
        except TimeoutError:
            log.warning("download_timed_out")
            raise TransportError(url, "request timed out") from None

        log.info("download_complete", path=str(archive_path), bytes=bytes_downloaded)
        return FetchResult(
            local_archive_path=archive_path,
            http_status=200,
            bytes_downloaded=bytes_downloaded,
        )

    async def _write_body(self, response: aiohttp.ClientResponse, archive_path: Path) -> int:
        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(archive_path.parent, "Could not create the folders") from e

        bytes_downloaded = 0
        try:
            with archive_path.open("wb") as f:
                async for chunk in response.content.iter_chunked(self._chunk_size):
                    f.write(chunk)
                    bytes_downloaded += len(chunk)
        except (aiohttp.ClientError, TimeoutError):
            raise
        except OSError as e:
            raise FilesystemError(archive_path, "Could not write the archive") from e
        return bytes_downloaded

    async def probe(
        self,
        url: str,
        credential: ResolvedCredential | None = None,
        preemptive_auth: bool = False,
    ) -> ProbeResult:
        """Check whether ``url`` can be downloaded, without fetching the body.

        Any status other than 200 and 401 is reported as not found.

        Args:
            url: Resolved library URL.
            credential: Optional Basic credential.
            preemptive_auth: Attach the credential to the first request.

        Returns:
            ProbeResult with the classification.
        """
        log = self._log.bind(url=url)
        try:
            async with aiohttp.ClientSession(
                timeout=self._timeout(), headers={"User-Agent": USER_AGENT}
            ) as session:
                response = await self._send(session, "HEAD", url, credential, preemptive_auth)
                async with response:
                    status = response.status
        except aiohttp.ClientError as e:
            log.info("probe_unreachable", error=str(e))
            return ProbeResult(status=ProbeStatus.UNREACHABLE, cause=str(e) or type(e).__name__)
        except TimeoutError:
            log.info("probe_timed_out")
            return ProbeResult(status=ProbeStatus.UNREACHABLE, cause="request timed out")

        if status == 200:
            probe_status = ProbeStatus.AVAILABLE
        elif status == 401:
            probe_status = ProbeStatus.UNAUTHORIZED
        else:
            probe_status = ProbeStatus.NOT_FOUND

        log.debug("probe_complete", status=status, classification=probe_status.value)
        return ProbeResult(status=probe_status, http_status=status)
