"""Exception hierarchy for library retrieval.

Every failure raised by the retrieval pipeline derives from RetrieverError so
that callers (the host build step, the CLI) can abort with one except clause.
"""

from __future__ import annotations

from pathlib import Path


class RetrieverError(Exception):
    """Base class for all retrieval failures."""


class ConfigurationError(RetrieverError):
    """Raised when the retriever configuration cannot be used.

    An empty URL template or a URL that is not HTTP(S) fails the retrieval
    immediately, before any network call.
    """


class WorkspaceError(RetrieverError):
    """Raised when no workspace can be derived for the execution context."""


class TransportError(RetrieverError):
    """Raised on DNS, connect, timeout or stream failures."""

    def __init__(self, url: str, message: str) -> None:
        """Initialize the transport error.

        Args:
            url: URL that was being requested.
            message: Description of the underlying failure.
        """
        self.url = url
        super().__init__(f"Network error while requesting {url}: {message}")


class DownloadFailure(RetrieverError):
    """Raised when the server answers with a terminal non-200 status."""

    def __init__(self, url: str, status: int) -> None:
        """Initialize the download failure.

        Args:
            url: URL that was requested.
            status: Last HTTP status code received.
        """
        self.url = url
        self.status = status
        super().__init__(f"Failed to download {url}: HTTP status {status}")


# Terminal status after the Basic-auth re-attempt is exhausted
AuthFailure = DownloadFailure


class FilesystemError(RetrieverError):
    """Raised when directories, archives or copies cannot be written."""

    def __init__(self, path: Path | str, message: str) -> None:
        """Initialize the filesystem error.

        Args:
            path: Offending path.
            message: What went wrong.
        """
        self.path = Path(path)
        super().__init__(f"{message}: {path}")


class LeaseTimeoutError(RetrieverError):
    """Raised when a workspace lease is not obtained within the timeout."""

    def __init__(self, key: str, holder: str | None, timeout: float) -> None:
        self.key = key
        self.holder = holder
        self.timeout = timeout
        super().__init__(
            f"Could not lease {key} within {timeout:.1f}s (held by {holder or 'unknown'})"
        )
