"""Shared test fixtures: library archives and a local library server."""

from __future__ import annotations

import asyncio
import io
import zipfile
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import aiohttp
import pytest
import structlog
from aiohttp import web
from aiohttp.test_utils import TestServer

from http_retriever.credentials import InMemoryCredentialStore
from http_retriever.lease import reset_lease_manager
from http_retriever.models import Credential, ExecutionContext, ResolvedCredential

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Generator
    from pathlib import Path

USERNAME = "user"
PASSWORD = "password"
CREDENTIALS_ID = "idcreds"
EXPECTED_AUTH = aiohttp.BasicAuth(USERNAME, PASSWORD).encode()

LIBRARY_FILES = {
    "version.txt": "9.9.9\n",
    "src/org/example/Helper.groovy": "class Helper {}\n",
    "vars/greet.groovy": "def call() { echo 'hello' }\n",
    "resources/config.json": "{}\n",
}


def make_zip(files: dict[str, str], prefix: str = "") -> bytes:
    """Build a zip archive in memory."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(prefix + name, content)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def isolated_config_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Path, None, None]:
    """Isolate tests from the real user configuration directory."""
    config_home = tmp_path / "xdg_config"
    config_home.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.delenv("HTTP_RETRIEVER_WORKSPACE_SUFFIX", raising=False)
    yield config_home
    # CLI invocations configure structlog against their captured stderr
    structlog.reset_defaults()
    reset_lease_manager()


@pytest.fixture
def library_files() -> dict[str, str]:
    """Files of a library with a version marker."""
    return dict(LIBRARY_FILES)


@pytest.fixture
def zip_builder() -> Callable[..., bytes]:
    """Function building zip archives in memory."""
    return make_zip


@pytest.fixture
def library_zip() -> bytes:
    """Library archive with a version marker."""
    return make_zip(LIBRARY_FILES)


@pytest.fixture
def credential() -> ResolvedCredential:
    """Credential accepted by the library server."""
    return ResolvedCredential(username=USERNAME, secret=PASSWORD)


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    """Store holding the credential accepted by the library server."""
    return InMemoryCredentialStore(
        [Credential(id=CREDENTIALS_ID, username=USERNAME, password=PASSWORD)]
    )


@pytest.fixture
def context(tmp_path: Path) -> ExecutionContext:
    """Execution context of a top-level job."""
    workspace = tmp_path / "workspace" / "job"
    workspace.mkdir(parents=True)
    return ExecutionContext(owner="job", workspace=workspace)


@dataclass
class LibraryServer:
    """A running library server and the requests it received."""

    server: TestServer
    requests: list[tuple[str, str, str | None]] = field(default_factory=list)

    def url(self, path: str) -> str:
        """Return the absolute URL of ``path``."""
        return f"http://{self.server.host}:{self.server.port}{path}"

    def methods(self) -> list[str]:
        """Return the methods of the received requests."""
        return [method for method, _, _ in self.requests]

    def authorizations(self) -> list[str | None]:
        """Return the Authorization headers of the received requests."""
        return [auth for _, _, auth in self.requests]


def build_app(
    archives: dict[str, bytes],
    requests: list[tuple[str, str, str | None]],
    unauthenticated_status: int | None = None,
    status_override: int | None = None,
    gate: asyncio.Event | None = None,
) -> web.Application:
    """Build an application serving archives by name.

    Args:
        archives: Archive bodies keyed by file name.
        requests: List receiving (method, path, authorization) of each request.
        unauthenticated_status: Status returned to requests without valid Basic
            credentials (401 adds a Basic challenge). None serves everyone.
        status_override: Status returned to every authorized request.
        gate: Event every request waits for before being answered.
    """

    async def handler(request: web.Request) -> web.Response:
        authorization = request.headers.get("Authorization")
        requests.append((request.method, request.path, authorization))

        if gate is not None:
            await gate.wait()

        if unauthenticated_status is not None and authorization != EXPECTED_AUTH:
            if unauthenticated_status == 401:
                return web.Response(status=401, headers={"WWW-Authenticate": 'Basic realm="libs"'})
            return web.Response(status=unauthenticated_status)

        if status_override is not None:
            return web.Response(status=status_override)

        body = archives.get(request.match_info["name"])
        if body is None:
            return web.Response(status=404)
        return web.Response(body=body, content_type="application/zip")

    app = web.Application()
    app.router.add_route("*", "/{name}", handler)
    return app


@pytest.fixture
async def library_server() -> AsyncIterator[Callable[..., Awaitable[LibraryServer]]]:
    """Factory starting local library servers, closed after the test."""
    servers: list[TestServer] = []

    async def start(
        archives: dict[str, bytes],
        unauthenticated_status: int | None = None,
        status_override: int | None = None,
        gate: asyncio.Event | None = None,
    ) -> LibraryServer:
        requests: list[tuple[str, str, str | None]] = []
        server = TestServer(
            build_app(archives, requests, unauthenticated_status, status_override, gate)
        )
        await server.start_server()
        servers.append(server)
        return LibraryServer(server=server, requests=requests)

    yield start

    for server in servers:
        await server.close()
