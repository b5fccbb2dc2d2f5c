"""Workspace layout for library downloads.

Each library gets a scratch directory next to the owner's workspace::

    <base workspace><suffix>libs/<library name>/

The directory path doubles as the lease key, so distinct libraries never
collide while repeated retrievals of the same library serialize.
"""

from __future__ import annotations

import os
from pathlib import Path

from .errors import ConfigurationError, WorkspaceError
from .models import ExecutionContext

SUFFIX_ENV_VAR = "HTTP_RETRIEVER_WORKSPACE_SUFFIX"
DEFAULT_SUFFIX = "@"


def get_workspace_suffix(override: str | None = None) -> str:
    """Return the suffix separating a workspace from its sibling directories.

    Args:
        override: Explicit suffix from settings, takes precedence.

    Returns:
        The suffix, ``@`` unless overridden.
    """
    if override is not None:
        return override
    return os.environ.get(SUFFIX_ENV_VAR, DEFAULT_SUFFIX)


def download_dir(context: ExecutionContext, name: str, suffix: str | None = None) -> Path:
    """Compute the scratch directory for a library.

    Args:
        context: Execution context owning the workspace.
        name: Library name.
        suffix: Optional suffix override.

    Returns:
        Absolute path of the library scratch directory.

    Raises:
        WorkspaceError: If the context has no workspace.
        ConfigurationError: If the name would escape the libs directory.
    """
    if context.workspace is None:
        raise WorkspaceError(f"Cannot check out in non-top-level build ({context.owner})")

    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise ConfigurationError(f"Invalid library name: {name!r}")

    base = context.workspace.absolute()
    libs = base.parent / f"{base.name}{get_workspace_suffix(suffix)}libs"
    return libs / name
