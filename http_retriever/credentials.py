"""Credential lookup for authenticated downloads.

The credential store is owned by the host. The retriever only consumes the
small interface defined by CredentialStore and records every credential it
uses through ``track`` so the host can audit which unit of work used it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from .models import Credential, ExecutionContext, ResolvedCredential

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = structlog.get_logger(__name__)

# Context used when no unit of work is involved, e.g. version validation
GLOBAL_CONTEXT = ExecutionContext(owner="global")


class CredentialStore(ABC):
    """Interface of the host credential store."""

    @abstractmethod
    def find_credential_by_id(
        self, credentials_id: str, context: ExecutionContext
    ) -> Credential | None:
        """Find a credential usable by the given context.

        Args:
            credentials_id: Credential identifier.
            context: Execution context asking for the credential.

        Returns:
            The credential, or None if unknown or not permitted.
        """
        ...

    @abstractmethod
    def track(self, owner: str, credential: Credential) -> None:
        """Record that ``owner`` used ``credential``.

        Args:
            owner: Execution-context owner.
            credential: Credential that was used.
        """
        ...

    def list_credentials(self) -> list[Credential]:
        """List credentials offered by the store.

        Returns:
            Credentials, empty by default.
        """
        return []


@dataclass
class TrackingRecord:
    """One credential usage reported to the store."""

    owner: str
    credentials_id: str
    used_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


class InMemoryCredentialStore(CredentialStore):
    """Credential store backed by a dictionary.

    Used by the CLI (populated from the configuration file) and by tests.
    """

    def __init__(self, credentials: Iterable[Credential] = ()) -> None:
        self._credentials: dict[str, Credential] = {c.id: c for c in credentials}
        self.tracked: list[TrackingRecord] = []

    def add(self, credential: Credential) -> None:
        """Add or replace a credential."""
        self._credentials[credential.id] = credential

    def find_credential_by_id(
        self, credentials_id: str, context: ExecutionContext
    ) -> Credential | None:
        credential = self._credentials.get(credentials_id)
        if credential is None:
            return None
        if credential.allowed_owners is not None and context.owner not in credential.allowed_owners:
            logger.debug(
                "credential_not_permitted",
                credentials_id=credentials_id,
                owner=context.owner,
            )
            return None
        return credential

    def track(self, owner: str, credential: Credential) -> None:
        self.tracked.append(TrackingRecord(owner=owner, credentials_id=credential.id))

    def list_credentials(self) -> list[Credential]:
        return sorted(self._credentials.values(), key=lambda c: c.id)


class CredentialLookup:
    """Resolves credential references for one execution context."""

    def __init__(self, store: CredentialStore | None) -> None:
        """Initialize the lookup.

        Args:
            store: Host credential store. None means every fetch is anonymous.
        """
        self._store = store
        self._log = logger.bind(component="credential_lookup")

    def resolve(
        self,
        credentials_id: str | None,
        context: ExecutionContext = GLOBAL_CONTEXT,
        track: bool = True,
    ) -> ResolvedCredential | None:
        """Resolve a credential reference to a username/secret pair.

        Args:
            credentials_id: Credential reference. Empty or None means anonymous.
            context: Execution context the credential is used for.
            track: Report the usage to the store. Read-only checks pass False.

        Returns:
            The resolved credential, or None if absent, unknown or not permitted.
        """
        if not credentials_id or self._store is None:
            return None

        credential = self._store.find_credential_by_id(credentials_id, context)
        if credential is None:
            self._log.debug(
                "credential_unresolved", credentials_id=credentials_id, owner=context.owner
            )
            return None

        if track:
            self._store.track(context.owner, credential)
        self._log.debug(
            "credential_resolved", credentials_id=credentials_id, owner=context.owner, tracked=track
        )
        return ResolvedCredential(username=credential.username, secret=credential.password)
