"""Retriever capability interface.

Hosts drive library retrieval through LibraryRetriever. Implementations stay
independent of the host's extension mechanism; a host adapter only needs to
map its own objects onto these two operations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar, TextIO

if TYPE_CHECKING:
    from pathlib import Path

    from .models import ExecutionContext, RetrievalOutcome, ValidationResult


class LibraryRetriever(ABC):
    """Abstract base class for library retrievers."""

    symbol: ClassVar[str]
    display_name: ClassVar[str]

    @abstractmethod
    async def retrieve(
        self,
        name: str,
        version: str,
        target: Path,
        context: ExecutionContext,
        log_sink: TextIO,
        changelog: bool = True,
    ) -> RetrievalOutcome:
        """Retrieve a library version into ``target``.

        Args:
            name: Library name.
            version: Requested version.
            target: Directory receiving the library content.
            context: Execution context of the requesting unit of work.
            log_sink: Build log receiving user-facing lines.
            changelog: Whether the host wants a changelog. Optional for implementations.

        Returns:
            Outcome of the retrieval.
        """
        ...

    @abstractmethod
    async def validate_version(self, name: str, version: str) -> ValidationResult:
        """Check whether a library version can be retrieved.

        Args:
            name: Library name.
            version: Version to check.

        Returns:
            Validation result, never raises for unreachable libraries.
        """
        ...
