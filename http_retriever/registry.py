"""Registry mapping retriever symbols to implementations.

Hosts look retrievers up by symbol (``http`` for HttpRetriever). Third-party
retrievers can be contributed through the ``http_retriever.retrievers`` entry
point group.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from .interfaces import LibraryRetriever

logger = structlog.get_logger(__name__)

ENTRY_POINT_GROUP = "http_retriever.retrievers"


class RetrieverRegistry:
    """Registry of retriever classes keyed by symbol."""

    def __init__(self) -> None:
        """Initialize an empty retriever registry."""
        self._retrievers: dict[str, type[LibraryRetriever]] = {}

    def register(self, retriever_class: type[LibraryRetriever], symbol: str | None = None) -> None:
        """Register a retriever class.

        Args:
            retriever_class: The retriever class to register.
            symbol: Symbol to register under. Defaults to the class symbol.
        """
        name = symbol or retriever_class.symbol
        self._retrievers[name] = retriever_class
        logger.debug("retriever_registered", symbol=name, retriever=retriever_class.__name__)

    def unregister(self, symbol: str) -> bool:
        """Unregister a retriever by symbol.

        Returns:
            True if the retriever was unregistered, False if not found.
        """
        if symbol in self._retrievers:
            del self._retrievers[symbol]
            logger.debug("retriever_unregistered", symbol=symbol)
            return True
        return False

    def get(self, symbol: str) -> type[LibraryRetriever] | None:
        """Get a retriever class by symbol."""
        return self._retrievers.get(symbol)

    def create(self, symbol: str, *args: Any, **kwargs: Any) -> LibraryRetriever:
        """Instantiate the retriever registered under ``symbol``.

        Raises:
            KeyError: If no retriever is registered under the symbol.
        """
        retriever_class = self._retrievers.get(symbol)
        if retriever_class is None:
            raise KeyError(f"No retriever registered for symbol '{symbol}'")
        return retriever_class(*args, **kwargs)

    def list_symbols(self) -> list[str]:
        """List all registered symbols."""
        return sorted(self._retrievers)

    def discover(self) -> int:
        """Discover and register retrievers from entry points.

        Returns:
            Number of retrievers discovered.
        """
        from importlib.metadata import entry_points

        count = 0
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            try:
                retriever_class = ep.load()
                self.register(retriever_class, ep.name)
                count += 1
                logger.info("retriever_discovered", symbol=ep.name, module=ep.value)
            except Exception as e:
                logger.error("retriever_discovery_failed", symbol=ep.name, error=str(e))

        return count


def register_builtin_retrievers(registry: RetrieverRegistry) -> None:
    """Register the retrievers shipped with this package."""
    from .retriever import HttpRetriever

    registry.register(HttpRetriever)


# Global registry instance
_registry: RetrieverRegistry | None = None


def get_registry() -> RetrieverRegistry:
    """Get the global retriever registry, with built-in retrievers registered."""
    global _registry
    if _registry is None:
        _registry = RetrieverRegistry()
        register_builtin_retrievers(_registry)
    return _registry


def reset_registry() -> None:
    """Reset the global registry.

    Useful for testing.
    """
    global _registry
    _registry = None
