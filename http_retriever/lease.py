"""Workspace leases for library downloads.

A lease is an exclusive claim on a scratch directory. Retrievals of the same
library (same directory key) serialize on it; different keys never wait on
each other. Retrievers share one process-wide manager (see
``get_lease_manager``) so that separate retriever instances serialize too.

Waiting uses asyncio.Condition rather than polling, and a lease is always
released when the ``lease()`` block exits, including on cancellation.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from .errors import LeaseTimeoutError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = structlog.get_logger(__name__)


@dataclass
class Lease:
    """Exclusive ownership of a directory."""

    path: Path
    holder: str
    acquired_at: float = field(default_factory=time.monotonic)
    released: bool = False

    @property
    def key(self) -> str:
        """Return the lock-table key of the leased directory."""
        return str(self.path)

    @property
    def hold_duration(self) -> float:
        """Return how long the lease has been held in seconds."""
        return time.monotonic() - self.acquired_at


class WorkspaceLeaseManager:
    """Keyed lock table for scratch directories.

    Example:
        >>> manager = WorkspaceLeaseManager()
        >>> async with manager.lease(Path("/ws/job@libs/my-lib"), "job") as lease:
        ...     (lease.path / "lib.zip").write_bytes(data)
    """

    def __init__(self) -> None:
        self._held: dict[str, Lease] = {}
        self._waiting: dict[str, int] = {}
        self._condition: asyncio.Condition | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._log = logger.bind(component="lease_manager")

    def _get_condition(self) -> asyncio.Condition:
        """Return the condition of the running event loop.

        A condition is bound to the loop it first waits on. A new loop, as
        with successive asyncio.run() calls, gets a fresh one.
        """
        loop = asyncio.get_running_loop()
        if self._condition is None or self._loop is not loop:
            self._condition = asyncio.Condition()
            self._loop = loop
        return self._condition

    async def acquire(self, path: Path, holder: str, timeout: float | None = None) -> Lease:
        """Wait until the directory is free and lease it.

        Args:
            path: Directory to lease.
            holder: Name of the unit of work acquiring the lease.
            timeout: Maximum wait in seconds. None waits indefinitely.

        Returns:
            The live lease.

        Raises:
            LeaseTimeoutError: If the timeout expires first.
            asyncio.CancelledError: If the waiting task is cancelled.
        """
        key = str(path)
        log = self._log.bind(key=key, holder=holder)
        deadline = None if timeout is None else time.monotonic() + timeout

        condition = self._get_condition()
        async with condition:
            self._waiting[key] = self._waiting.get(key, 0) + 1
            try:
                while key in self._held:
                    log.debug("waiting_for_lease", current_holder=self._held[key].holder)
                    if deadline is None:
                        await condition.wait()
                        continue

                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        log.warning("lease_timeout", current_holder=self._held[key].holder)
                        raise LeaseTimeoutError(key, self._held[key].holder, timeout or 0.0)
                    with contextlib.suppress(TimeoutError):
                        await asyncio.wait_for(condition.wait(), timeout=remaining)
            finally:
                self._waiting[key] -= 1
                if not self._waiting[key]:
                    del self._waiting[key]

            lease = Lease(path=path, holder=holder)
            self._held[key] = lease
            log.info("lease_acquired")
            return lease

    async def release(self, lease: Lease) -> None:
        """Release a lease. Releasing twice is a no-op.

        Args:
            lease: Lease returned by acquire().
        """
        condition = self._get_condition()
        async with condition:
            if lease.released:
                return
            lease.released = True
            if self._held.get(lease.key) is lease:
                del self._held[lease.key]
            self._log.info(
                "lease_released",
                key=lease.key,
                holder=lease.holder,
                hold_duration=lease.hold_duration,
            )
            condition.notify_all()

    @contextlib.asynccontextmanager
    async def lease(
        self, path: Path, holder: str, timeout: float | None = None
    ) -> AsyncIterator[Lease]:
        """Hold a lease for the duration of the block.

        Args:
            path: Directory to lease.
            holder: Name of the unit of work.
            timeout: Maximum wait in seconds. None waits indefinitely.

        Yields:
            The live lease.
        """
        lease = await self.acquire(path, holder, timeout=timeout)
        try:
            yield lease
        finally:
            # Shielded so a cancellation arriving here cannot strand the key
            await asyncio.shield(self.release(lease))

    def is_held(self, path: Path) -> bool:
        """Check whether a directory is currently leased."""
        return str(path) in self._held

    def get_holder(self, path: Path) -> str | None:
        """Return the holder of a directory lease, or None."""
        lease = self._held.get(str(path))
        return lease.holder if lease else None

    def get_state_summary(self) -> dict[str, Any]:
        """Get a summary of held leases and waiters.

        Returns:
            Dictionary with lease state information.
        """
        return {
            "held_count": len(self._held),
            "held": {
                key: {"holder": lease.holder, "hold_duration": lease.hold_duration}
                for key, lease in self._held.items()
            },
            "waiting": dict(self._waiting),
        }


_lease_manager: WorkspaceLeaseManager | None = None


def get_lease_manager() -> WorkspaceLeaseManager:
    """Get the process-wide lease manager shared by all retrievers."""
    global _lease_manager
    if _lease_manager is None:
        _lease_manager = WorkspaceLeaseManager()
    return _lease_manager


def reset_lease_manager() -> None:
    """Reset the process-wide lease manager.

    Useful for testing.
    """
    global _lease_manager
    _lease_manager = None
