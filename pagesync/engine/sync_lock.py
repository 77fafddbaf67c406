"""Single-flight gate around remote-mutating operations.

Every code path that writes the remote config file runs inside
:meth:`SyncLock.run`.  A second attempt while one is in flight fails at once
with :class:`SyncBusyError` -- there is no queue and no retry, so two
overlapping saves can never interleave their read-token / write pairs.

The busy flag and status message are cleared whenever the wrapped operation
finishes, however it finishes.  There is no timeout: a hung underlying
call holds the lock until it resolves.

The engine runs on a single event loop, so the check-and-set in
:meth:`SyncLock.hold` needs no further synchronisation (nothing awaits
between the check and the set).
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

from loguru import logger

T = TypeVar("T")

BUSY_MESSAGE = "Another sync operation is in progress. Please wait."


class SyncBusyError(RuntimeError):
    """Raised when a lock-guarded operation is attempted while another runs."""

    def __init__(self, current: str | None = None) -> None:
        super().__init__(BUSY_MESSAGE)
        self.current = current


class SyncLock:
    """Process-wide busy flag plus a human-readable status message."""

    def __init__(self) -> None:
        self._syncing = False
        self._message: str | None = None

    # -- State -----------------------------------------------------------------

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    @property
    def message(self) -> str | None:
        return self._message

    # -- Guard -----------------------------------------------------------------

    @asynccontextmanager
    async def hold(self, message: str | None = None) -> AsyncIterator[None]:
        """Hold the lock for the body of an ``async with`` block."""
        if self._syncing:
            logger.debug("Sync lock busy ({}); refusing '{}'", self._message, message)
            raise SyncBusyError(self._message)
        self._syncing = True
        self._message = message
        logger.debug("Sync lock acquired: {}", message)
        try:
            yield
        finally:
            self._syncing = False
            self._message = None
            logger.debug("Sync lock released: {}", message)

    async def run(self, operation: Callable[[], Awaitable[T]], message: str | None = None) -> T:
        """Await ``operation()`` while holding the lock and return its result."""
        async with self.hold(message):
            return await operation()

    def reset(self) -> None:
        """Force-clear the flag.  Only for logout / teardown, never mid-operation."""
        self._syncing = False
        self._message = None


_default_lock = SyncLock()


def get_sync_lock() -> SyncLock:
    """Return the process-wide lock shared by every manager by default."""
    return _default_lock


async def with_lock(operation: Callable[[], Awaitable[T]], message: str | None = None) -> T:
    """Run *operation* under the process-wide lock."""
    return await _default_lock.run(operation, message)
