"""Key/value storage interface backing the local cache.

The cache is a flat namespace of string keys to string values -- the same
model as browser ``localStorage``.  Repository scoping is a key naming
convention applied by :mod:`pagesync.engine.cache`, not by the backend.

The interface is synchronous: cache access happens between awaits on the
single event loop and never needs locking.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStorage(Protocol):
    """Protocol for string key/value persistence."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    def remove(self, key: str) -> None:
        """Delete *key*.  No-op if absent."""
        ...

    def keys(self) -> list[str]:
        """Return a snapshot of every stored key."""
        ...
