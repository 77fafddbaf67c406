"""Key/value storage backends for the local cache."""

from pagesync.engine.store.base import KeyValueStorage
from pagesync.engine.store.local import FileStorage
from pagesync.engine.store.memory import MemoryStorage

__all__ = ["FileStorage", "KeyValueStorage", "MemoryStorage"]
