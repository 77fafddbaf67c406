"""Local filesystem key/value storage.

Stores the whole cache as a single JSON object::

    {cache_path}  ->  {"postsPath_owner/repo": "content/posts", ...}

The file is loaded once on construction and rewritten on every mutation.
Writes are atomic: data is written to a temporary file in the same
directory, then renamed to the target path.  This prevents a corrupt cache
if the process crashes mid-write.
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from pathlib import Path

from loguru import logger


class FileStorage:
    """JSON-file implementation of the KeyValueStorage protocol."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data: dict[str, str] = _load(self._path)

    @property
    def path(self) -> Path:
        return self._path

    # -- Read ------------------------------------------------------------------

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def keys(self) -> list[str]:
        return list(self._data)

    # -- Write -----------------------------------------------------------------

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def _flush(self) -> None:
        _atomic_write(self._path, json.dumps(self._data, indent=2, sort_keys=True))


# -- Helpers -------------------------------------------------------------------


def _load(path: Path) -> dict[str, str]:
    """Read the cache file.  A missing or unreadable file yields an empty cache."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Cache file {} is not valid JSON; starting empty", path)
        return {}
    if not isinstance(data, dict):
        logger.warning("Cache file {} does not hold an object; starting empty", path)
        return {}
    return {str(k): str(v) for k, v in data.items()}


def _atomic_write(path: Path, data: str) -> None:
    """Write data atomically: temp file + rename.

    The temp file is created in the same directory so ``os.replace`` is
    atomic on POSIX.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise
