"""Local cache adapter: per-repository settings over a key/value backend.

Key layout::

    {field}_{repository_id}   repository-scoped settings and layout fields
    {field}                   global preferences (UI language)

Values are stored as text.  On load each value goes through type inference
(``"true"``/``"false"`` -> bool, numeric literal -> number, otherwise
string) and then its validator; a bad entry is skipped without affecting
the others.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Any

from loguru import logger

from pagesync.engine import schema
from pagesync.engine.models.settings import AppSettings
from pagesync.engine.models.workspace import CollectionLayout
from pagesync.engine.store.base import KeyValueStorage

# Layout fields cached as JSON text; they belong to the active collection
# once a workspace has collections.
LAYOUT_KEYS: dict[str, str] = {
    "template": "postTemplate",
    "table_columns": "postTableColumns",
    "column_widths": "postTableColumnWidths",
}

WORKSPACE_BLOB_KEY = "pageel-collections"
"""Global blob holding the last persisted workspace."""

GLOBAL_BLOB_KEYS = ("pageel-settings", WORKSPACE_BLOB_KEY)


def storage_key(field: str, repository_id: str) -> str:
    return f"{field}_{repository_id}"


def decode(raw: str) -> Any:
    """Infer the type of a cached text value."""
    if raw == "true":
        return True
    if raw == "false":
        return False
    text = raw.strip()
    if text:
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return raw
        if math.isfinite(number):
            return number
    return raw


def encode(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class LocalCache:
    """Repository-scoped settings cache.

    Holds no state of its own beyond the storage reference; every call reads
    or writes the backend directly.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    # -- Settings --------------------------------------------------------------

    def load(self, repository_id: str) -> dict[str, Any]:
        """Return the valid subset of cached settings, keyed by wire name."""
        loaded: dict[str, Any] = {}
        for field in schema.SETTINGS_SCHEMA:
            raw = self._storage.get(storage_key(field, repository_id))
            if raw is None:
                continue
            value = decode(raw)
            if schema.validate(field, value):
                loaded[field] = value
            else:
                logger.debug("Ignoring invalid cached {} for {}: {!r}", field, repository_id, raw)
        return loaded

    def save(self, repository_id: str, settings: AppSettings | Mapping[str, Any]) -> None:
        """Write every field of *settings* under its scoped key."""
        fields = settings.to_wire() if isinstance(settings, AppSettings) else dict(settings)
        for field, value in fields.items():
            if value is None:
                continue
            self._storage.set(storage_key(field, repository_id), encode(value))

    # -- Collection layout -----------------------------------------------------

    def load_layout(self, repository_id: str) -> CollectionLayout:
        values: dict[str, Any] = {}
        for attr, field in LAYOUT_KEYS.items():
            raw = self._storage.get(storage_key(field, repository_id))
            if raw is None:
                continue
            try:
                values[attr] = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Ignoring malformed cached {} for {}", field, repository_id)
        try:
            return CollectionLayout.model_validate(values)
        except ValueError:
            logger.debug("Ignoring cached layout of unexpected shape for {}", repository_id)
            return CollectionLayout()

    def save_layout(self, repository_id: str, layout: CollectionLayout) -> None:
        for attr, field in LAYOUT_KEYS.items():
            value = getattr(layout, attr)
            if value is not None:
                self._storage.set(storage_key(field, repository_id), json.dumps(value))

    # -- Global preferences ----------------------------------------------------

    def load_language(self) -> str | None:
        raw = self._storage.get(schema.LANGUAGE_KEY)
        if raw is not None and schema.validate(schema.LANGUAGE_KEY, raw):
            return raw
        return None

    def save_language(self, language: str) -> None:
        if schema.validate(schema.LANGUAGE_KEY, language):
            self._storage.set(schema.LANGUAGE_KEY, language)

    # -- Export ----------------------------------------------------------------

    def export_flat(self, repository_id: str) -> dict[str, Any]:
        """Typed dump of every cached repository key plus the global language."""
        exported: dict[str, Any] = {}
        for field in schema.SETTINGS_SCHEMA:
            raw = self._storage.get(storage_key(field, repository_id))
            if raw is not None:
                exported[field] = raw if field in _TEXT_FIELDS else decode(raw)
        for field in LAYOUT_KEYS.values():
            raw = self._storage.get(storage_key(field, repository_id))
            if raw is None:
                continue
            try:
                exported[field] = json.loads(raw)
            except json.JSONDecodeError:
                exported[field] = raw
        language = self.load_language()
        if language:
            exported[schema.LANGUAGE_KEY] = language
        return exported

    # -- Reset -----------------------------------------------------------------

    def clear(self, repository_id: str) -> int:
        """Purge all cached state for a repository.

        Removes every key that *contains* the repository id, every known
        scoped key, and the global workspace/settings blobs.  Returns the
        number of keys removed.
        """
        doomed = {key for key in self._storage.keys() if repository_id in key}
        doomed.update(storage_key(field, repository_id) for field in schema.SETTINGS_SCHEMA)
        doomed.update(storage_key(field, repository_id) for field in LAYOUT_KEYS.values())
        doomed.update(GLOBAL_BLOB_KEYS)

        existing = set(self._storage.keys())
        for key in doomed:
            self._storage.remove(key)
        removed = len(doomed & existing)
        logger.info("Cleared {} cached keys for {}", removed, repository_id)
        return removed


# Free-text fields exported verbatim so e.g. a numeric-looking path stays a string.
_TEXT_FIELDS = frozenset(
    {"postsPath", "imagesPath", "domainUrl", "postFileTypes", "imageFileTypes"}
    | set(schema.COMMIT_FIELDS.values())
)
