"""Workspace / collection model.

Holds the in-memory workspace for the open repository and encapsulates all
collection CRUD, active-collection selection and shared-settings updates.
Every mutation is mirrored into a workspace blob in the local cache so the
last workspace survives a restart; the remote config file stays the source
of truth and is reconciled on the next open.

Methods raise domain exceptions (``LookupError``, ``RuntimeError``); turning
them into user-facing messages is the caller's responsibility.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import ValidationError

from pagesync.engine import schema
from pagesync.engine.cache import WORKSPACE_BLOB_KEY
from pagesync.engine.models.settings import AppSettings
from pagesync.engine.models.workspace import Collection, Workspace

if TYPE_CHECKING:
    from pagesync.engine.store.base import KeyValueStorage


class CollectionNotFoundError(LookupError):
    """Raised when a collection id is not part of the workspace."""


class WorkspaceNotInitializedError(RuntimeError):
    """Raised when a workspace operation runs before ``init_workspace``."""


_COLLECTION_FIELDS: dict[str, str] = {
    **{name: name for name in Collection.model_fields},
    **{info.alias: name for name, info in Collection.model_fields.items() if info.alias},
}


class WorkspaceStore:
    """Owner of the current workspace."""

    def __init__(self, storage: KeyValueStorage | None = None) -> None:
        self._storage = storage
        self._workspace: Workspace | None = None

    @property
    def workspace(self) -> Workspace | None:
        return self._workspace

    def _require(self) -> Workspace:
        if self._workspace is None:
            raise WorkspaceNotInitializedError
        return self._workspace

    # -- Lifecycle -------------------------------------------------------------

    def init_workspace(self, repository_id: str) -> Workspace:
        """Create or attach the workspace for *repository_id*.

        No-op when the current workspace already belongs to that repository.
        Otherwise a persisted workspace for the same repository is restored,
        or a fresh one is created.
        """
        if self._workspace is not None and self._workspace.repository_id == repository_id:
            return self._workspace

        restored = self._restore(repository_id)
        self._workspace = restored or Workspace(repository_id=repository_id)
        logger.info(
            "Workspace {} for {} ({} collections)",
            "restored" if restored else "initialised",
            repository_id,
            len(self._workspace.collections),
        )
        self._persist()
        return self._workspace

    def reset_workspace(self) -> None:
        """Drop the in-memory workspace and its persisted blob."""
        self._workspace = None
        if self._storage is not None:
            self._storage.remove(WORKSPACE_BLOB_KEY)

    # -- Collections -----------------------------------------------------------

    def set_collections(self, collections: list[Collection]) -> None:
        """Replace the collection list, keeping the active id valid."""
        workspace = self._require()
        workspace.collections = list(collections)
        if workspace.find(workspace.active_collection_id or "") is None:
            workspace.active_collection_id = collections[0].id if collections else None
        self._touch()

    def add_collection(self, collection: Collection) -> Collection:
        """Append a collection.  It becomes active if none is."""
        workspace = self._require()
        if workspace.find(collection.id) is not None:
            msg = f"Collection '{collection.id}' already exists"
            raise ValueError(msg)
        workspace.collections.append(collection)
        if workspace.active_collection_id is None:
            workspace.active_collection_id = collection.id
        self._touch()
        return collection

    def update_collection(self, collection_id: str, patch: Mapping[str, Any]) -> Collection:
        """Apply a partial update.  ``id`` and ``createdAt`` cannot change.

        Raises ``CollectionNotFoundError`` if missing and ``ValueError`` for
        unknown fields or values of the wrong type.
        """
        workspace = self._require()
        current = workspace.find(collection_id)
        if current is None:
            raise CollectionNotFoundError(collection_id)

        changes: dict[str, Any] = {}
        for key, value in patch.items():
            name = _COLLECTION_FIELDS.get(key)
            if name is None:
                msg = f"Unknown collection field: {key}"
                raise ValueError(msg)
            if name in ("id", "created_at", "updated_at"):
                continue
            changes[name] = value

        data = current.model_dump()
        data.update(changes)
        data["updated_at"] = datetime.now(UTC)
        try:
            updated = Collection.model_validate(data)
        except ValidationError as exc:
            msg = f"Invalid collection update: {exc}"
            raise ValueError(msg) from None

        index = workspace.collections.index(current)
        workspace.collections[index] = updated
        self._touch()
        return updated

    def delete_collection(self, collection_id: str) -> None:
        """Remove a collection; a deleted active collection hands over to the first remaining one."""
        workspace = self._require()
        current = workspace.find(collection_id)
        if current is None:
            raise CollectionNotFoundError(collection_id)
        workspace.collections.remove(current)
        if workspace.active_collection_id == collection_id:
            workspace.active_collection_id = workspace.collections[0].id if workspace.collections else None
        self._touch()

    def set_active_collection(self, collection_id: str) -> None:
        workspace = self._require()
        if workspace.find(collection_id) is None:
            raise CollectionNotFoundError(collection_id)
        workspace.active_collection_id = collection_id
        self._touch()

    def get_active_collection(self) -> Collection | None:
        """The collection used for path resolution (first one if none is marked)."""
        workspace = self._workspace
        if workspace is None or not workspace.collections:
            return None
        if workspace.active_collection_id is not None:
            active = workspace.find(workspace.active_collection_id)
            if active is not None:
                return active
        return workspace.collections[0]

    # -- Settings --------------------------------------------------------------

    def update_settings(self, patch: AppSettings | Mapping[str, Any]) -> AppSettings:
        """Shallow-merge valid fields of *patch* into the shared settings."""
        workspace = self._require()
        fields = patch.to_wire() if isinstance(patch, AppSettings) else patch
        workspace.settings = schema.apply_valid(workspace.settings, fields)
        self._touch()
        return workspace.settings

    # -- Path resolution -------------------------------------------------------

    def effective_posts_path(self, fallback: AppSettings | None = None) -> str:
        """Active collection's posts path if set, else the shared settings path."""
        active = self.get_active_collection()
        if active is not None and active.posts_path:
            return active.posts_path
        return self._fallback_settings(fallback).posts_path

    def effective_images_path(self, fallback: AppSettings | None = None) -> str:
        active = self.get_active_collection()
        if active is not None and active.images_path:
            return active.images_path
        return self._fallback_settings(fallback).images_path

    def _fallback_settings(self, fallback: AppSettings | None) -> AppSettings:
        if fallback is not None:
            return fallback
        if self._workspace is not None:
            return self._workspace.settings
        return schema.defaults()

    # -- Persistence -----------------------------------------------------------

    def _touch(self) -> None:
        self._require().updated_at = datetime.now(UTC)
        self._persist()

    def _persist(self) -> None:
        if self._storage is None or self._workspace is None:
            return
        self._storage.set(WORKSPACE_BLOB_KEY, self._workspace.model_dump_json())

    def _restore(self, repository_id: str) -> Workspace | None:
        if self._storage is None:
            return None
        raw = self._storage.get(WORKSPACE_BLOB_KEY)
        if raw is None:
            return None
        try:
            workspace = Workspace.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable persisted workspace")
            return None
        if workspace.repository_id != repository_id:
            return None
        return workspace
