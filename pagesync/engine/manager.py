"""Config manager -- the action interface consumed by the UI layer.

The ConfigManager is created once per open repository.  It wires the
engine's collaborators together and exposes:

- a read-only :class:`EngineSnapshot` of settings, workspace and status,
- ``open`` / ``reload`` (the reconciliation bootstrap),
- settings edits and saves, collection CRUD, template saves,
- first-run ``finish_setup``, ``export_config``, ``import_config`` and
  ``delete_config``.

Every action that writes the remote config file runs inside the sync lock,
including the token read that precedes the write.  A busy lock raises
:class:`SyncBusyError` and leaves the config file untouched.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import BaseModel, ValidationError

from pagesync.engine import schema
from pagesync.engine.cache import LAYOUT_KEYS, LocalCache
from pagesync.engine.models.enums import AppView, ConfigSource, ProjectType
from pagesync.engine.models.settings import AppSettings
from pagesync.engine.models.workspace import Collection, CollectionLayout, Workspace
from pagesync.engine.progress import ScanProgress
from pagesync.engine.reconcile import PhaseResult, Reconciler
from pagesync.engine.remote import DEFAULT_CONFIG_PATH, RemoteConfigStore
from pagesync.engine.sync_lock import SyncLock, get_sync_lock
from pagesync.engine.workspace import WorkspaceNotInitializedError, WorkspaceStore

if TYPE_CHECKING:
    from pagesync.engine.git.base import GitService, RepositoryScanner
    from pagesync.engine.store.base import KeyValueStorage

# Commit messages for config file writes
MSG_UPDATE = "chore: update pageel-cms config"
MSG_CREATE = "chore: add pageel-cms config"
MSG_IMPORT = "chore: import pageel-cms config"
MSG_DELETE = "chore: delete pageel-cms config"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RemoteSaveError(RuntimeError):
    """The config file could not be written (unavailable or stale token)."""


class ConfigImportError(ValueError):
    """Imported document is not valid JSON or carries an invalid setting."""


class SetupIncompleteError(ValueError):
    """``finish_setup`` called before the mandatory fields are filled in."""


class RepositoryNotOpenError(RuntimeError):
    """An action was called before ``open``."""


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


class EngineSnapshot(BaseModel):
    """Read-only view of the engine state for rendering."""

    repository_id: str | None
    settings: AppSettings
    workspace: Workspace | None
    source: ConfigSource
    is_setup_complete: bool
    is_scanning: bool
    scan_phase: str | None
    scan_progress: int
    is_syncing: bool
    sync_message: str | None
    is_saving: bool
    save_success: bool
    language: str
    suggested_post_paths: list[str]
    suggested_image_paths: list[str]
    effective_posts_path: str
    effective_images_path: str
    view: AppView


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class ConfigManager:
    """Owns the settings state for one repository and the actions on it."""

    def __init__(
        self,
        *,
        git: GitService,
        scanner: RepositoryScanner,
        storage: KeyValueStorage,
        config_path: str = DEFAULT_CONFIG_PATH,
        lock: SyncLock | None = None,
        progress: ScanProgress | None = None,
        default_language: str = "en",
    ) -> None:
        self.cache = LocalCache(storage)
        self.default_language = default_language
        self.workspaces = WorkspaceStore(storage)
        self.remote = RemoteConfigStore(git, config_path)
        self.lock = lock or get_sync_lock()
        self.progress = progress or ScanProgress()
        self.reconciler = Reconciler(
            workspaces=self.workspaces,
            cache=self.cache,
            remote=self.remote,
            scanner=scanner,
            progress=self.progress,
        )

        self._repository_id: str | None = None
        self._settings = schema.defaults()
        self._source = ConfigSource.NONE
        self._setup_complete = False
        self._saving = False
        self._save_success = False
        self._suggested_posts: list[str] = []
        self._suggested_images: list[str] = []

    # -- State -----------------------------------------------------------------

    @property
    def repository_id(self) -> str:
        if self._repository_id is None:
            raise RepositoryNotOpenError
        return self._repository_id

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def is_setup_complete(self) -> bool:
        return self._setup_complete

    @property
    def view(self) -> AppView:
        if self.progress.is_scanning:
            return AppView.SCANNING
        if not self._setup_complete:
            return AppView.SETUP
        return AppView.MAIN

    def snapshot(self) -> EngineSnapshot:
        workspace = self.workspaces.workspace
        return EngineSnapshot(
            repository_id=self._repository_id,
            settings=self._settings.model_copy(),
            workspace=workspace.model_copy(deep=True) if workspace is not None else None,
            source=self._source,
            is_setup_complete=self._setup_complete,
            is_scanning=self.progress.is_scanning,
            scan_phase=self.progress.phase,
            scan_progress=self.progress.progress,
            is_syncing=self.lock.is_syncing,
            sync_message=self.lock.message,
            is_saving=self._saving,
            save_success=self._save_success,
            language=self.language,
            suggested_post_paths=list(self._suggested_posts),
            suggested_image_paths=list(self._suggested_images),
            effective_posts_path=self.workspaces.effective_posts_path(self._settings),
            effective_images_path=self.workspaces.effective_images_path(self._settings),
            view=self.view,
        )

    # -- Bootstrap -------------------------------------------------------------

    async def open(self, repository_id: str) -> PhaseResult:
        """Reconcile cache, remote config and scan for *repository_id*."""
        self._repository_id = repository_id
        result = await self.reconciler.bootstrap(repository_id)
        self._settings = result.settings
        self._source = result.source
        self._setup_complete = result.setup_complete
        self._suggested_posts = list(result.suggested_post_paths)
        self._suggested_images = list(result.suggested_image_paths)
        return result

    async def reload(self) -> PhaseResult:
        return await self.open(self.repository_id)

    # -- Settings --------------------------------------------------------------

    def set_settings(self, patch: Mapping[str, Any]) -> AppSettings:
        """Apply the valid fields of *patch* to the working settings.  Nothing is persisted."""
        self._settings = schema.apply_valid(self._settings, patch)
        return self._settings

    @property
    def language(self) -> str:
        """Global UI language preference, else the configured default."""
        return self.cache.load_language() or self.default_language

    def set_language(self, language: str) -> None:
        self.cache.save_language(language)

    async def save_settings(self) -> bool:
        """Persist the working settings to the cache and the config file.

        Writes v2 when the workspace has collections.  Without collections the
        v1 file is updated only if it already exists.  Returns success; a busy
        lock raises ``SyncBusyError``.
        """
        repository_id = self.repository_id
        self._saving = True
        self._save_success = False
        try:
            self.cache.save(repository_id, self._settings)
            workspace = self.workspaces.workspace
            if workspace is None:
                workspace = self.workspaces.init_workspace(repository_id)
            self.workspaces.update_settings(self._settings)
            self._refresh_active_layout()

            if workspace.collections:
                ok = await self.lock.run(self._write_v2, "Saving settings...")
            else:
                ok = await self.lock.run(self._update_v1, "Saving settings...")
        finally:
            self._saving = False

        if not ok:
            logger.error("Failed to save config file for {}", repository_id)
        self._save_success = ok
        return ok

    def _refresh_active_layout(self) -> None:
        """Copy cached template / table layout onto the active collection."""
        active = self.workspaces.get_active_collection()
        if active is None:
            return
        layout = self.cache.load_layout(self.repository_id)
        patch = layout.model_dump(exclude_none=True)
        if patch:
            self.workspaces.update_collection(active.id, patch)

    async def _write_v2(self) -> bool:
        workspace = self._require_workspace()
        document = schema.render_v2(workspace).to_document()
        return await self.remote.save(document, MSG_UPDATE)

    async def _update_v1(self) -> bool:
        sha = await self.remote.token()
        if sha is None:
            logger.debug("No config file yet; settings kept in cache only")
            return True
        layout = self.cache.load_layout(self.repository_id)
        document = schema.render_v1(self._settings, layout).to_document()
        return await self.remote.write(document, MSG_UPDATE, sha=sha)

    async def _sync_workspace(self) -> None:
        if not await self._write_v2():
            msg = f"Could not write {self.remote.path}"
            raise RemoteSaveError(msg)

    def _require_workspace(self) -> Workspace:
        workspace = self.workspaces.workspace
        if workspace is None:
            raise WorkspaceNotInitializedError
        return workspace

    # -- Setup -----------------------------------------------------------------

    def is_ready_for_setup(self) -> bool:
        s = self._settings
        if not (s.posts_path and s.images_path):
            return False
        return s.project_type == ProjectType.GITHUB or bool(s.domain_url)

    async def finish_setup(self, collection_name: str | None = None) -> bool:
        """Create the v2 config file with one collection and complete setup.

        Returns whether the file was created.  Setup is marked complete even
        when creation fails (e.g. the file already exists); the workspace is
        populated from the local data either way.
        """
        if not self.is_ready_for_setup():
            msg = "Posts path, images path and (for Astro) production URL are required"
            raise SetupIncompleteError(msg)

        repository_id = self.repository_id
        layout = self.cache.load_layout(repository_id)
        config = schema.upgrade_v1_to_v2(
            schema.render_v1(self._settings), self._settings, layout=layout, name=collection_name
        )

        created = await self.lock.run(
            lambda: self.remote.write(config.to_document(), MSG_CREATE),
            "Creating configuration...",
        )
        if not created:
            logger.warning("Could not create {}; continuing with local workspace", self.remote.path)

        self.workspaces.init_workspace(repository_id)
        self.workspaces.set_collections([dto.to_collection() for dto in config.collections])
        if config.active_collection_id:
            self.workspaces.set_active_collection(config.active_collection_id)
        self.workspaces.update_settings(self._settings)
        self.cache.save(repository_id, self._settings)

        self._source = ConfigSource.REMOTE_V2 if created else self._source
        self._setup_complete = True
        return created

    # -- Collections -----------------------------------------------------------

    async def create_collection(
        self,
        name: str,
        posts_path: str,
        images_path: str,
        layout: CollectionLayout | None = None,
    ) -> Collection:
        """Add a collection and write the workspace.

        On a repository still using a flat (v1) config file, the legacy paths
        are first kept as the default collection, then the file is upgraded.
        Raises ``RemoteSaveError`` if the write fails; the in-memory change is
        kept and goes out with the next successful save.
        """
        layout = layout or CollectionLayout()
        collection = Collection(
            name=name,
            posts_path=posts_path,
            images_path=images_path,
            template=layout.template,
            table_columns=layout.table_columns,
            column_widths=layout.column_widths,
        )
        async with self.lock.hold("Saving collection..."):
            workspace = self._require_workspace()
            if not workspace.collections and self._source == ConfigSource.REMOTE_V1:
                self._upgrade_legacy_workspace()
            self.workspaces.add_collection(collection)
            await self._sync_workspace()
        self._source = ConfigSource.REMOTE_V2
        return collection

    def _upgrade_legacy_workspace(self) -> None:
        layout = self.cache.load_layout(self.repository_id)
        config = schema.upgrade_v1_to_v2(schema.render_v1(self._settings, layout), self._settings, layout=layout)
        for dto in config.collections:
            self.workspaces.add_collection(dto.to_collection())
        logger.info("Upgrading {} config to v2", self.repository_id)

    async def update_collection(self, collection_id: str, patch: Mapping[str, Any]) -> Collection:
        async with self.lock.hold("Updating collection..."):
            updated = self.workspaces.update_collection(collection_id, patch)
            await self._sync_workspace()
        return updated

    async def delete_collection(self, collection_id: str) -> None:
        async with self.lock.hold("Deleting collection..."):
            self.workspaces.delete_collection(collection_id)
            await self._sync_workspace()

    def set_active_collection(self, collection_id: str) -> None:
        """Switch the active collection locally.  Saved with the next write."""
        self.workspaces.set_active_collection(collection_id)

    async def save_template(self, collection_id: str, template: Any) -> Collection:
        """Store a collection's frontmatter template and write the workspace."""
        async with self.lock.hold("Saving template..."):
            updated = self.workspaces.update_collection(collection_id, {"template": template})
            active = self.workspaces.get_active_collection()
            if active is not None and active.id == collection_id:
                self.cache.save_layout(self.repository_id, CollectionLayout(template=template))
            await self._sync_workspace()
        return updated

    # -- Export / import -------------------------------------------------------

    def export_config(self) -> dict[str, Any]:
        """v2 document when collections exist, else the flat cached settings."""
        workspace = self.workspaces.workspace
        if workspace is not None and workspace.collections:
            return schema.render_v2(workspace).to_document()
        return self.cache.export_flat(self.repository_id)

    async def import_config(self, text: str) -> bool:
        """Write an exported document to the repository and reload from it.

        Raises ``ConfigImportError`` for malformed JSON or an invalid value;
        returns False when the config file could not be written.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            msg = f"Imported file is not valid JSON: {exc}"
            raise ConfigImportError(msg) from None
        if not isinstance(data, dict):
            msg = "Imported file must contain a JSON object"
            raise ConfigImportError(msg)

        if schema.is_v2(data):
            document = {**data, "version": 2}
        else:
            document = self._import_flat(data)

        ok = await self.lock.run(lambda: self.remote.save(document, MSG_IMPORT), "Importing configuration...")
        if not ok:
            logger.error("Failed to save imported config to repository")
            return False
        await self.reload()
        return True

    def _import_flat(self, data: dict[str, Any]) -> dict[str, Any]:
        for key, value in data.items():
            if key in schema.SETTINGS_SCHEMA or key in schema.PREFERENCE_SCHEMA:
                if not schema.validate(key, value):
                    msg = f"Invalid value for setting '{key}'."
                    raise ConfigImportError(msg)

        repository_id = self.repository_id
        fields = schema.valid_subset(data)
        self.cache.save(repository_id, fields)
        if schema.LANGUAGE_KEY in data:
            self.cache.save_language(data[schema.LANGUAGE_KEY])

        layout_values = {attr: data[key] for attr, key in LAYOUT_KEYS.items() if key in data}
        try:
            layout = CollectionLayout.model_validate(layout_values)
        except ValidationError:
            logger.warning("Ignoring imported layout fields of unexpected shape")
            layout = CollectionLayout()
        self.cache.save_layout(repository_id, layout)

        merged = schema.apply_valid(self._settings, fields)
        return schema.render_v1(merged, self.cache.load_layout(repository_id)).to_document()

    # -- Reset -----------------------------------------------------------------

    async def delete_config(self) -> bool:
        """Delete the config file, purge local state and return to first-run setup."""
        repository_id = self.repository_id
        self._saving = True
        try:
            deleted = await self.lock.run(lambda: self.remote.delete(MSG_DELETE), "Deleting configuration...")
        finally:
            self._saving = False
        if not deleted:
            logger.error("Failed to delete {}; local state kept", self.remote.path)
            return False

        self.cache.clear(repository_id)
        self.workspaces.reset_workspace()
        self.progress.reset()
        self._settings = schema.defaults()
        self._source = ConfigSource.NONE
        self._setup_complete = False
        self._suggested_posts = []
        self._suggested_images = []
        return True
