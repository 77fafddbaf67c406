"""Tests for ConfigManager actions against a temporary working tree."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from pagesync.engine import schema
from pagesync.engine.cache import LocalCache, storage_key
from pagesync.engine.git.local import LocalGitService
from pagesync.engine.manager import (
    MSG_CREATE,
    MSG_DELETE,
    MSG_IMPORT,
    MSG_UPDATE,
    ConfigImportError,
    ConfigManager,
    RemoteSaveError,
    RepositoryNotOpenError,
    SetupIncompleteError,
)
from pagesync.engine.models.enums import AppView, ConfigSource
from pagesync.engine.models.workspace import CollectionLayout
from pagesync.engine.remote import DEFAULT_CONFIG_PATH
from pagesync.engine.store.memory import MemoryStorage
from pagesync.engine.sync_lock import SyncBusyError, SyncLock
from pagesync.engine.workspace import WorkspaceStore

REPO = "octo/blog"

V1_DOCUMENT = {
    "version": 1,
    "projectType": "astro",
    "paths": {"posts": "src/content/blog", "images": "public/images"},
    "domainUrl": "https://blog.example.com",
}


def _messages(git: LocalGitService) -> list[str]:
    return [message for message, _ in git.history]


async def _setup_v2(manager: ConfigManager) -> None:
    """Open an empty repository and run first-run setup."""
    await manager.open(REPO)
    manager.set_settings(
        {"postsPath": "src/content/blog", "imagesPath": "public/images", "domainUrl": "https://blog.example.com"}
    )
    await manager.finish_setup()


# ---------------------------------------------------------------------------
# Open / state
# ---------------------------------------------------------------------------


async def test_actions_require_open_repository(manager: ConfigManager) -> None:
    with pytest.raises(RepositoryNotOpenError):
        await manager.save_settings()


async def test_fresh_repository_lands_in_setup(manager: ConfigManager, scanner: AsyncMock) -> None:
    scanner.scan_for_content_directories.return_value = ["src/content/blog"]

    await manager.open(REPO)
    snapshot = manager.snapshot()

    assert snapshot.view == AppView.SETUP
    assert snapshot.source == ConfigSource.SCAN
    assert snapshot.suggested_post_paths == ["src/content/blog"]
    assert snapshot.effective_posts_path == "src/content/blog"
    assert snapshot.is_syncing is False


async def test_set_settings_ignores_invalid_values(manager: ConfigManager) -> None:
    await manager.open(REPO)
    settings = manager.set_settings({"maxImageSize": 5, "imageCompressionEnabled": True})

    assert settings.max_image_size == 500
    assert settings.image_compression_enabled is True


# ---------------------------------------------------------------------------
# First-run setup
# ---------------------------------------------------------------------------


async def test_finish_setup_creates_v2_config(
    manager: ConfigManager, git: LocalGitService, storage: MemoryStorage, scanner: AsyncMock, read_config
) -> None:
    await _setup_v2(manager)

    document = read_config()
    assert document["version"] == 2
    assert [c["name"] for c in document["collections"]] == [schema.DEFAULT_COLLECTION_NAME]
    assert document["collections"][0]["postsPath"] == "src/content/blog"
    assert document["activeCollectionId"] == document["collections"][0]["id"]
    assert _messages(git) == [MSG_CREATE]
    assert manager.view == AppView.MAIN

    # A second session on the same repository loads it without scanning.
    scanner.reset_mock()
    reopened = ConfigManager(git=git, scanner=scanner, storage=storage, lock=SyncLock())
    result = await reopened.open(REPO)
    assert result.source == ConfigSource.REMOTE_V2
    scanner.scan_for_content_directories.assert_not_awaited()


async def test_finish_setup_requires_domain_for_astro(manager: ConfigManager) -> None:
    await manager.open(REPO)
    manager.set_settings({"postsPath": "blog", "imagesPath": "img"})

    with pytest.raises(SetupIncompleteError):
        await manager.finish_setup()

    manager.set_settings({"projectType": "github"})
    assert await manager.finish_setup("Docs") is True
    assert manager.workspaces.get_active_collection().name == "Docs"


async def test_finish_setup_completes_even_if_file_exists(
    manager: ConfigManager, git: LocalGitService, write_config
) -> None:
    await manager.open(REPO)
    manager.set_settings({"projectType": "github", "postsPath": "blog", "imagesPath": "img"})
    write_config({"version": 1})  # appeared after open

    assert await manager.finish_setup() is False
    assert manager.is_setup_complete is True
    assert len(manager.workspaces.workspace.collections) == 1
    assert git.history == []


# ---------------------------------------------------------------------------
# Save settings
# ---------------------------------------------------------------------------


async def test_save_without_config_file_only_updates_cache(
    manager: ConfigManager, git: LocalGitService, storage: MemoryStorage, repo: Path
) -> None:
    await manager.open(REPO)
    manager.set_settings({"postsPath": "content/posts"})

    assert await manager.save_settings() is True

    assert not (repo / DEFAULT_CONFIG_PATH).exists()
    assert git.history == []
    assert storage.get(storage_key("postsPath", REPO)) == "content/posts"
    assert manager.snapshot().save_success is True


async def test_save_updates_existing_v1_file(
    manager: ConfigManager, git: LocalGitService, write_config, read_config
) -> None:
    write_config(V1_DOCUMENT)
    await manager.open(REPO)
    manager.set_settings({"postsPath": "src/content/posts", "maxImageSize": 200})

    assert await manager.save_settings() is True

    document = read_config()
    assert document["version"] == 1
    assert document["paths"]["posts"] == "src/content/posts"
    assert document["settings"]["maxImageSize"] == 200
    assert _messages(git) == [MSG_UPDATE]


async def test_save_with_collections_writes_v2(manager: ConfigManager, git: LocalGitService, read_config) -> None:
    await _setup_v2(manager)
    manager.set_settings({"newPostCommit": "post: {filename}"})

    assert await manager.save_settings() is True

    document = read_config()
    assert document["version"] == 2
    assert document["commitMessages"]["newPost"] == "post: {filename}"
    assert _messages(git) == [MSG_CREATE, MSG_UPDATE]


async def test_save_copies_cached_layout_to_active_collection(manager: ConfigManager, read_config) -> None:
    await _setup_v2(manager)
    manager.cache.save_layout(REPO, CollectionLayout(table_columns=["title", "date"]))

    await manager.save_settings()

    assert read_config()["collections"][0]["tableColumns"] == ["title", "date"]


async def test_save_reports_remote_failure(manager: ConfigManager, write_config) -> None:
    write_config(V1_DOCUMENT)
    await manager.open(REPO)
    manager.remote.write = AsyncMock(return_value=False)

    assert await manager.save_settings() is False
    assert manager.snapshot().save_success is False
    assert manager.snapshot().is_saving is False


async def test_save_while_busy_raises(manager: ConfigManager) -> None:
    await _setup_v2(manager)

    async with manager.lock.hold("Deleting collection..."):
        with pytest.raises(SyncBusyError):
            await manager.save_settings()
        assert manager.snapshot().is_saving is False


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


async def test_create_collection_upgrades_v1_config(
    manager: ConfigManager, git: LocalGitService, write_config, read_config
) -> None:
    write_config(V1_DOCUMENT)
    await manager.open(REPO)

    created = await manager.create_collection("Notes", "src/content/notes", "public/notes")

    document = read_config()
    assert document["version"] == 2
    assert [c["name"] for c in document["collections"]] == [schema.DEFAULT_COLLECTION_NAME, "Notes"]
    assert document["collections"][0]["postsPath"] == "src/content/blog"
    assert document["collections"][1]["id"] == created.id
    assert document["activeCollectionId"] == document["collections"][0]["id"]
    assert _messages(git) == [MSG_UPDATE]
    assert manager.snapshot().source == ConfigSource.REMOTE_V2


async def test_fractional_image_size_survives_workspace_restore(
    manager: ConfigManager, storage: MemoryStorage, write_config
) -> None:
    write_config({**V1_DOCUMENT, "settings": {"maxImageSize": 500.5}})
    await manager.open(REPO)
    await manager.create_collection("Notes", "src/content/notes", "public/notes")

    restored = WorkspaceStore(storage).init_workspace(REPO)

    assert len(restored.collections) == 2
    assert [c.id for c in restored.collections] == [c.id for c in manager.workspaces.workspace.collections]
    assert restored.settings.max_image_size == 500.5


async def test_create_collection_failure_keeps_local_change(manager: ConfigManager) -> None:
    await _setup_v2(manager)
    manager.remote.save = AsyncMock(return_value=False)

    with pytest.raises(RemoteSaveError):
        await manager.create_collection("Notes", "notes", "img")

    assert [c.name for c in manager.workspaces.workspace.collections][-1] == "Notes"
    assert manager.lock.is_syncing is False


async def test_update_and_delete_collection(manager: ConfigManager, git: LocalGitService, read_config) -> None:
    await _setup_v2(manager)
    notes = await manager.create_collection("Notes", "notes", "img")
    main_id = read_config()["collections"][0]["id"]

    await manager.update_collection(notes.id, {"name": "Journal"})
    assert read_config()["collections"][1]["name"] == "Journal"

    await manager.delete_collection(main_id)
    document = read_config()
    assert [c["id"] for c in document["collections"]] == [notes.id]
    assert document["activeCollectionId"] == notes.id
    assert len(git.history) == 4


async def test_set_active_collection_is_local_only(manager: ConfigManager, git: LocalGitService) -> None:
    await _setup_v2(manager)
    notes = await manager.create_collection("Notes", "notes/posts", "notes/img")
    writes = len(git.history)

    manager.set_active_collection(notes.id)

    assert len(git.history) == writes
    assert manager.snapshot().effective_posts_path == "notes/posts"


async def test_save_template(manager: ConfigManager, read_config) -> None:
    await _setup_v2(manager)
    active = manager.workspaces.get_active_collection()

    await manager.save_template(active.id, {"title": "", "tags": []})

    assert read_config()["collections"][0]["template"] == {"title": "", "tags": []}
    assert manager.cache.load_layout(REPO).template == {"title": "", "tags": []}


# ---------------------------------------------------------------------------
# Export / import
# ---------------------------------------------------------------------------


async def test_export_flat_and_v2(manager: ConfigManager) -> None:
    await manager.open(REPO)
    manager.set_settings({"postsPath": "blog"})
    await manager.save_settings()
    assert manager.export_config()["postsPath"] == "blog"

    manager.set_settings({"imagesPath": "img", "domainUrl": "https://x.dev"})
    await manager.finish_setup()
    exported = manager.export_config()
    assert exported["version"] == 2
    assert exported["collections"][0]["postsPath"] == "blog"


async def test_import_flat_document(
    manager: ConfigManager, git: LocalGitService, storage: MemoryStorage, read_config
) -> None:
    await manager.open(REPO)
    payload = {
        "projectType": "github",
        "postsPath": "docs",
        "imagesPath": "docs/img",
        "postTableColumns": ["title"],
        "pageel-cms-lang": "vi",
        "unrelated": "ignored",
    }

    assert await manager.import_config(json.dumps(payload)) is True

    document = read_config()
    assert document["version"] == 1
    assert document["projectType"] == "github"
    assert document["ui"] == {"tableColumns": ["title"]}
    assert _messages(git) == [MSG_IMPORT]
    assert LocalCache(storage).load_language() == "vi"
    assert manager.snapshot().source == ConfigSource.REMOTE_V1
    assert manager.is_setup_complete is True


async def test_import_v2_document_forces_version(manager: ConfigManager, read_config) -> None:
    await manager.open(REPO)
    payload = {"collections": [{"id": "c1", "name": "Blog", "postsPath": "blog", "imagesPath": "img"}]}

    assert await manager.import_config(json.dumps(payload)) is True

    assert read_config()["version"] == 2
    assert manager.snapshot().source == ConfigSource.REMOTE_V2
    assert manager.workspaces.workspace.active_collection_id == "c1"


@pytest.mark.parametrize(
    "text",
    ["{not json", "[1, 2]", json.dumps({"postsPath": "ok", "maxImageSize": 999999})],
)
async def test_import_rejects_bad_input(manager: ConfigManager, git: LocalGitService, text: str) -> None:
    await manager.open(REPO)

    with pytest.raises(ConfigImportError):
        await manager.import_config(text)
    assert git.history == []


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


async def test_delete_config_returns_to_setup(
    manager: ConfigManager, git: LocalGitService, storage: MemoryStorage, repo: Path
) -> None:
    await _setup_v2(manager)
    storage.set("pageel-cms-lang", "vi")

    assert await manager.delete_config() is True

    assert not (repo / DEFAULT_CONFIG_PATH).exists()
    assert _messages(git)[-1] == MSG_DELETE
    assert storage.keys() == ["pageel-cms-lang"]
    assert manager.workspaces.workspace is None
    assert manager.settings == schema.defaults()
    assert manager.view == AppView.SETUP


async def test_delete_config_failure_keeps_state(manager: ConfigManager) -> None:
    await _setup_v2(manager)
    manager.remote.delete = AsyncMock(return_value=False)

    assert await manager.delete_config() is False
    assert manager.is_setup_complete is True
    assert manager.workspaces.workspace is not None


async def test_language_preference(manager: ConfigManager) -> None:
    assert manager.language == "en"

    manager.set_language("vi")
    manager.set_language("de")  # rejected

    assert manager.snapshot().language == "vi"
