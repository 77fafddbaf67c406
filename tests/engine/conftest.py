"""Shared fixtures for sync-engine tests.

Everything runs against a temporary working tree and an in-memory cache;
no network or real Git remote is involved.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from pagesync.engine.cache import LocalCache
from pagesync.engine.git.local import LocalGitService
from pagesync.engine.manager import ConfigManager
from pagesync.engine.progress import ScanProgress
from pagesync.engine.reconcile import Reconciler
from pagesync.engine.remote import DEFAULT_CONFIG_PATH, RemoteConfigStore
from pagesync.engine.store.memory import MemoryStorage
from pagesync.engine.sync_lock import SyncLock
from pagesync.engine.workspace import WorkspaceStore


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def git(repo: Path) -> LocalGitService:
    return LocalGitService(repo)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def scanner() -> AsyncMock:
    """Scanner stub with empty results; tests override return values as needed."""
    mock = AsyncMock()
    mock.find_production_url.return_value = None
    mock.scan_for_content_directories.return_value = []
    mock.scan_for_image_directories.return_value = []
    return mock


@pytest.fixture
def progress() -> ScanProgress:
    return ScanProgress()


@pytest.fixture
def workspaces(storage: MemoryStorage) -> WorkspaceStore:
    return WorkspaceStore(storage)


@pytest.fixture
def reconciler(
    git: LocalGitService,
    storage: MemoryStorage,
    scanner: AsyncMock,
    progress: ScanProgress,
    workspaces: WorkspaceStore,
) -> Reconciler:
    return Reconciler(
        workspaces=workspaces,
        cache=LocalCache(storage),
        remote=RemoteConfigStore(git),
        scanner=scanner,
        progress=progress,
    )


@pytest.fixture
def manager(git: LocalGitService, storage: MemoryStorage, scanner: AsyncMock) -> ConfigManager:
    return ConfigManager(git=git, scanner=scanner, storage=storage, lock=SyncLock())


@pytest.fixture
def write_config(repo: Path) -> Callable[[dict[str, Any] | str], None]:
    """Place a config file in the working tree, as if committed by someone else."""

    def _write(document: dict[str, Any] | str) -> None:
        text = document if isinstance(document, str) else json.dumps(document)
        (repo / DEFAULT_CONFIG_PATH).write_text(text, encoding="utf-8")

    return _write


@pytest.fixture
def read_config(repo: Path) -> Callable[[], dict[str, Any]]:
    def _read() -> dict[str, Any]:
        return json.loads((repo / DEFAULT_CONFIG_PATH).read_text(encoding="utf-8"))

    return _read
