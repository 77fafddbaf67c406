"""Data models for the sync engine."""

from pagesync.engine.models.config import (
    CollectionDTO,
    CommitMessages,
    LegacyConfig,
    LegacyPaths,
    WorkspaceConfig,
)
from pagesync.engine.models.enums import AppView, ConfigSource, Language, ProjectType, PublishDateSource
from pagesync.engine.models.settings import AppSettings
from pagesync.engine.models.workspace import Collection, CollectionLayout, Workspace, new_collection_id

__all__ = [
    # Settings
    "AppSettings",
    # Enums
    "AppView",
    # Workspace
    "Collection",
    # Persisted config
    "CollectionDTO",
    "CollectionLayout",
    "CommitMessages",
    "ConfigSource",
    "Language",
    "LegacyConfig",
    "LegacyPaths",
    "ProjectType",
    "PublishDateSource",
    "Workspace",
    "WorkspaceConfig",
    "new_collection_id",
]
