"""Workspace and collection data models.

A workspace is the per-repository aggregate of shared settings plus an
ordered list of collections.  Each collection overrides the posts/images
paths (and optionally the frontmatter template and table layout) for one
area of the repository.  The first collection is the default.
"""

from __future__ import annotations

import secrets
import time
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pagesync.engine.models.settings import AppSettings


def _now() -> datetime:
    return datetime.now(UTC)


def new_collection_id() -> str:
    """Opaque, time-ordered collection id: ``collection-<epoch ms>-<suffix>``."""
    return f"collection-{time.time_ns() // 1_000_000}-{secrets.token_hex(3)}"


class CollectionLayout(BaseModel):
    """Template and post-table layout attached to a collection."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    template: Any = None
    table_columns: list[str] | None = None
    column_widths: dict[str, Any] | None = None

    def is_empty(self) -> bool:
        return self.template is None and self.table_columns is None and self.column_widths is None


class Collection(BaseModel):
    """A named posts/images path override within a workspace."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=new_collection_id)
    name: str
    posts_path: str = ""
    images_path: str = ""
    template: Any = None
    table_columns: list[str] | None = None
    column_widths: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def layout(self) -> CollectionLayout:
        return CollectionLayout(
            template=self.template,
            table_columns=self.table_columns,
            column_widths=self.column_widths,
        )


class Workspace(BaseModel):
    """In-memory workspace for one repository."""

    repository_id: str
    settings: AppSettings = Field(default_factory=AppSettings)
    collections: list[Collection] = Field(default_factory=list, description="Ordered, first = default")
    active_collection_id: str | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def find(self, collection_id: str) -> Collection | None:
        for collection in self.collections:
            if collection.id == collection_id:
                return collection
        return None
