"""Persisted config documents (the file stored in the managed repository).

Two incompatible shapes exist:

- **v1** (``LegacyConfig``): flat project fields plus ``paths``,
  ``settings``, ``commits``, ``templates`` and ``ui`` sections.
- **v2** (``WorkspaceConfig``): shared ``settings``, ``commitMessages``,
  a ``collections`` array and ``activeCollectionId``.

Settings sections are kept as raw dicts: every value is validated field by
field when it is merged, so one bad field never rejects the whole document.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pagesync.engine.models.workspace import Collection


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -- v2 ----------------------------------------------------------------------


class CommitMessages(_CamelModel):
    new_post: Any = None
    update_post: Any = None
    new_image: Any = None
    update_image: Any = None


class CollectionDTO(_CamelModel):
    """Serialized collection as stored in the config file."""

    id: str
    name: str
    posts_path: str = ""
    images_path: str = ""
    template: Any = None
    table_columns: list[str] | None = None
    column_widths: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_collection(cls, collection: Collection) -> CollectionDTO:
        return cls.model_validate(collection.model_dump())

    def to_collection(self) -> Collection:
        """Build a domain collection; missing timestamps default to now."""
        data = self.model_dump(exclude_none=True)
        return Collection.model_validate(data)


class WorkspaceConfig(_CamelModel):
    """v2 document."""

    version: int = 2
    settings: dict[str, Any] = Field(default_factory=dict)
    commit_messages: CommitMessages = Field(default_factory=CommitMessages)
    collections: list[CollectionDTO] = Field(default_factory=list)
    active_collection_id: str | None = None

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# -- v1 ----------------------------------------------------------------------


class LegacyPaths(_CamelModel):
    posts: Any = None
    images: Any = None


class LegacyConfig(_CamelModel):
    """v1 document.  Every field is optional and untyped on purpose."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    version: Any = 1
    project_type: Any = None
    paths: LegacyPaths | None = None
    domain_url: Any = None
    settings: dict[str, Any] = Field(default_factory=dict)
    commits: dict[str, Any] = Field(default_factory=dict)
    templates: dict[str, Any] | None = None
    ui: dict[str, Any] | None = None

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
