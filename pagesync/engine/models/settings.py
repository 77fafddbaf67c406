"""Flat per-repository settings record.

Attribute names are snake_case; the wire form (cache keys, config file
fields) uses the camelCase aliases, e.g. ``posts_path`` <-> ``postsPath``.
Values are screened by :mod:`pagesync.engine.schema` before they are
applied, so the model itself stays permissive.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from pagesync.engine.models.enums import ProjectType, PublishDateSource


class AppSettings(BaseModel):
    """Repository settings shared by every collection of a workspace."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # -- Project -----------------------------------------------------------------
    project_type: ProjectType = ProjectType.ASTRO
    posts_path: str = ""
    images_path: str = "public/images"
    domain_url: str = ""

    # -- File filters ------------------------------------------------------------
    post_file_types: str = ".md,.mdx"
    image_file_types: str = "image/*"
    publish_date_source: PublishDateSource = PublishDateSource.FILE

    # -- Image compression -------------------------------------------------------
    image_compression_enabled: bool = False
    max_image_size: int | float = 500
    """Upper bound in KB for compressed uploads; fractional values are kept."""

    image_resize_max_width: int | float = 1024
    """Resize ceiling in pixels; 0 disables resizing."""

    # -- Commit message templates ------------------------------------------------
    new_post_commit: str = 'feat(content): add post "{filename}"'
    update_post_commit: str = 'fix(content): update post "{filename}"'
    new_image_commit: str = 'feat(assets): add image "{filename}"'
    update_image_commit: str = 'refactor(assets): update image for "{filename}"'

    def to_wire(self) -> dict:
        """Dump using the camelCase field names and plain JSON values."""
        return self.model_dump(mode="json", by_alias=True)
