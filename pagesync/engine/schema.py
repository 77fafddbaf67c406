"""Settings schema: per-field validators, defaults and config migration.

Validators are keyed by the wire (camelCase) field name because they guard
values arriving from outside -- the local cache, the remote config file or
an imported document.  A value that fails its validator is dropped; the
previous value (or the default) stays in place.

The config file exists in two shapes (see :mod:`pagesync.engine.models.config`).
A document is treated as v2 only when it carries a non-empty ``collections``
array; the ``version`` field is not trusted because hand-edited files often
omit it or get it wrong.  A file that says ``version: 2`` but has no
collections is read as a flat (v1) document.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from loguru import logger
from pydantic import ValidationError

from pagesync.engine.models.config import CollectionDTO, CommitMessages, LegacyConfig, LegacyPaths, WorkspaceConfig
from pagesync.engine.models.enums import Language, ProjectType, PublishDateSource
from pagesync.engine.models.settings import AppSettings
from pagesync.engine.models.workspace import Collection, CollectionLayout, Workspace, new_collection_id

LANGUAGE_KEY = "pageel-cms-lang"
"""Global (not repository-scoped) UI language preference."""

DEFAULT_COLLECTION_NAME = "Main Collection"

MANDATORY_FIELDS = ("projectType", "postsPath", "imagesPath")


def _is_str(v: object) -> bool:
    return isinstance(v, str)


def _is_number(v: object) -> bool:
    return isinstance(v, int | float) and not isinstance(v, bool)


def _one_of(*choices: str) -> Callable[[object], bool]:
    return lambda v: isinstance(v, str) and v in choices


def _str_shorter_than(limit: int) -> Callable[[object], bool]:
    return lambda v: isinstance(v, str) and len(v) < limit


def _number_between(low: float, high: float) -> Callable[[object], bool]:
    return lambda v: _is_number(v) and low <= v <= high


SETTINGS_SCHEMA: dict[str, Callable[[object], bool]] = {
    "projectType": _one_of(*ProjectType),
    "postsPath": _is_str,
    "imagesPath": _is_str,
    "domainUrl": _is_str,
    "postFileTypes": _str_shorter_than(100),
    "imageFileTypes": _str_shorter_than(100),
    "publishDateSource": _one_of(*PublishDateSource),
    "imageCompressionEnabled": lambda v: isinstance(v, bool),
    "maxImageSize": _number_between(10, 1024),
    "imageResizeMaxWidth": _number_between(0, 10000),
    "newPostCommit": _str_shorter_than(200),
    "updatePostCommit": _str_shorter_than(200),
    "newImageCommit": _str_shorter_than(200),
    "updateImageCommit": _str_shorter_than(200),
}

PREFERENCE_SCHEMA: dict[str, Callable[[object], bool]] = {
    LANGUAGE_KEY: _one_of(*Language),
}

# Wire name -> model attribute name
FIELD_NAMES: dict[str, str] = {info.alias or name: name for name, info in AppSettings.model_fields.items()}

# v1 ``commits`` / v2 ``commitMessages`` key -> settings wire name
COMMIT_FIELDS: dict[str, str] = {
    "newPost": "newPostCommit",
    "updatePost": "updatePostCommit",
    "newImage": "newImageCommit",
    "updateImage": "updateImageCommit",
}

# Fields carried in the v1 ``settings`` section
LEGACY_SETTINGS_FIELDS = (
    "postFileTypes",
    "imageFileTypes",
    "publishDateSource",
    "imageCompressionEnabled",
    "maxImageSize",
    "imageResizeMaxWidth",
)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def defaults() -> AppSettings:
    return AppSettings()


def validate(field: str, value: object) -> bool:
    """Return True if *value* is acceptable for *field*.  Unknown fields fail."""
    validator = SETTINGS_SCHEMA.get(field) or PREFERENCE_SCHEMA.get(field)
    if validator is None:
        return False
    return validator(value)


def validate_all(partial: Mapping[str, Any]) -> bool:
    """True if every *known* key passes its validator.  Unknown keys are ignored."""
    for key, value in partial.items():
        validator = SETTINGS_SCHEMA.get(key) or PREFERENCE_SCHEMA.get(key)
        if validator is not None and not validator(value):
            return False
    return True


def valid_subset(patch: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only the known settings fields whose values validate."""
    accepted: dict[str, Any] = {}
    for key, value in patch.items():
        if key not in SETTINGS_SCHEMA:
            continue
        if SETTINGS_SCHEMA[key](value):
            accepted[key] = value
        else:
            logger.debug("Dropping invalid value for {}: {!r}", key, value)
    return accepted


def apply_valid(settings: AppSettings, patch: Mapping[str, Any]) -> AppSettings:
    """Return a copy of *settings* with every valid field of *patch* applied.

    *patch* uses wire names (``postsPath``); attribute names (``posts_path``)
    are accepted as well.
    """
    normalized = {_wire_name(key): value for key, value in patch.items()}
    accepted = valid_subset(normalized)
    if not accepted:
        return settings
    data = settings.model_dump()
    data.update({FIELD_NAMES[key]: value for key, value in accepted.items()})
    return AppSettings.model_validate(data)


def _wire_name(key: str) -> str:
    if key in FIELD_NAMES:
        return key
    field = AppSettings.model_fields.get(key)
    if field is not None and field.alias:
        return field.alias
    return key


# ---------------------------------------------------------------------------
# Reading persisted documents
# ---------------------------------------------------------------------------


def is_v2(document: Mapping[str, Any]) -> bool:
    """v2 detection by a non-empty ``collections`` array, not by ``version``."""
    collections = document.get("collections")
    return isinstance(collections, list) and len(collections) > 0


def parse_v2(document: Mapping[str, Any]) -> WorkspaceConfig | None:
    """Parse a v2 document.  Returns None when it is not (valid) v2."""
    if not is_v2(document):
        return None
    try:
        return WorkspaceConfig.model_validate(document)
    except ValidationError as exc:
        logger.warning("Config file has collections but failed to parse as v2: {}", exc.error_count())
        return None


def v2_fields(config: WorkspaceConfig) -> dict[str, Any]:
    """Flatten the ``settings`` and ``commitMessages`` sections to wire fields (unvalidated)."""
    fields = {key: value for key, value in config.settings.items() if key in SETTINGS_SCHEMA}
    commits = config.commit_messages.model_dump(by_alias=True)
    for key, wire in COMMIT_FIELDS.items():
        if commits.get(key) is not None:
            fields[wire] = commits[key]
    return fields


def legacy_fields(document: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten a v1 (or unrecognized) document to wire fields (unvalidated).

    Also understands the older variants: top-level ``postsPath`` /
    ``imagesPath``, a nested ``settings.imageCompression`` block and a
    ``commitMessages`` section instead of ``commits``.
    """
    fields: dict[str, Any] = {}

    if document.get("projectType"):
        fields["projectType"] = document["projectType"]
    if document.get("domainUrl"):
        fields["domainUrl"] = document["domainUrl"]

    paths = document.get("paths")
    if isinstance(paths, Mapping):
        if paths.get("posts"):
            fields["postsPath"] = paths["posts"]
        if paths.get("images"):
            fields["imagesPath"] = paths["images"]
    for key in ("postsPath", "imagesPath"):
        if key not in fields and document.get(key):
            fields[key] = document[key]

    section = document.get("settings")
    if isinstance(section, Mapping):
        for key in LEGACY_SETTINGS_FIELDS:
            if section.get(key) is not None:
                fields[key] = section[key]
        compression = section.get("imageCompression")
        if isinstance(compression, Mapping):
            for nested, wire in (
                ("enabled", "imageCompressionEnabled"),
                ("maxSize", "maxImageSize"),
                ("maxWidth", "imageResizeMaxWidth"),
            ):
                if wire not in fields and compression.get(nested) is not None:
                    fields[wire] = compression[nested]

    commits = document.get("commits")
    if not isinstance(commits, Mapping):
        commits = document.get("commitMessages")
    if isinstance(commits, Mapping):
        for key, wire in COMMIT_FIELDS.items():
            if commits.get(key) is not None:
                fields[wire] = commits[key]

    return fields


def legacy_layout(document: Mapping[str, Any]) -> CollectionLayout:
    """Template / table layout stored in a v1 document's ``templates`` and ``ui``."""
    templates = document.get("templates")
    ui = document.get("ui")
    template = templates.get("frontmatter") if isinstance(templates, Mapping) else None
    columns = ui.get("tableColumns") if isinstance(ui, Mapping) else None
    widths = ui.get("columnWidths") if isinstance(ui, Mapping) else None
    return CollectionLayout(
        template=template,
        table_columns=columns if isinstance(columns, list) else None,
        column_widths=widths if isinstance(widths, Mapping) else None,
    )


# ---------------------------------------------------------------------------
# Writing persisted documents
# ---------------------------------------------------------------------------


def _shared_settings(settings: AppSettings) -> dict[str, Any]:
    commit_wire = set(COMMIT_FIELDS.values())
    return {key: value for key, value in settings.to_wire().items() if key not in commit_wire}


def _commit_messages(settings: AppSettings) -> CommitMessages:
    return CommitMessages(
        new_post=settings.new_post_commit,
        update_post=settings.update_post_commit,
        new_image=settings.new_image_commit,
        update_image=settings.update_image_commit,
    )


def render_v2(workspace: Workspace) -> WorkspaceConfig:
    """Serialize the in-memory workspace as a v2 document."""
    return WorkspaceConfig(
        settings=_shared_settings(workspace.settings),
        commit_messages=_commit_messages(workspace.settings),
        collections=[CollectionDTO.from_collection(c) for c in workspace.collections],
        active_collection_id=workspace.active_collection_id,
    )


def render_v1(settings: AppSettings, layout: CollectionLayout | None = None) -> LegacyConfig:
    """Serialize flat settings as a v1 document."""
    layout = layout or CollectionLayout()
    return LegacyConfig(
        version=1,
        project_type=settings.project_type,
        paths=LegacyPaths(posts=settings.posts_path, images=settings.images_path),
        domain_url=settings.domain_url,
        settings={key: getattr(settings, FIELD_NAMES[key]) for key in LEGACY_SETTINGS_FIELDS},
        commits={key: getattr(settings, FIELD_NAMES[wire]) for key, wire in COMMIT_FIELDS.items()},
        templates={"frontmatter": layout.template} if layout.template is not None else None,
        ui=(
            {
                k: v
                for k, v in (("tableColumns", layout.table_columns), ("columnWidths", layout.column_widths))
                if v is not None
            }
            or None
        ),
    )


def workspace_from_v2(repository_id: str, config: WorkspaceConfig, settings: AppSettings) -> Workspace:
    """Build a workspace from a parsed v2 document; *settings* is the validated merge."""
    collections = [dto.to_collection() for dto in config.collections]
    active = config.active_collection_id
    if active is None or not any(c.id == active for c in collections):
        active = collections[0].id if collections else None
    return Workspace(
        repository_id=repository_id,
        settings=settings,
        collections=collections,
        active_collection_id=active,
    )


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------


def upgrade_v1_to_v2(
    v1_config: Mapping[str, Any] | LegacyConfig,
    settings: AppSettings,
    *,
    layout: CollectionLayout | None = None,
    name: str | None = None,
) -> WorkspaceConfig:
    """Synthesize a v2 document holding one default collection from ``v1.paths``.

    Valid v1 fields are applied over *settings* to form the shared settings.
    Template / table layout comes from *layout* (the separately cached values)
    and falls back to the v1 ``templates`` / ``ui`` sections.
    """
    document = v1_config.to_document() if isinstance(v1_config, LegacyConfig) else dict(v1_config)
    merged = apply_valid(settings, legacy_fields(document))

    fallback = legacy_layout(document)
    layout = layout or CollectionLayout()
    collection = Collection(
        id=new_collection_id(),
        name=name or DEFAULT_COLLECTION_NAME,
        posts_path=merged.posts_path,
        images_path=merged.images_path,
        template=layout.template if layout.template is not None else fallback.template,
        table_columns=layout.table_columns if layout.table_columns is not None else fallback.table_columns,
        column_widths=layout.column_widths if layout.column_widths is not None else fallback.column_widths,
    )
    return WorkspaceConfig(
        settings=_shared_settings(merged),
        commit_messages=_commit_messages(merged),
        collections=[CollectionDTO.from_collection(collection)],
        active_collection_id=collection.id,
    )
