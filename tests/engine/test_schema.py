"""Unit tests for field validators and config document migration."""

from __future__ import annotations

import pytest

from pagesync.engine import schema
from pagesync.engine.models.enums import ProjectType
from pagesync.engine.models.workspace import Collection, CollectionLayout, Workspace

# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def test_defaults_pass_their_own_validators() -> None:
    for field, value in schema.defaults().to_wire().items():
        assert schema.validate(field, value), field


INVALID_VALUES = [
    ("projectType", "hugo"),
    ("postsPath", 42),
    ("imagesPath", None),
    ("domainUrl", ["https://example.com"]),
    ("postFileTypes", "x" * 100),
    ("imageFileTypes", "x" * 100),
    ("publishDateSource", "git"),
    ("imageCompressionEnabled", "true"),
    ("maxImageSize", 5),
    ("maxImageSize", 2048),
    ("maxImageSize", True),
    ("imageResizeMaxWidth", 10001),
    ("imageResizeMaxWidth", "800"),
    ("newPostCommit", "x" * 200),
    ("updatePostCommit", "x" * 200),
    ("newImageCommit", 1),
    ("updateImageCommit", "x" * 250),
    ("pageel-cms-lang", "fr"),
    ("notAField", "anything"),
]


def test_every_settings_field_has_an_invalid_case() -> None:
    assert set(schema.SETTINGS_SCHEMA) <= {field for field, _ in INVALID_VALUES}


@pytest.mark.parametrize(("field", "value"), INVALID_VALUES)
def test_validate_rejects(field: str, value: object) -> None:
    assert schema.validate(field, value) is False


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("projectType", "github"),
        ("maxImageSize", 10),
        ("maxImageSize", 1024),
        ("imageResizeMaxWidth", 0),
        ("postFileTypes", "x" * 99),
        ("newPostCommit", ""),
        ("pageel-cms-lang", "vi"),
    ],
)
def test_validate_accepts(field: str, value: object) -> None:
    assert schema.validate(field, value) is True


def test_validate_all_ignores_unknown_keys() -> None:
    assert schema.validate_all({"postsPath": "content", "somethingElse": 1})
    assert not schema.validate_all({"postsPath": "content", "maxImageSize": 0})


def test_apply_valid_keeps_previous_value_on_invalid_input() -> None:
    settings = schema.defaults()
    updated = schema.apply_valid(settings, {"maxImageSize": 99999, "postsPath": "src/content/blog"})

    assert updated.max_image_size == 500
    assert updated.posts_path == "src/content/blog"
    assert settings.posts_path == ""  # input untouched


def test_apply_valid_accepts_attribute_names() -> None:
    updated = schema.apply_valid(schema.defaults(), {"images_path": "static/img", "project_type": "github"})
    assert updated.images_path == "static/img"
    assert updated.project_type == "github"


def test_apply_valid_keeps_fractional_numbers() -> None:
    updated = schema.apply_valid(schema.defaults(), {"maxImageSize": 500.5, "projectType": "github"})

    assert updated.max_image_size == 500.5
    assert updated.project_type is ProjectType.GITHUB
    assert updated.to_wire()["maxImageSize"] == 500.5
    assert updated.to_wire()["projectType"] == "github"


# ---------------------------------------------------------------------------
# Version detection
# ---------------------------------------------------------------------------


def test_version_two_without_collections_is_read_as_flat() -> None:
    document = {"version": 2, "settings": {}, "collections": [], "paths": {"posts": "a", "images": "b"}}

    assert schema.is_v2(document) is False
    assert schema.parse_v2(document) is None
    fields = schema.legacy_fields(document)
    assert fields["postsPath"] == "a"
    assert fields["imagesPath"] == "b"


def test_collections_without_version_is_v2() -> None:
    document = {"collections": [{"id": "c1", "name": "Blog", "postsPath": "blog", "imagesPath": "img"}]}
    config = schema.parse_v2(document)

    assert config is not None
    assert config.collections[0].posts_path == "blog"


def test_malformed_collections_do_not_parse() -> None:
    assert schema.parse_v2({"collections": [{"postsPath": "blog"}]}) is None


# ---------------------------------------------------------------------------
# Legacy documents
# ---------------------------------------------------------------------------


def test_legacy_fields_understand_older_variants() -> None:
    document = {
        "postsPath": "content/posts",
        "imagesPath": "static/images",
        "settings": {"imageCompression": {"enabled": True, "maxSize": 300, "maxWidth": 800}},
        "commitMessages": {"newPost": "add {filename}"},
    }
    fields = schema.legacy_fields(document)

    assert fields == {
        "postsPath": "content/posts",
        "imagesPath": "static/images",
        "imageCompressionEnabled": True,
        "maxImageSize": 300,
        "imageResizeMaxWidth": 800,
        "newPostCommit": "add {filename}",
    }


def test_legacy_paths_section_wins_over_top_level() -> None:
    document = {"paths": {"posts": "from/paths"}, "postsPath": "from/top"}
    assert schema.legacy_fields(document)["postsPath"] == "from/paths"


def test_legacy_layout() -> None:
    layout = schema.legacy_layout({"templates": {"frontmatter": {"title": ""}}, "ui": {"tableColumns": ["title"]}})
    assert layout.template == {"title": ""}
    assert layout.table_columns == ["title"]
    assert layout.column_widths is None


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------


def test_upgrade_builds_single_default_collection() -> None:
    v1 = {
        "version": 1,
        "projectType": "github",
        "paths": {"posts": "docs/posts", "images": "docs/img"},
        "settings": {"maxImageSize": 250},
        "commits": {"newPost": "docs: add {filename}"},
    }
    config = schema.upgrade_v1_to_v2(v1, schema.defaults())

    assert config.version == 2
    assert len(config.collections) == 1
    collection = config.collections[0]
    assert collection.name == schema.DEFAULT_COLLECTION_NAME
    assert collection.posts_path == "docs/posts"
    assert collection.images_path == "docs/img"
    assert config.active_collection_id == collection.id
    assert config.settings["projectType"] == "github"
    assert config.settings["maxImageSize"] == 250
    assert "newPostCommit" not in config.settings
    assert config.commit_messages.new_post == "docs: add {filename}"


def test_upgrade_prefers_cached_layout_over_document_sections() -> None:
    v1 = {
        "paths": {"posts": "p", "images": "i"},
        "templates": {"frontmatter": {"old": True}},
        "ui": {"tableColumns": ["a"]},
    }
    layout = CollectionLayout(template={"new": True})

    collection = schema.upgrade_v1_to_v2(v1, schema.defaults(), layout=layout, name="Docs").collections[0]

    assert collection.name == "Docs"
    assert collection.template == {"new": True}
    assert collection.table_columns == ["a"]


def test_upgrade_skips_invalid_v1_fields() -> None:
    v1 = {"projectType": "jekyll", "paths": {"posts": "p", "images": "i"}}
    config = schema.upgrade_v1_to_v2(v1, schema.defaults())
    assert config.settings["projectType"] == "astro"


def test_rendered_v2_document_loads_back_into_same_workspace() -> None:
    settings = schema.apply_valid(schema.defaults(), {"postsPath": "shared", "domainUrl": "https://example.com"})
    blog = Collection(name="Blog", posts_path="src/content/blog", images_path="public/blog")
    notes = Collection(
        name="Notes",
        posts_path="src/content/notes",
        images_path="public/notes",
        table_columns=["title"],
    )
    workspace = Workspace(
        repository_id="octo/blog",
        settings=settings,
        collections=[blog, notes],
        active_collection_id=notes.id,
    )

    document = schema.render_v2(workspace).to_document()
    config = schema.parse_v2(document)
    assert config is not None
    merged = schema.apply_valid(schema.defaults(), schema.v2_fields(config))
    loaded = schema.workspace_from_v2("octo/blog", config, merged)

    assert document["version"] == 2
    assert [c.id for c in loaded.collections] == [blog.id, notes.id]
    assert loaded.active_collection_id == notes.id
    assert loaded.collections[1].table_columns == ["title"]
    assert loaded.settings.domain_url == "https://example.com"
    assert loaded.settings.new_post_commit == settings.new_post_commit


def test_workspace_from_v2_repairs_dangling_active_id() -> None:
    document = {
        "collections": [{"id": "a", "name": "A"}, {"id": "b", "name": "B"}],
        "activeCollectionId": "gone",
    }
    config = schema.parse_v2(document)
    assert config is not None

    workspace = schema.workspace_from_v2("r", config, schema.defaults())
    assert workspace.active_collection_id == "a"


def test_render_v1_shape() -> None:
    settings = schema.apply_valid(schema.defaults(), {"postsPath": "p", "imagesPath": "i"})
    document = schema.render_v1(settings, CollectionLayout(column_widths={"title": 200})).to_document()

    assert document["version"] == 1
    assert document["paths"] == {"posts": "p", "images": "i"}
    assert document["settings"]["maxImageSize"] == 500
    assert document["commits"]["updateImage"] == settings.update_image_commit
    assert document["ui"] == {"columnWidths": {"title": 200}}
    assert "templates" not in document
