"""Reconciliation engine -- produces a consistent workspace on repository open.

Three sources disagree about a repository's settings: the local cache, the
remote config file and the repository content itself.  Bootstrap merges
them in phases, each of which may finish the run:

1. **Init**: attach the workspace for the repository.
2. **Remote v2**: read the config file.  A v2 document (non-empty
   ``collections``) is loaded straight into the workspace; setup is complete.
3. **Cache**: cached field values fill the draft (10 -> 20%).
4. **Remote flat**: a v1 (or unparseable v2) document is applied over the
   draft field by field, skipping values that fail validation; the result
   is written back to the cache and setup is complete.
5. **Cache sufficiency**: with no usable remote file, a cache holding project
   type, posts path and images path is enough to complete setup.
6. **Scan**: otherwise the scanner suggests a production URL and posts /
   images directories (60 / 75 / 90%).  Setup stays incomplete -- the user
   confirms the suggestions in the setup flow.  Any scan error aborts with
   an ``Error: ...`` phase at 0%.

Each phase takes the previous :class:`PhaseResult` and returns a new one;
nothing is mutated across phases except the workspace store, the cache and
the progress reporter, which are the engine's outputs.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from pagesync.engine import schema
from pagesync.engine.models.enums import ConfigSource
from pagesync.engine.models.settings import AppSettings

if TYPE_CHECKING:
    from pagesync.engine.cache import LocalCache
    from pagesync.engine.git.base import RepositoryScanner
    from pagesync.engine.progress import ScanProgress
    from pagesync.engine.remote import RemoteConfigStore, RemoteDocument
    from pagesync.engine.workspace import WorkspaceStore


# ---------------------------------------------------------------------------
# Phase result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PhaseResult:
    """Immutable snapshot handed from one bootstrap phase to the next."""

    repository_id: str
    settings: AppSettings
    source: ConfigSource = ConfigSource.NONE
    setup_complete: bool = False
    done: bool = False
    remote: RemoteDocument | None = None
    cached: Mapping[str, Any] = field(default_factory=dict)
    suggested_post_paths: tuple[str, ...] = ()
    suggested_image_paths: tuple[str, ...] = ()
    message: str | None = None

    def evolve(self, **changes: Any) -> PhaseResult:
        return dataclasses.replace(self, **changes)

    @property
    def has_mandatory_fields(self) -> bool:
        return all(self.cached.get(key) for key in schema.MANDATORY_FIELDS)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class Reconciler:
    """Runs the bootstrap phases against injected collaborators."""

    def __init__(
        self,
        *,
        workspaces: WorkspaceStore,
        cache: LocalCache,
        remote: RemoteConfigStore,
        scanner: RepositoryScanner,
        progress: ScanProgress,
    ) -> None:
        self._workspaces = workspaces
        self._cache = cache
        self._remote = remote
        self._scanner = scanner
        self._progress = progress

    async def bootstrap(self, repository_id: str, base: AppSettings | None = None) -> PhaseResult:
        """Run every phase in order until one finishes the run."""
        self._progress.set_scanning(True)
        try:
            result = self.init(repository_id, base)
            for phase in (self.load_remote, self.merge_cache, self.merge_remote_flat, self.check_cache, self.scan):
                result = await phase(result)
                if result.done:
                    break
            self._workspaces.update_settings(result.settings)
        finally:
            self._progress.set_scanning(False)

        logger.info(
            "Bootstrap of {} finished: source={}, setup_complete={}",
            repository_id,
            result.source,
            result.setup_complete,
        )
        return result

    # -- Phase 1 ---------------------------------------------------------------

    def init(self, repository_id: str, base: AppSettings | None = None) -> PhaseResult:
        self._workspaces.init_workspace(repository_id)
        return PhaseResult(repository_id=repository_id, settings=base or schema.defaults())

    # -- Phase 2 ---------------------------------------------------------------

    async def load_remote(self, result: PhaseResult) -> PhaseResult:
        """Read the config file; load a v2 document directly into the workspace."""
        self._progress.set_phase("Checking for repository configuration...", 5)
        document = await self._remote.read()
        if document is None:
            return result.evolve(remote=None)

        config = schema.parse_v2(document.content)
        if config is None:
            return result.evolve(remote=document)

        cached = self._cache.load(result.repository_id)
        settings = schema.apply_valid(result.settings, cached)
        settings = schema.apply_valid(settings, schema.v2_fields(config))

        loaded = schema.workspace_from_v2(result.repository_id, config, settings)
        self._workspaces.set_collections(loaded.collections)
        if loaded.active_collection_id is not None:
            self._workspaces.set_active_collection(loaded.active_collection_id)
        self._cache.save(result.repository_id, settings)

        logger.info("Loaded v2 config with {} collections", len(loaded.collections))
        self._progress.set_phase("Configuration loaded", 100)
        return result.evolve(
            settings=settings,
            remote=document,
            cached=cached,
            source=ConfigSource.REMOTE_V2,
            setup_complete=True,
            done=True,
        )

    # -- Phase 3 ---------------------------------------------------------------

    async def merge_cache(self, result: PhaseResult) -> PhaseResult:
        self._progress.set_phase("Loading saved settings...", 10)
        cached = self._cache.load(result.repository_id)
        settings = schema.apply_valid(result.settings, cached)
        self._progress.set_phase("Loading saved settings...", 20)
        return result.evolve(settings=settings, cached=cached)

    # -- Phase 4 ---------------------------------------------------------------

    async def merge_remote_flat(self, result: PhaseResult) -> PhaseResult:
        """Apply a flat (v1) remote document over the draft, field by field."""
        document = result.remote
        if document is None:
            self._progress.set_phase("No configuration found, scanning repository...", 50)
            return result

        self._progress.set_phase("Applying repository configuration...", 30)
        settings = schema.apply_valid(result.settings, schema.legacy_fields(document.content))
        self._cache.save(result.repository_id, settings)

        layout = schema.legacy_layout(document.content)
        if not layout.is_empty():
            self._cache.save_layout(result.repository_id, layout)

        if not schema.is_v2(document.content):
            # The file is authoritative: a flat file means no collections.
            self._workspaces.set_collections([])

        self._progress.set_phase("Configuration loaded", 100)
        return result.evolve(
            settings=settings,
            source=ConfigSource.REMOTE_V1,
            setup_complete=True,
            done=True,
        )

    # -- Phase 5 ---------------------------------------------------------------

    async def check_cache(self, result: PhaseResult) -> PhaseResult:
        if result.remote is None and result.has_mandatory_fields:
            self._progress.set_phase("Using cached settings", 100)
            return result.evolve(source=ConfigSource.CACHE, setup_complete=True, done=True)
        return result

    # -- Phase 6 ---------------------------------------------------------------

    async def scan(self, result: PhaseResult) -> PhaseResult:
        """Suggest values from the repository content.  Never completes setup."""
        settings = result.settings
        try:
            self._progress.set_phase("Detecting production URL...", 60)
            if not settings.domain_url:
                url = await self._scanner.find_production_url()
                if url:
                    settings = schema.apply_valid(settings, {"domainUrl": url})

            self._progress.set_phase("Scanning content directories...", 75)
            content_dirs = tuple(await self._scanner.scan_for_content_directories())
            if content_dirs:
                settings = schema.apply_valid(settings, {"postsPath": content_dirs[0]})

            self._progress.set_phase("Scanning image directories...", 90)
            image_dirs = tuple(await self._scanner.scan_for_image_directories())
            if image_dirs:
                settings = schema.apply_valid(settings, {"imagesPath": image_dirs[0]})
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error("Repository scan failed: {}", message)
            self._progress.fail(message)
            return result.evolve(
                settings=settings,
                source=ConfigSource.SCAN_FAILED,
                setup_complete=False,
                done=True,
                message=f"Error: {message}",
            )

        self._progress.set_phase("Scan complete", 100)
        return result.evolve(
            settings=settings,
            source=ConfigSource.SCAN,
            setup_complete=False,
            done=True,
            suggested_post_paths=content_dirs,
            suggested_image_paths=image_dirs,
        )
